"""Thin async client for the OpenSea REST API."""
from opensea_wrapper.services.client import OpenSea
from opensea_wrapper.services.crawler import Crawler

__all__ = ["OpenSea", "Crawler"]

__version__ = "0.1.0"
