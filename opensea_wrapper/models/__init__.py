"""Database models"""

from opensea_wrapper.models.event import Event

__all__ = ["Event"]
