"""SQLAlchemy declarative base"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy 2.0 Declarative Base"""


__all__ = ["Base"]
