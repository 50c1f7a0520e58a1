# src/veilbin/models/__init__.py
"""SQLAlchemy models for the database storage backend."""

from .config import ConfigValue
from .paste import CommentRecord, PasteRecord

__all__ = [
    "CommentRecord",
    "ConfigValue",
    "PasteRecord",
]
