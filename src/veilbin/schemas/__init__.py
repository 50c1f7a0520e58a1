# src/veilbin/schemas/__init__.py
"""Pydantic schemas for the HTTP API."""

from .paste import CommentCreated, PasteCreated, PasteDeleted

__all__ = [
    "CommentCreated",
    "PasteCreated",
    "PasteDeleted",
]
