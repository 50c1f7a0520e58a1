# src/veilbin/services/__init__.py
"""Paste and comment models on top of the storage backends."""

from .comment import Comment
from .model import Model
from .paste import Paste

__all__ = [
    "Comment",
    "Model",
    "Paste",
]
