# src/veilbin/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import pastes_router

__all__ = ["pastes_router"]
