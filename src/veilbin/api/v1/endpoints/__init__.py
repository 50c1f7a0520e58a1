# src/veilbin/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .pastes import router as pastes_router

__all__ = ["pastes_router"]
