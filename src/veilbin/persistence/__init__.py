# src/veilbin/persistence/__init__.py
"""Small state holders persisted through the storage contract."""

from .purge_limiter import PurgeLimiter
from .server_salt import ServerSalt
from .traffic_limiter import TrafficLimiter

__all__ = ["PurgeLimiter", "ServerSalt", "TrafficLimiter"]
