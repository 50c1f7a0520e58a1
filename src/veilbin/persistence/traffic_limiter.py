"""Per caller cooldown between submissions."""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Callable, Iterable

from veilbin.core.settings import Settings
from veilbin.data.base import TRAFFIC_LIMITER_NAMESPACE, AbstractData
from veilbin.db.time import epoch_now
from veilbin.persistence.server_salt import ServerSalt
from veilbin.utils.hash import hmac_hexdigest

logger = logging.getLogger(__name__)


class TrafficLimiter:
    """Rejects callers submitting again within ``limit`` seconds.

    Caller addresses are never stored, only an HMAC of them keyed by the
    server salt.
    """

    def __init__(
        self,
        store: AbstractData,
        server_salt: ServerSalt,
        limit: int = 10,
        *,
        exempted: Iterable[str] = (),
        clock: Callable[[], int] = epoch_now,
    ) -> None:
        self._store = store
        self._server_salt = server_salt
        self._limit = limit
        self._clock = clock
        self._exempted = []
        for entry in exempted:
            try:
                self._exempted.append(ipaddress.ip_network(entry, strict=False))
            except ValueError:
                logger.warning("Ignoring invalid traffic limiter exemption %r", entry)

    @classmethod
    def from_settings(
        cls,
        store: AbstractData,
        server_salt: ServerSalt,
        settings: Settings,
        *,
        clock: Callable[[], int] = epoch_now,
    ) -> TrafficLimiter:
        """Build a limiter from the traffic section of the settings."""
        return cls(
            store,
            server_salt,
            settings.traffic_limit,
            exempted=settings.exempted_networks,
            clock=clock,
        )

    @property
    def limit(self) -> int:
        """Return the cooldown in seconds."""
        return self._limit

    def is_exempted(self, ip: str) -> bool:
        """Return True if the address is within an exempted network."""
        try:
            address = ipaddress.ip_address(ip)
        except ValueError:
            return False
        return any(address in network for network in self._exempted)

    def get_hash(self, ip: str) -> str:
        """Return the storage key for a caller address."""
        return hmac_hexdigest(ip, self._server_salt.get())

    def can_pass(self, ip: str) -> bool:
        """Return True and record the submission if the caller may proceed."""
        if self._limit < 1 or self.is_exempted(ip):
            return True

        key = self.get_hash(ip)
        now = self._clock()
        raw = self._store.get_value(TRAFFIC_LIMITER_NAMESPACE, key)
        last = int(raw) if raw.strip().isdigit() else 0
        self._store.purge_values(TRAFFIC_LIMITER_NAMESPACE, now - self._limit)
        if last > 0 and last + self._limit >= now:
            logger.debug("Traffic limiter rejected a submission")
            return False

        if not self._store.set_value(str(now), TRAFFIC_LIMITER_NAMESPACE, key):
            logger.error("Failed to store the traffic limiter, it will not take effect")
        return True
