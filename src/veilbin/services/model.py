"""Entry point tying the configured store to the paste models."""

from __future__ import annotations

import logging
from collections.abc import Callable

from veilbin.core.settings import Settings
from veilbin.data import AbstractData, get_store
from veilbin.db.time import epoch_now
from veilbin.persistence import PurgeLimiter, ServerSalt, TrafficLimiter
from veilbin.services.paste import Paste

logger = logging.getLogger(__name__)


class Model:
    """Factory for pastes plus the purge cycle over the configured store.

    All components share one store and one server salt instance; nothing
    is kept in module level state.
    """

    def __init__(
        self,
        settings: Settings,
        store: AbstractData | None = None,
        *,
        clock: Callable[[], int] = epoch_now,
    ) -> None:
        self._settings = settings
        self._store = store
        self._clock = clock
        self._server_salt: ServerSalt | None = None
        self._purge_limiter: PurgeLimiter | None = None
        self._traffic_limiter: TrafficLimiter | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_store(self) -> AbstractData:
        """Return the storage backend, building it on first use."""
        if self._store is None:
            self._store = get_store(self._settings)
            logger.info("Using %s storage backend", self._settings.storage_backend)
        return self._store

    @property
    def server_salt(self) -> ServerSalt:
        if self._server_salt is None:
            self._server_salt = ServerSalt(self.get_store())
        return self._server_salt

    @property
    def purge_limiter(self) -> PurgeLimiter:
        if self._purge_limiter is None:
            self._purge_limiter = PurgeLimiter.from_settings(
                self.get_store(), self._settings, clock=self._clock
            )
        return self._purge_limiter

    @property
    def traffic_limiter(self) -> TrafficLimiter:
        if self._traffic_limiter is None:
            self._traffic_limiter = TrafficLimiter.from_settings(
                self.get_store(), self.server_salt, self._settings, clock=self._clock
            )
        return self._traffic_limiter

    def get_paste(self, paste_id: str | None = None) -> Paste:
        """Return a paste model, bound to ``paste_id`` when given.

        Raises:
            InvalidIdentifierError: If ``paste_id`` is malformed
        """
        paste = Paste(self._settings, self.get_store(), self.server_salt, clock=self._clock)
        if paste_id is not None:
            paste.set_id(paste_id)
        return paste

    def purge(self, *, force: bool = False) -> int:
        """Run a purge cycle if the purge limiter allows it.

        Args:
            force: Skip the purge limiter

        Returns:
            Number of expired pastes deleted
        """
        if not force and not self.purge_limiter.can_purge():
            return 0
        return self.get_store().purge(self._settings.purge_batch_size)
