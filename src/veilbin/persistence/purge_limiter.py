"""Cooldown gate preventing purge cycles from running too often."""

from __future__ import annotations

import logging
from collections.abc import Callable

from veilbin.core.settings import Settings
from veilbin.data.base import PURGE_LIMITER_NAMESPACE, AbstractData
from veilbin.db.time import epoch_now

logger = logging.getLogger(__name__)


class PurgeLimiter:
    """Best-effort gate over the ``purge_limiter`` timestamp.

    Two instances racing on ``can_purge`` may both get a purge cycle; purges
    are idempotent so this only costs duplicate work.
    """

    def __init__(
        self,
        store: AbstractData,
        limit: int = 300,
        *,
        clock: Callable[[], int] = epoch_now,
    ) -> None:
        self._store = store
        self._limit = limit
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        store: AbstractData,
        settings: Settings,
        *,
        clock: Callable[[], int] = epoch_now,
    ) -> PurgeLimiter:
        """Build a limiter using the configured purge interval."""
        return cls(store, settings.purge_limit, clock=clock)

    @property
    def limit(self) -> int:
        """Return the cooldown in seconds; values below 1 disable the gate."""
        return self._limit

    def can_purge(self) -> bool:
        """Return True if a purge cycle may run now and claim the slot."""
        if self._limit < 1:
            return True

        now = self._clock()
        raw = self._store.get_value(PURGE_LIMITER_NAMESPACE)
        last = int(raw) if raw.strip().isdigit() else 0
        if last + self._limit >= now:
            return False

        stored = self._store.set_value(str(now), PURGE_LIMITER_NAMESPACE)
        if not stored:
            logger.error(
                "Failed to store the purge limiter, skipping purge cycle to "
                "avoid getting stuck in a purge loop"
            )
        return stored
