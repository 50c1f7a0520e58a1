"""Installation wide secret used to derive non-reversible tokens."""

from __future__ import annotations

import logging
import secrets

from veilbin.data.base import SALT_NAMESPACE, AbstractData

logger = logging.getLogger(__name__)

SALT_BYTES = 256


class ServerSalt:
    """Lazily created salt, persisted through the store and cached in memory.

    The salt never touches payload confidentiality. It keys the traffic
    limiter hashes and the delete tokens of legacy pastes without a salt of
    their own.
    """

    def __init__(self, store: AbstractData) -> None:
        self._store = store
        self._salt = ""

    @staticmethod
    def generate() -> str:
        """Return a fresh hex encoded random salt."""
        return secrets.token_bytes(SALT_BYTES).hex()

    def get(self) -> str:
        """Return the server salt, creating and persisting it on first use."""
        if self._salt:
            return self._salt

        salt = self._store.get_value(SALT_NAMESPACE)
        if salt:
            self._salt = salt
            return self._salt

        candidate = self.generate()
        if not self._store.set_value(candidate, SALT_NAMESPACE):
            logger.error(
                "Failed to store the server salt, delete tokens and the traffic "
                "limiter will not survive a restart"
            )
            self._salt = candidate
            return self._salt
        # Another instance may have written its salt concurrently; adopt
        # whatever value ended up persisted.
        self._salt = self._store.get_value(SALT_NAMESPACE) or candidate
        return self._salt
