"""Storage contract implemented by every paste backend."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Final

logger = logging.getLogger(__name__)

SALT_NAMESPACE: Final[str] = "salt"
PURGE_LIMITER_NAMESPACE: Final[str] = "purge_limiter"
TRAFFIC_LIMITER_NAMESPACE: Final[str] = "traffic_limiter"

# Meta fields never replicated into object store metadata.
_UNREPLICATED_META: Final[frozenset[str]] = frozenset({"attachment", "attachmentname", "salt"})


def replicated_metadata(payload: Mapping[str, Any]) -> dict[str, str]:
    """Return the envelope meta fields that are copied onto storage objects.

    Object store backends attach these as native object metadata so that
    the purge scan can inspect ``expire_date`` without downloading bodies.
    """
    meta = payload.get("meta") or {}
    return {
        str(key): str(value)
        for key, value in meta.items()
        if key not in _UNREPLICATED_META
    }


def expire_date_of(paste: Mapping[str, Any]) -> int:
    """Return the paste's expiry timestamp, 0 when unset or unreadable."""
    try:
        return int((paste.get("meta") or {}).get("expire_date") or 0)
    except (TypeError, ValueError):
        return 0


def _slot_sort_key(slot: str) -> tuple[int, int]:
    base, _, suffix = slot.partition(".")
    try:
        return int(base), int(suffix or 0)
    except ValueError:
        return 0, 0


class AbstractData(ABC):
    """Key/value and hierarchical object store for pastes and comments.

    Absence is never an error: reads of missing records return ``None``
    and deletes of missing records are no-ops. Transport failures are
    logged and reported as ``False``/``None`` instead of being raised.
    """

    @abstractmethod
    def create(self, paste_id: str, paste: dict[str, Any]) -> bool:
        """Store a paste unless one with the same id already exists."""

    @abstractmethod
    def read(self, paste_id: str) -> dict[str, Any] | None:
        """Return a stored paste or None if it does not exist."""

    @abstractmethod
    def delete(self, paste_id: str) -> None:
        """Delete a paste and every comment filed under it."""

    @abstractmethod
    def exists(self, paste_id: str) -> bool:
        """Return True if a paste with this id is stored."""

    @abstractmethod
    def create_comment(
        self,
        paste_id: str,
        parent_id: str,
        comment_id: str,
        comment: dict[str, Any],
    ) -> bool:
        """Store a comment unless it already exists."""

    @abstractmethod
    def read_comments(self, paste_id: str) -> dict[str, dict[str, Any]]:
        """Return the comments of a paste keyed by their display slot."""

    @abstractmethod
    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool:
        """Return True if the comment is stored."""

    @abstractmethod
    def set_value(self, value: str, namespace: str, key: str = "") -> bool:
        """Save a value in the keyed store."""

    @abstractmethod
    def get_value(self, namespace: str, key: str = "") -> str:
        """Load a value from the keyed store, empty string when unset."""

    @abstractmethod
    def get_all_pastes(self) -> list[str]:
        """Return the ids of all stored pastes."""

    @abstractmethod
    def _find_expired_pastes(self, batch_size: int) -> list[str]:
        """Return up to about ``batch_size`` ids of expired pastes."""

    @abstractmethod
    def purge_values(self, namespace: str, time: int) -> None:
        """Drop traffic limiter entries that are stale at ``time``."""

    def purge(self, batch_size: int) -> int:
        """Delete at most ``batch_size`` expired pastes.

        Returns:
            Number of pastes handed to ``delete``
        """
        if batch_size < 1:
            return 0
        expired = self._find_expired_pastes(batch_size)[:batch_size]
        for paste_id in expired:
            self.delete(paste_id)
        if expired:
            logger.info("Purged %d expired pastes", len(expired))
        return len(expired)

    @staticmethod
    def get_open_slot(comments: Mapping[str, Any], postdate: int | str) -> str:
        """Return the first slot at or after ``postdate`` not yet in use.

        Colliding slots get a fractional suffix: ``T``, ``T.1``, ``T.2``...
        """
        slot = str(postdate)
        while slot in comments:
            base, _, suffix = slot.partition(".")
            slot = f"{base}.{int(suffix or 0) + 1}"
        return slot

    @staticmethod
    def sort_comments(comments: Mapping[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
        """Return the comments ordered by slot, oldest first."""
        return {slot: comments[slot] for slot in sorted(comments, key=_slot_sort_key)}

    @classmethod
    def place_comment(
        cls,
        comments: dict[str, dict[str, Any]],
        comment: dict[str, Any],
    ) -> str:
        """File a comment under the open slot matching its creation time."""
        created = (comment.get("meta") or {}).get("created", 0)
        try:
            postdate: int | str = int(created)
        except (TypeError, ValueError):
            postdate = 0
        slot = cls.get_open_slot(comments, postdate)
        comments[slot] = comment
        return slot
