"""Shared behaviour of the paste and comment models."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from veilbin.core.errors import InvalidIdentifierError, MalformedEnvelopeError
from veilbin.core.settings import Settings
from veilbin.data.base import AbstractData
from veilbin.db.time import epoch_now
from veilbin.persistence.server_salt import ServerSalt
from veilbin.services import format_v2
from veilbin.utils.hash import fnv1a64_hexdigest, is_valid_id


class AbstractModel(ABC):
    """Record identified by the FNV-1a hash of its ciphertext."""

    is_comment = False

    def __init__(
        self,
        settings: Settings,
        store: AbstractData,
        server_salt: ServerSalt,
        *,
        clock: Callable[[], int] = epoch_now,
    ) -> None:
        self._settings = settings
        self._store = store
        self._server_salt = server_salt
        self._clock = clock
        self._id = ""
        self._data: dict[str, Any] = {"meta": {}}

    def get_id(self) -> str:
        """Return the identifier, empty until set."""
        return self._id

    def set_id(self, record_id: str) -> None:
        """Set the identifier after checking it is 16 lowercase hex chars."""
        if not is_valid_id(record_id):
            raise InvalidIdentifierError()
        self._id = record_id

    def set_data(self, envelope: dict[str, Any]) -> None:
        """Validate an untrusted envelope and adopt it as this record's data.

        Raises:
            MalformedEnvelopeError: If the envelope shape or size is invalid
            ConfigurationError: If it requests something the settings forbid
        """
        if not format_v2.is_valid(envelope, self.is_comment):
            raise MalformedEnvelopeError()
        if len(envelope["ct"]) > self._settings.size_limit:
            raise MalformedEnvelopeError(
                f"Paste is limited to {self._settings.size_limit} bytes of encrypted data."
            )
        data = self._sanitize(copy.deepcopy(envelope))
        self._validate(data)
        self._data = data
        self.set_id(fnv1a64_hexdigest(data["ct"]))

    @abstractmethod
    def store(self) -> None:
        """Persist the record."""

    @abstractmethod
    def delete(self) -> None:
        """Remove the record."""

    @abstractmethod
    def exists(self) -> bool:
        """Return True if the record is stored."""

    @abstractmethod
    def _sanitize(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return the envelope with server managed fields applied."""

    def _validate(self, data: dict[str, Any]) -> None:  # noqa: B027
        """Reject data that conflicts with the configured policy."""
