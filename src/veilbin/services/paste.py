"""Paste model: lifetime policy, burn after reading and delete tokens."""

from __future__ import annotations

import hmac
import logging
from typing import Any

from veilbin.core.errors import (
    ConfigurationError,
    DeleteTokenMismatchError,
    IdentifierCollisionError,
    PasteExpiredError,
    PasteNotFoundError,
    StorageFailureError,
)
from veilbin.services.base import AbstractModel
from veilbin.services.comment import Comment
from veilbin.utils.hash import hmac_hexdigest

logger = logging.getLogger(__name__)

JSONLD_CONTEXT = "?jsonld=paste"


def _flag(adata: Any, index: int) -> bool:
    """Return True if the adata flag at ``index`` is the integer 1."""
    if not isinstance(adata, list) or len(adata) <= index:
        return False
    value = adata[index]
    return isinstance(value, int) and not isinstance(value, bool) and value == 1


class Paste(AbstractModel):
    """A top level encrypted record with an optional discussion."""

    def get(self) -> dict[str, Any]:
        """Load the paste for display, applying expiry and burn policies.

        Expired pastes are deleted and reported as missing. Burn after
        reading pastes are deleted as soon as they have been loaded once.

        Returns:
            The stored envelope with ``time_to_live`` in place of
            ``expire_date`` and the ordered comment list attached

        Raises:
            PasteNotFoundError: If the paste is absent
            PasteExpiredError: If the paste expired and has just been deleted
        """
        data = self._store.read(self.get_id())
        if data is None:
            raise PasteNotFoundError()
        meta = data.setdefault("meta", {})

        if "expire_date" in meta:
            now = self._clock()
            expire_date = int(meta["expire_date"])
            if expire_date < now:
                self.delete()
                logger.debug("Paste %s expired on read", self.get_id())
                raise PasteExpiredError()
            meta["time_to_live"] = expire_date - now
            del meta["expire_date"]

        if _flag(data.get("adata"), 3) or meta.get("burnafterreading"):
            self.delete()

        # version 1 pastes carry their formatter in meta
        if "data" in data and "formatter" not in meta:
            if meta.get("syntaxcoloring") is True:
                meta["formatter"] = "syntaxhighlighting"
            else:
                meta["formatter"] = self._settings.default_formatter

        # pastes from before per paste salts used the server salt
        if "salt" not in meta:
            meta["salt"] = self._server_salt.get()

        data["comments"] = list(self.get_comments().values())
        data["comment_count"] = len(data["comments"])
        data["comment_offset"] = 0
        data["@context"] = JSONLD_CONTEXT
        self._data = data
        return self._data

    def store(self) -> None:
        """Persist a freshly validated paste.

        Raises:
            IdentifierCollisionError: If a paste with the same id exists
            StorageFailureError: If the backend refused the write
        """
        if self.exists():
            raise IdentifierCollisionError()

        meta = self._data.setdefault("meta", {})
        meta["created"] = self._clock()
        meta["salt"] = self._server_salt.generate()

        if not self._store.create(self.get_id(), self._data):
            if self.exists():
                # created concurrently with the same ciphertext
                raise IdentifierCollisionError()
            raise StorageFailureError()
        logger.info("Stored paste %s", self.get_id())

    def delete(self) -> None:
        """Delete the paste together with its discussion."""
        self._store.delete(self.get_id())

    def delete_with_token(self, token: str) -> None:
        """Delete the paste if ``token`` matches its delete token.

        Raises:
            PasteNotFoundError: If the paste is absent or expired
            DeleteTokenMismatchError: If the token does not match
        """
        if not self.exists():
            raise PasteNotFoundError()
        if not hmac.compare_digest(self.get_delete_token(), str(token)):
            raise DeleteTokenMismatchError()
        self.delete()
        logger.info("Deleted paste %s on request", self.get_id())

    def exists(self) -> bool:
        return self._store.exists(self.get_id())

    def get_comment(self, parent_id: str, comment_id: str = "") -> Comment:
        """Return a comment model attached to this paste.

        Raises:
            PasteNotFoundError: If the paste is not stored
        """
        if not self.exists():
            raise PasteNotFoundError()
        comment = Comment(
            self._settings,
            self._store,
            self._server_salt,
            clock=self._clock,
        )
        comment.set_paste(self)
        comment.set_parent_id(parent_id)
        if comment_id:
            comment.set_id(comment_id)
        return comment

    def get_comments(self) -> dict[str, dict[str, Any]]:
        """Return the discussion keyed by slot, oldest first."""
        return self._store.read_comments(self.get_id())

    def _stored_data(self) -> dict[str, Any]:
        """Return the loaded data, reading the raw record without side effects."""
        if "adata" in self._data or "data" in self._data:
            return self._data
        data = self._store.read(self.get_id())
        if data is None:
            raise PasteNotFoundError()
        data.setdefault("meta", {})
        return data

    def get_delete_token(self) -> str:
        """Return the HMAC of the paste id keyed by the paste salt."""
        meta = self._stored_data()["meta"]
        salt = meta.get("salt") or self._server_salt.get()
        algorithm = "sha1" if self._settings.zerobin_compatibility else "sha256"
        return hmac_hexdigest(self.get_id(), str(salt), algorithm=algorithm)

    def is_open_discussion(self) -> bool:
        """Return True if comments may be posted to this paste."""
        data = self._stored_data()
        return _flag(data.get("adata"), 2) or bool(data["meta"].get("opendiscussion"))

    def _sanitize(self, data: dict[str, Any]) -> dict[str, Any]:
        label = data["meta"].pop("expire")
        options = self._settings.expire_options
        if label in options:
            seconds = int(options[label])
        else:
            seconds = self._settings.default_expire_seconds
        if seconds > 0:
            data["meta"]["expire_date"] = self._clock() + seconds
        return data

    def _validate(self, data: dict[str, Any]) -> None:
        _, formatter, open_discussion, burn_after_reading = data["adata"]
        if not isinstance(formatter, str) or formatter not in self._settings.formatter_options:
            raise ConfigurationError(code=75)
        for flag in (open_discussion, burn_after_reading):
            if isinstance(flag, bool) or flag not in (0, 1):
                raise ConfigurationError(code=73)
        if open_discussion == 1 and (not self._settings.discussion or burn_after_reading == 1):
            raise ConfigurationError()
