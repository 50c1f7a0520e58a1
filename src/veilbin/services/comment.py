"""Comment model, filed under a paste and optionally under another comment."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from veilbin.core.errors import (
    CommentDeletionError,
    ConfigurationError,
    IdentifierCollisionError,
    InvalidIdentifierError,
    MalformedEnvelopeError,
    PasteNotFoundError,
    StorageFailureError,
)
from veilbin.services.base import AbstractModel
from veilbin.utils.hash import is_valid_id

if TYPE_CHECKING:
    from veilbin.services.paste import Paste

logger = logging.getLogger(__name__)


class Comment(AbstractModel):
    """An encrypted reply in the discussion of a paste."""

    is_comment = True

    _paste: Paste | None = None
    _parent_id = ""

    def set_paste(self, paste: Paste) -> None:
        self._paste = paste

    def get_paste(self) -> Paste:
        if self._paste is None:
            raise PasteNotFoundError()
        return self._paste

    def set_parent_id(self, parent_id: str) -> None:
        """Set the paste or comment this comment replies to."""
        if not is_valid_id(parent_id):
            raise InvalidIdentifierError("Invalid parent ID.", code=65)
        self._parent_id = parent_id

    def get_parent_id(self) -> str:
        """Return the parent id, defaulting to the paste id."""
        return self._parent_id or self.get_paste().get_id()

    def set_data(self, envelope: dict[str, Any]) -> None:
        """Adopt a comment envelope addressed to this paste and parent."""
        if isinstance(envelope, dict) and (
            envelope.get("pasteid") != self.get_paste().get_id()
            or envelope.get("parentid") != self.get_parent_id()
        ):
            raise MalformedEnvelopeError()
        super().set_data(envelope)

    def store(self) -> None:
        """Persist the comment under its paste.

        Raises:
            PasteNotFoundError: If the paste or the parent comment is gone
            ConfigurationError: If discussions are closed
            IdentifierCollisionError: If the comment already exists
            StorageFailureError: If the backend refused the write
        """
        paste = self.get_paste()
        paste_id = paste.get_id()
        parent_id = self.get_parent_id()

        if not paste.exists():
            raise PasteNotFoundError()
        if not self._settings.discussion or not paste.is_open_discussion():
            raise ConfigurationError("Discussions are not enabled for this paste.", code=68)
        if parent_id != paste_id and not any(
            comment.get("id") == parent_id for comment in paste.get_comments().values()
        ):
            raise PasteNotFoundError()
        if self.exists():
            raise IdentifierCollisionError(code=69)

        self._data.setdefault("meta", {})["created"] = self._clock()
        if not self._store.create_comment(paste_id, parent_id, self.get_id(), self._data):
            raise StorageFailureError("Error saving comment. Sorry.", code=70)
        logger.info("Stored comment %s on paste %s", self.get_id(), paste_id)

    def delete(self) -> None:
        raise CommentDeletionError()

    def exists(self) -> bool:
        return self._store.exists_comment(
            self.get_paste().get_id(),
            self.get_parent_id(),
            self.get_id(),
        )

    def _sanitize(self, data: dict[str, Any]) -> dict[str, Any]:
        # pasteid and parentid are implied by where the comment is filed
        data.pop("pasteid", None)
        data.pop("parentid", None)
        data["meta"] = {}
        return data
