"""Error taxonomy shared by the storage model and the request layer.

Every error carries a stable numeric ``code`` for logs and a message that is
safe to show to clients; backend internals never end up in the message.
"""

from __future__ import annotations

GENERIC_ERROR = "Paste does not exist, has expired or has been deleted."


class PasteError(RuntimeError):
    """Base exception raised for paste and comment failures."""

    code: int = 0
    default_message: str = "Invalid data."

    def __init__(self, message: str | None = None, *, code: int | None = None) -> None:
        super().__init__(message or self.default_message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        """Return the client facing message."""
        return str(self)


class MalformedEnvelopeError(PasteError):
    """Raised when an envelope fails format validation or the size limit."""

    code = 61


class InvalidIdentifierError(PasteError):
    """Raised when a paste or comment id is not 16 lowercase hex characters."""

    code = 60
    default_message = "Invalid paste ID."


class PasteNotFoundError(PasteError):
    """Raised when a paste is absent, expired or already burned."""

    code = 64
    default_message = GENERIC_ERROR


class PasteExpiredError(PasteNotFoundError):
    """Raised when a read hits a paste past its expiry date.

    The record has already been deleted when this is raised.
    """

    code = 63


class IdentifierCollisionError(PasteError):
    """Raised when the derived id is already taken in the store."""

    code = 75
    default_message = "You are unlucky. Try again."


class StorageFailureError(PasteError):
    """Raised when the backend refused or failed a write."""

    code = 76
    default_message = "Error saving paste. Sorry."


class ConfigurationError(PasteError):
    """Raised when a request conflicts with the configured policy.

    Covers unknown or disabled formatters, discussions on burn-after-reading
    pastes or with discussions disabled, and flag values outside {0, 1}.
    """

    code = 74


class CommentDeletionError(PasteError):
    """Raised when a single comment is asked to be deleted."""

    code = 71
    default_message = "To delete a comment, delete its parent paste."


class DeleteTokenMismatchError(PasteError):
    """Raised when a deletion request carries the wrong token."""

    code = 78
    default_message = "Wrong deletion token. Paste was not deleted."
