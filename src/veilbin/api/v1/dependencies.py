"""Shared API dependencies and error translation."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from veilbin.core.errors import (
    IdentifierCollisionError,
    PasteError,
    PasteNotFoundError,
    StorageFailureError,
)
from veilbin.core.settings import settings
from veilbin.services import Model


@lru_cache
def get_model() -> Model:
    """Return the process wide model built from the default settings."""
    return Model(settings)


# Type alias for model dependency
ModelDep = Annotated[Model, Depends(get_model)]


def client_address(request: Request) -> str:
    """Return the address of the caller, empty if unknown."""
    return request.client.host if request.client else ""


ClientAddressDep = Annotated[str, Depends(client_address)]


def http_error(exc: PasteError) -> HTTPException:
    """Translate a model error into an HTTP error carrying only its message.

    Args:
        exc: Error raised by the paste or comment model

    Returns:
        HTTPException with 404, 409, 500 or 400 status
    """
    if isinstance(exc, PasteNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, IdentifierCollisionError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, StorageFailureError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=exc.message)
