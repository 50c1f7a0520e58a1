# src/veilbin/api/v1/endpoints/pastes.py
"""Paste and comment endpoints for the Veilbin API."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Body, HTTPException, Query, status

from veilbin.api.v1.dependencies import ClientAddressDep, ModelDep, http_error
from veilbin.core.errors import PasteError
from veilbin.schemas.paste import CommentCreated, PasteCreated, PasteDeleted
from veilbin.services import Model

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pastes", tags=["pastes"])

EnvelopeBody = Annotated[dict[str, Any], Body(description="Encrypted version 2 envelope")]


def _check_traffic(model: Model, address: str) -> None:
    limiter = model.traffic_limiter
    if not limiter.can_pass(address):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Please wait {limiter.limit} seconds between each post.",
        )


@router.post("", response_model=PasteCreated, status_code=status.HTTP_201_CREATED)
def create_paste(
    envelope: EnvelopeBody,
    model: ModelDep,
    address: ClientAddressDep,
    background_tasks: BackgroundTasks,
) -> PasteCreated:
    """Store a new encrypted paste.

    A purge cycle is scheduled after the response, gated by the purge
    limiter.
    """
    _check_traffic(model, address)
    paste = model.get_paste()
    try:
        paste.set_data(envelope)
        paste.store()
        token = paste.get_delete_token()
    except PasteError as exc:
        logger.info("Rejected paste (code %d): %s", exc.code, exc.message)
        raise http_error(exc) from exc

    background_tasks.add_task(model.purge)
    paste_id = paste.get_id()
    return PasteCreated(
        id=paste_id,
        url=f"{model.settings.base_path}?{paste_id}",
        deletetoken=token,
    )


@router.post(
    "/{paste_id}/comments",
    response_model=CommentCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    paste_id: str,
    envelope: EnvelopeBody,
    model: ModelDep,
    address: ClientAddressDep,
) -> CommentCreated:
    """Store a comment in the discussion of a paste."""
    _check_traffic(model, address)
    try:
        paste = model.get_paste(paste_id)
        parent_id = envelope.get("parentid", paste_id)
        comment = paste.get_comment(parent_id if isinstance(parent_id, str) else "")
        comment.set_data(envelope)
        comment.store()
    except PasteError as exc:
        logger.info("Rejected comment on %s (code %d): %s", paste_id, exc.code, exc.message)
        raise http_error(exc) from exc

    return CommentCreated(
        id=comment.get_id(),
        url=f"{model.settings.base_path}?{paste_id}#{comment.get_id()}",
    )


@router.get("/{paste_id}")
def read_paste(paste_id: str, model: ModelDep) -> dict[str, Any]:
    """Return a paste with its discussion.

    Burn after reading pastes are deleted by this call.
    """
    try:
        return model.get_paste(paste_id).get()
    except PasteError as exc:
        raise http_error(exc) from exc


@router.delete("/{paste_id}", response_model=PasteDeleted)
def delete_paste(
    paste_id: str,
    model: ModelDep,
    deletetoken: str = Query(..., min_length=1, description="Token issued on creation"),
) -> PasteDeleted:
    """Delete a paste and its discussion given its delete token."""
    try:
        model.get_paste(paste_id).delete_with_token(deletetoken)
    except PasteError as exc:
        raise http_error(exc) from exc
    return PasteDeleted(id=paste_id)
