# src/veilbin/schemas/paste.py
"""Paste-related Pydantic schemas."""

from pydantic import BaseModel, Field


class PasteCreated(BaseModel):
    """Schema returned after a paste has been stored."""

    status: int = Field(0, description="0 on success")
    id: str = Field(..., description="Paste identifier")
    url: str = Field(..., description="Relative URL of the paste")
    deletetoken: str = Field(..., description="Token authorising deletion of the paste")


class CommentCreated(BaseModel):
    """Schema returned after a comment has been stored."""

    status: int = 0
    id: str
    url: str


class PasteDeleted(BaseModel):
    """Schema returned after a paste has been deleted."""

    status: int = 0
    id: str
