# src/veilbin/models/paste.py
"""SQLAlchemy models for pastes and their discussions."""

from typing import Any

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from veilbin.db.session import Base


class PasteRecord(Base):
    """Stored paste envelope keyed by its content derived identifier.

    The envelope is kept verbatim; the expiry date is duplicated into its
    own column so that the purge scan never has to decode payloads.
    """

    __tablename__ = "paste"

    dataid: Mapped[str] = mapped_column(String(16), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    # 0 = never expires
    expiredate: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, index=True)


class CommentRecord(Base):
    """Stored comment envelope filed under a paste."""

    __tablename__ = "comment"
    __table_args__ = (Index("comment_parent", "pasteid"),)

    dataid: Mapped[str] = mapped_column(String(16), primary_key=True)
    pasteid: Mapped[str] = mapped_column(
        String(16),
        ForeignKey("paste.dataid", ondelete="CASCADE"),
        nullable=False,
    )
    parentid: Mapped[str] = mapped_column(String(16), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    postdate: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
