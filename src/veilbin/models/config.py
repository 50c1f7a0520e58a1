# src/veilbin/models/config.py
"""Models for the generic namespaced key/value store."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from veilbin.db.session import Base


class ConfigValue(Base):
    """A single value of the keyed store.

    Rows are addressed by namespace and key; the empty key holds the
    namespace wide value (server salt, purge limiter timestamp).
    """

    __tablename__ = "config"

    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    key: Mapped[str] = mapped_column(String(128), primary_key=True, default="")
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
