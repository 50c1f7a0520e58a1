"""Relational database storage backend built on SQLAlchemy."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from veilbin.data.base import TRAFFIC_LIMITER_NAMESPACE, AbstractData, expire_date_of
from veilbin.db.session import build_engine, build_sessionmaker, create_tables
from veilbin.db.time import epoch_now
from veilbin.models import CommentRecord, ConfigValue, PasteRecord

logger = logging.getLogger(__name__)


class DatabaseData(AbstractData):
    """Stores pastes, comments and keyed values in three tables.

    Creation relies on the primary key constraint, so two writers racing
    on the same id cannot both succeed.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        engine: Engine | None = None,
        echo: bool = False,
    ) -> None:
        super().__init__()
        if engine is None:
            if url is None:
                raise ValueError("DatabaseData requires a database URL or an engine")
            engine = build_engine(url, echo=echo)
        self._engine = engine
        create_tables(self._engine)
        self._session_factory = build_sessionmaker(self._engine)

    @property
    def engine(self) -> Engine:
        """Return the engine backing this store."""
        return self._engine

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    # --- pastes --------------------------------------------------------------------
    def create(self, paste_id: str, paste: dict[str, Any]) -> bool:
        try:
            with self._session() as session:
                if session.get(PasteRecord, paste_id) is not None:
                    return False
                session.add(
                    PasteRecord(
                        dataid=paste_id,
                        data=paste,
                        expiredate=expire_date_of(paste),
                    )
                )
                session.commit()
        except IntegrityError:
            logger.info("Paste %s was created concurrently", paste_id)
            return False
        except SQLAlchemyError as exc:
            logger.error("Failed to store paste %s: %s", paste_id, exc)
            return False
        return True

    def read(self, paste_id: str) -> dict[str, Any] | None:
        try:
            with self._session() as session:
                record = session.get(PasteRecord, paste_id)
                return None if record is None else copy.deepcopy(record.data)
        except SQLAlchemyError as exc:
            logger.warning("Failed to read paste %s: %s", paste_id, exc)
            return None

    def delete(self, paste_id: str) -> None:
        try:
            with self._session() as session:
                session.execute(delete(CommentRecord).where(CommentRecord.pasteid == paste_id))
                session.execute(delete(PasteRecord).where(PasteRecord.dataid == paste_id))
                session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to delete paste %s: %s", paste_id, exc)

    def exists(self, paste_id: str) -> bool:
        try:
            with self._session() as session:
                found = session.scalar(
                    select(PasteRecord.dataid).where(PasteRecord.dataid == paste_id)
                )
        except SQLAlchemyError as exc:
            logger.warning("Failed to look up paste %s: %s", paste_id, exc)
            return False
        return found is not None

    # --- comments ------------------------------------------------------------------
    def create_comment(
        self,
        paste_id: str,
        parent_id: str,
        comment_id: str,
        comment: dict[str, Any],
    ) -> bool:
        try:
            postdate = int((comment.get("meta") or {}).get("created") or 0)
        except (TypeError, ValueError):
            postdate = 0
        try:
            with self._session() as session:
                if session.get(CommentRecord, comment_id) is not None:
                    return False
                session.add(
                    CommentRecord(
                        dataid=comment_id,
                        pasteid=paste_id,
                        parentid=parent_id,
                        data=comment,
                        postdate=postdate,
                    )
                )
                session.commit()
        except IntegrityError:
            logger.info("Comment %s was created concurrently", comment_id)
            return False
        except SQLAlchemyError as exc:
            logger.error("Failed to store comment %s of %s: %s", comment_id, paste_id, exc)
            return False
        return True

    def read_comments(self, paste_id: str) -> dict[str, dict[str, Any]]:
        comments: dict[str, dict[str, Any]] = {}
        try:
            with self._session() as session:
                records = session.scalars(
                    select(CommentRecord)
                    .where(CommentRecord.pasteid == paste_id)
                    .order_by(CommentRecord.postdate)
                ).all()
                for record in records:
                    comment = copy.deepcopy(record.data)
                    comment["id"] = record.dataid
                    comment["parentid"] = record.parentid
                    self.place_comment(comments, comment)
        except SQLAlchemyError as exc:
            logger.warning("Failed to read comments of %s: %s", paste_id, exc)
        return self.sort_comments(comments)

    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool:
        try:
            with self._session() as session:
                found = session.scalar(
                    select(CommentRecord.dataid).where(
                        CommentRecord.pasteid == paste_id,
                        CommentRecord.parentid == parent_id,
                        CommentRecord.dataid == comment_id,
                    )
                )
        except SQLAlchemyError as exc:
            logger.warning("Failed to look up comment %s: %s", comment_id, exc)
            return False
        return found is not None

    # --- keyed values --------------------------------------------------------------
    def set_value(self, value: str, namespace: str, key: str = "") -> bool:
        try:
            with self._session() as session:
                session.merge(ConfigValue(namespace=namespace, key=key, value=str(value)))
                session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to set %s/%s: %s", namespace, key, exc)
            return False
        return True

    def get_value(self, namespace: str, key: str = "") -> str:
        try:
            with self._session() as session:
                row = session.get(ConfigValue, (namespace, key))
                return "" if row is None else row.value
        except SQLAlchemyError as exc:
            logger.warning("Failed to load %s/%s: %s", namespace, key, exc)
            return ""

    def purge_values(self, namespace: str, time: int) -> None:
        if namespace != TRAFFIC_LIMITER_NAMESPACE:
            return
        try:
            with self._session() as session:
                rows = session.scalars(
                    select(ConfigValue).where(ConfigValue.namespace == namespace)
                ).all()
                stale = [row.key for row in rows if row.value.isdigit() and int(row.value) <= time]
                if stale:
                    session.execute(
                        delete(ConfigValue).where(
                            ConfigValue.namespace == namespace,
                            ConfigValue.key.in_(stale),
                        )
                    )
                    session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Failed to purge %s values: %s", namespace, exc)

    # --- maintenance ---------------------------------------------------------------
    def get_all_pastes(self) -> list[str]:
        try:
            with self._session() as session:
                return list(session.scalars(select(PasteRecord.dataid)).all())
        except SQLAlchemyError as exc:
            logger.warning("Failed to list pastes: %s", exc)
            return []

    def _find_expired_pastes(self, batch_size: int) -> list[str]:
        try:
            with self._session() as session:
                return list(
                    session.scalars(
                        select(PasteRecord.dataid)
                        .where(PasteRecord.expiredate != 0, PasteRecord.expiredate < epoch_now())
                        .limit(batch_size)
                    ).all()
                )
        except SQLAlchemyError as exc:
            logger.warning("Failed to scan for expired pastes: %s", exc)
            return []
