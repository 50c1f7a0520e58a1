"""Filesystem storage backend.

Pastes are sharded into two directory levels derived from their id::

    <dir>/ab/cd/abcd0123456789ef.json
    <dir>/ab/cd/abcd0123456789ef.discussion/<pasteid>.<commentid>.<parentid>.json

Values of the keyed store live in one JSON document per namespace,
rewritten under an exclusive lock on <dir>/<namespace>.lock.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import random
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from veilbin.data.base import TRAFFIC_LIMITER_NAMESPACE, AbstractData, expire_date_of
from veilbin.db.time import epoch_now
from veilbin.utils.hash import is_valid_id

logger = logging.getLogger(__name__)

# Upper bound of pastes opened per purge cycle, as a multiple of the batch size.
_SCAN_FACTOR = 10


class FilesystemData(AbstractData):
    """Stores every record as a JSON file below a data directory."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        super().__init__()
        self._dir = Path(directory)
        self._lock = threading.Lock()

    # --- paths ---------------------------------------------------------------------
    def _paste_dir(self, paste_id: str) -> Path:
        return self._dir / paste_id[:2] / paste_id[2:4]

    def _paste_path(self, paste_id: str) -> Path:
        return self._paste_dir(paste_id) / f"{paste_id}.json"

    def _discussion_dir(self, paste_id: str) -> Path:
        return self._paste_dir(paste_id) / f"{paste_id}.discussion"

    def _comment_path(self, paste_id: str, parent_id: str, comment_id: str) -> Path:
        return self._discussion_dir(paste_id) / f"{paste_id}.{comment_id}.{parent_id}.json"

    def _namespace_path(self, namespace: str) -> Path:
        return self._dir / f"{namespace}.json"

    # --- file helpers --------------------------------------------------------------
    @staticmethod
    def _write_new(path: Path, payload: dict[str, Any]) -> bool:
        """Write a JSON file, failing if it already exists.

        The document is written to a temporary file first and hard linked
        into place, so a failed write never leaves a partial file behind.
        """
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle)
            os.link(tmp_name, path)
        except FileExistsError:
            return False
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to write %s: %s", path, exc)
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError as exc:
                    logger.warning("Failed to remove %s: %s", tmp_name, exc)
        return True

    @staticmethod
    def _replace(path: Path, payload: Any) -> bool:
        """Atomically replace a JSON file."""
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to write %s: %s", path, exc)
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            return False
        return True

    @staticmethod
    def _load(path: Path) -> Any | None:
        try:
            with path.open(encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read %s: %s", path, exc)
            return None

    # --- pastes --------------------------------------------------------------------
    def create(self, paste_id: str, paste: dict[str, Any]) -> bool:
        if self.exists(paste_id):
            return False
        return self._write_new(self._paste_path(paste_id), paste)

    def read(self, paste_id: str) -> dict[str, Any] | None:
        data = self._load(self._paste_path(paste_id))
        return data if isinstance(data, dict) else None

    def delete(self, paste_id: str) -> None:
        try:
            self._paste_path(paste_id).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete paste %s: %s", paste_id, exc)

        discussion = self._discussion_dir(paste_id)
        if not discussion.is_dir():
            return
        for entry in discussion.iterdir():
            try:
                entry.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Failed to delete comment file %s: %s", entry, exc)
        try:
            discussion.rmdir()
        except OSError as exc:
            logger.warning("Failed to remove discussion of %s: %s", paste_id, exc)

    def exists(self, paste_id: str) -> bool:
        return self._paste_path(paste_id).is_file()

    # --- comments ------------------------------------------------------------------
    def create_comment(
        self,
        paste_id: str,
        parent_id: str,
        comment_id: str,
        comment: dict[str, Any],
    ) -> bool:
        return self._write_new(self._comment_path(paste_id, parent_id, comment_id), comment)

    def read_comments(self, paste_id: str) -> dict[str, dict[str, Any]]:
        comments: dict[str, dict[str, Any]] = {}
        discussion = self._discussion_dir(paste_id)
        if not discussion.is_dir():
            return comments
        for entry in discussion.glob("*.json"):
            parts = entry.name.split(".")
            if len(parts) != 4:
                continue
            comment = self._load(entry)
            if not isinstance(comment, dict):
                continue
            comment["id"] = parts[1]
            comment["parentid"] = parts[2]
            self.place_comment(comments, comment)
        return self.sort_comments(comments)

    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool:
        return self._comment_path(paste_id, parent_id, comment_id).is_file()

    # --- keyed values --------------------------------------------------------------
    def _load_namespace(self, namespace: str) -> dict[str, Any]:
        data = self._load(self._namespace_path(namespace))
        return data if isinstance(data, dict) else {}

    @contextmanager
    def _locked(self, namespace: str) -> Iterator[None]:
        """Serialise read-modify-write cycles on a namespace document.

        The thread lock covers this instance, the ``flock`` on
        ``<namespace>.lock`` covers other instances and processes.
        """
        lock_path = self._dir / f"{namespace}.lock"
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            with lock_path.open("a") as handle:
                fcntl.flock(handle, fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(handle, fcntl.LOCK_UN)

    def set_value(self, value: str, namespace: str, key: str = "") -> bool:
        if namespace == TRAFFIC_LIMITER_NAMESPACE and not str(value).isdigit():
            logger.error("Refusing non numeric traffic limiter value for %s", key)
            return False
        try:
            with self._locked(namespace):
                values = self._load_namespace(namespace)
                values[key] = str(value)
                return self._replace(self._namespace_path(namespace), values)
        except OSError as exc:
            logger.error("Failed to lock namespace %s: %s", namespace, exc)
            return False

    def get_value(self, namespace: str, key: str = "") -> str:
        return str(self._load_namespace(namespace).get(key, ""))

    def purge_values(self, namespace: str, time: int) -> None:
        if namespace != TRAFFIC_LIMITER_NAMESPACE:
            return
        try:
            with self._locked(namespace):
                values = self._load_namespace(namespace)
                fresh = {
                    key: last
                    for key, last in values.items()
                    if str(last).isdigit() and int(last) > time
                }
                if len(fresh) != len(values):
                    self._replace(self._namespace_path(namespace), fresh)
        except OSError as exc:
            logger.warning("Failed to purge %s values: %s", namespace, exc)

    # --- maintenance ---------------------------------------------------------------
    def get_all_pastes(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(
            entry.stem
            for entry in self._dir.glob("*/*/*.json")
            if is_valid_id(entry.stem) and entry.is_file()
        )

    def _find_expired_pastes(self, batch_size: int) -> list[str]:
        expired: list[str] = []
        now = epoch_now()
        candidates = self.get_all_pastes()
        random.shuffle(candidates)
        opened = 0
        limit = batch_size * _SCAN_FACTOR
        for paste_id in candidates:
            data = self.read(paste_id)
            opened += 1
            if data is not None:
                expire_date = expire_date_of(data)
                if expire_date and expire_date < now:
                    expired.append(paste_id)
                    if len(expired) >= batch_size:
                        break
            if opened >= limit:
                break
        return expired
