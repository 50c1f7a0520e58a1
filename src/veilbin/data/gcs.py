"""Google Cloud Storage backend built on google-cloud-storage.

Layout inside the bucket::

    <prefix>/<pasteid>
    <prefix>/<pasteid>/discussion/<parentid>/<commentid>
    config/<namespace>[/<key>]
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from typing import Any

from google.api_core import exceptions as gax
from google.cloud import storage

from veilbin.data.base import SALT_NAMESPACE, AbstractData, replicated_metadata
from veilbin.db.time import epoch_now

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 262_144


class GoogleCloudStorageData(AbstractData):
    """Stores pastes as JSON blobs in a Google Cloud Storage bucket."""

    def __init__(
        self,
        bucket: str | None = None,
        *,
        prefix: str = "pastes",
        uniform_acl: bool = False,
        client: Any | None = None,
    ) -> None:
        super().__init__()
        bucket = bucket or os.getenv("VEILBIN_GCS_BUCKET")
        if not bucket:
            raise ValueError("GoogleCloudStorageData requires a bucket name")
        self._prefix = prefix.strip("/")
        self._uniform_acl = uniform_acl
        self._client = client if client is not None else storage.Client()
        self._bucket = self._client.bucket(bucket)

    # --- keys ----------------------------------------------------------------------
    def _root(self) -> str:
        return f"{self._prefix}/" if self._prefix else ""

    def _key(self, paste_id: str) -> str:
        return f"{self._root()}{paste_id}"

    def _comment_key(self, paste_id: str, parent_id: str, comment_id: str) -> str:
        return f"{self._key(paste_id)}/discussion/{parent_id}/{comment_id}"

    @staticmethod
    def _value_key(namespace: str, key: str = "") -> str:
        return f"config/{namespace}/{key}" if key else f"config/{namespace}"

    # --- client helpers ------------------------------------------------------------
    def _upload(self, key: str, body: str, metadata: dict[str, str]) -> bool:
        blob = self._bucket.blob(key, chunk_size=_CHUNK_SIZE)
        blob.metadata = metadata
        kwargs: dict[str, Any] = {"content_type": "application/json"}
        if not self._uniform_acl:
            kwargs["predefined_acl"] = "private"
        try:
            blob.upload_from_string(body, **kwargs)
        except gax.GoogleAPIError as exc:
            logger.error("Failed to upload %s to %s: %s", key, self._bucket.name, exc)
            return False
        return True

    def _delete_blob(self, key: str) -> None:
        try:
            self._bucket.blob(key).delete()
        except gax.NotFound:
            # already deleted by another instance
            pass
        except gax.GoogleAPIError as exc:
            logger.warning("Failed to delete %s: %s", key, exc)

    def _exists(self, key: str) -> bool:
        try:
            return bool(self._bucket.blob(key).exists())
        except gax.GoogleAPIError as exc:
            logger.warning("Failed to look up %s in %s: %s", key, self._bucket.name, exc)
            return False

    # --- pastes --------------------------------------------------------------------
    def create(self, paste_id: str, paste: dict[str, Any]) -> bool:
        if self.exists(paste_id):
            return False
        return self._upload(self._key(paste_id), json.dumps(paste), replicated_metadata(paste))

    def read(self, paste_id: str) -> dict[str, Any] | None:
        try:
            data = json.loads(self._bucket.blob(self._key(paste_id)).download_as_text())
        except gax.NotFound:
            return None
        except (gax.GoogleAPIError, ValueError) as exc:
            logger.warning("Failed to read %s from %s: %s", paste_id, self._bucket.name, exc)
            return None
        return data if isinstance(data, dict) else None

    def delete(self, paste_id: str) -> None:
        name = self._key(paste_id)
        try:
            for blob in list(self._bucket.list_blobs(prefix=f"{name}/discussion/")):
                self._delete_blob(blob.name)
        except gax.GoogleAPIError as exc:
            logger.warning("Failed to list discussion of %s: %s", paste_id, exc)
        self._delete_blob(name)

    def exists(self, paste_id: str) -> bool:
        return self._exists(self._key(paste_id))

    # --- comments ------------------------------------------------------------------
    def create_comment(
        self,
        paste_id: str,
        parent_id: str,
        comment_id: str,
        comment: dict[str, Any],
    ) -> bool:
        if self.exists_comment(paste_id, parent_id, comment_id):
            return False
        return self._upload(
            self._comment_key(paste_id, parent_id, comment_id),
            json.dumps(comment),
            replicated_metadata(comment),
        )

    def read_comments(self, paste_id: str) -> dict[str, dict[str, Any]]:
        comments: dict[str, dict[str, Any]] = {}
        prefix = f"{self._key(paste_id)}/discussion/"
        try:
            for blob in self._bucket.list_blobs(prefix=prefix):
                parent_id, _, comment_id = blob.name[len(prefix):].partition("/")
                try:
                    comment = json.loads(self._bucket.blob(blob.name).download_as_text())
                except (gax.NotFound, ValueError):
                    continue
                comment["id"] = comment_id
                comment["parentid"] = parent_id
                self.place_comment(comments, comment)
        except gax.GoogleAPIError as exc:
            logger.warning("Failed to read comments of %s: %s", paste_id, exc)
        return self.sort_comments(comments)

    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool:
        return self._exists(self._comment_key(paste_id, parent_id, comment_id))

    # --- keyed values --------------------------------------------------------------
    def set_value(self, value: str, namespace: str, key: str = "") -> bool:
        """Save a value; limiter values are mirrored into the blob metadata."""
        metadata = {"namespace": namespace}
        if namespace != SALT_NAMESPACE:
            metadata["value"] = str(value)
        return self._upload(self._value_key(namespace, key), str(value), metadata)

    def get_value(self, namespace: str, key: str = "") -> str:
        try:
            return self._bucket.blob(self._value_key(namespace, key)).download_as_text()
        except gax.NotFound:
            return ""
        except gax.GoogleAPIError as exc:
            logger.warning("Failed to load %s/%s: %s", namespace, key, exc)
            return ""

    def purge_values(self, namespace: str, time: int) -> None:
        path = self._value_key(namespace)
        try:
            for blob in list(self._bucket.list_blobs(prefix=path)):
                name = blob.name
                if len(name) > len(path) and name[len(path)] != "/":
                    continue
                value = (blob.metadata or {}).get("value")
                if value is not None and value.isdigit() and int(value) < time:
                    self._delete_blob(name)
        except gax.GoogleAPIError as exc:
            logger.warning("Failed to purge %s values: %s", namespace, exc)

    # --- maintenance ---------------------------------------------------------------
    def _top_level_blobs(self) -> Iterator[tuple[str, Any]]:
        root = self._root()
        for blob in self._bucket.list_blobs(prefix=root or None):
            candidate = blob.name[len(root):]
            if candidate and "/" not in candidate:
                yield candidate, blob

    def get_all_pastes(self) -> list[str]:
        try:
            return [paste_id for paste_id, _ in self._top_level_blobs()]
        except gax.GoogleAPIError as exc:
            logger.warning("Failed to list pastes in %s: %s", self._bucket.name, exc)
            return []

    def _find_expired_pastes(self, batch_size: int) -> list[str]:
        """Scan blob metadata for expired pastes, overshooting by at most one."""
        expired: list[str] = []
        now = epoch_now()
        try:
            for paste_id, blob in self._top_level_blobs():
                raw = (blob.metadata or {}).get("expire_date")
                if raw is not None and raw.isdigit():
                    expire_at = int(raw)
                    if expire_at != 0 and expire_at < now:
                        expired.append(paste_id)
                if len(expired) > batch_size:
                    break
        except gax.GoogleAPIError as exc:
            logger.warning("Failed to scan %s for expired pastes: %s", self._bucket.name, exc)
        return expired
