"""S3 compatible object store backend built on boto3.

Layout inside the bucket (``<prefix>/`` omitted when no prefix is set)::

    <prefix>/<pasteid>
    <prefix>/<pasteid>/discussion/<parentid>/<commentid>
    <prefix>/config/<namespace>[/<key>]

Paste meta fields are replicated as object metadata so that the expiry
scan only needs ``HeadObject`` calls.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from veilbin.data.base import SALT_NAMESPACE, AbstractData, replicated_metadata
from veilbin.db.time import epoch_now

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _is_not_found(exc: ClientError) -> bool:
    return str(exc.response.get("Error", {}).get("Code", "")) in _NOT_FOUND_CODES


def _squash(message: object) -> str:
    return " ".join(str(message).split())


class S3Data(AbstractData):
    """Stores pastes as JSON objects in an S3 compatible bucket."""

    def __init__(
        self,
        bucket: str,
        *,
        prefix: str = "",
        region: str | None = None,
        endpoint: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        use_path_style: bool = False,
        client: Any | None = None,
    ) -> None:
        super().__init__()
        self._bucket = bucket
        self._prefix = prefix.strip("/")
        if client is None:
            client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                config=BotoConfig(s3={"addressing_style": "path" if use_path_style else "auto"}),
            )
        self._client = client

    # --- keys ----------------------------------------------------------------------
    def _root(self) -> str:
        return f"{self._prefix}/" if self._prefix else ""

    def _key(self, paste_id: str) -> str:
        return f"{self._root()}{paste_id}"

    def _comment_key(self, paste_id: str, parent_id: str, comment_id: str) -> str:
        return f"{self._key(paste_id)}/discussion/{parent_id}/{comment_id}"

    def _value_key(self, namespace: str, key: str = "") -> str:
        path = f"{self._root()}config/{namespace}"
        return f"{path}/{key}" if key else path

    # --- client helpers ------------------------------------------------------------
    def _list_all_objects(self, prefix: str) -> Iterator[dict[str, Any]]:
        """Yield every object below a prefix, following continuation tokens."""
        kwargs: dict[str, Any] = {"Bucket": self._bucket, "Prefix": prefix}
        while True:
            response = self._client.list_objects_v2(**kwargs)
            yield from response.get("Contents", [])
            if not response.get("IsTruncated"):
                return
            kwargs["ContinuationToken"] = response["NextContinuationToken"]

    def _object_exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if not _is_not_found(exc):
                logger.warning("Failed to look up %s in %s: %s", key, self._bucket, _squash(exc))
            return False
        except BotoCoreError as exc:
            logger.warning("Failed to look up %s in %s: %s", key, self._bucket, _squash(exc))
            return False
        return True

    def _head_metadata(self, key: str) -> dict[str, str]:
        response = self._client.head_object(Bucket=self._bucket, Key=key)
        return response.get("Metadata") or {}

    def _get_body(self, key: str) -> str:
        response = self._client.get_object(Bucket=self._bucket, Key=key)
        body = response["Body"].read()
        return body.decode("utf-8") if isinstance(body, bytes) else str(body)

    def _delete_object(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            # already deleted by another instance
            logger.debug("Failed to delete %s: %s", key, _squash(exc))

    def _upload(self, key: str, payload: dict[str, Any]) -> bool:
        """Store the payload as JSON, replicating its meta as object metadata."""
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=json.dumps(payload).encode("utf-8"),
                ContentType="application/json",
                Metadata=replicated_metadata(payload),
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("Failed to upload %s to %s: %s", key, self._bucket, _squash(exc))
            return False
        return True

    # --- pastes --------------------------------------------------------------------
    def create(self, paste_id: str, paste: dict[str, Any]) -> bool:
        if self.exists(paste_id):
            return False
        return self._upload(self._key(paste_id), paste)

    def read(self, paste_id: str) -> dict[str, Any] | None:
        try:
            data = json.loads(self._get_body(self._key(paste_id)))
        except ClientError as exc:
            if not _is_not_found(exc):
                logger.warning("Failed to read %s from %s: %s", paste_id, self._bucket, _squash(exc))
            return None
        except (BotoCoreError, ValueError) as exc:
            logger.warning("Failed to read %s from %s: %s", paste_id, self._bucket, _squash(exc))
            return None
        return data if isinstance(data, dict) else None

    def delete(self, paste_id: str) -> None:
        name = self._key(paste_id)
        try:
            for entry in list(self._list_all_objects(f"{name}/discussion/")):
                self._delete_object(entry["Key"])
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Failed to list discussion of %s: %s", paste_id, _squash(exc))
        self._delete_object(name)

    def exists(self, paste_id: str) -> bool:
        return self._object_exists(self._key(paste_id))

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
        return self._upload(self._comment_key(paste_id, parent_id, comment_id), comment)

    def read_comments(self, paste_id: str) -> dict[str, dict[str, Any]]:
        comments: dict[str, dict[str, Any]] = {}
        prefix = f"{self._key(paste_id)}/discussion/"
        try:
            for entry in self._list_all_objects(prefix):
                parent_id, _, comment_id = entry["Key"][len(prefix):].partition("/")
                try:
                    comment = json.loads(self._get_body(entry["Key"]))
                except ClientError as exc:
                    # deleted since the listing
                    if _is_not_found(exc):
                        continue
                    raise
                except ValueError:
                    continue
                comment["id"] = comment_id
                comment["parentid"] = parent_id
                self.place_comment(comments, comment)
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Failed to read comments of %s: %s", paste_id, _squash(exc))
        return self.sort_comments(comments)

    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool:
        return self._object_exists(self._comment_key(paste_id, parent_id, comment_id))

    # --- keyed values --------------------------------------------------------------
    def set_value(self, value: str, namespace: str, key: str = "") -> bool:
        """Save a value; limiter values are mirrored into the object metadata."""
        object_key = self._value_key(namespace, key)
        metadata = {"namespace": namespace}
        if namespace != SALT_NAMESPACE:
            metadata["value"] = str(value)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=object_key,
                Body=str(value).encode("utf-8"),
                ContentType="application/json",
                Metadata=metadata,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("Failed to set %s in %s: %s", object_key, self._bucket, _squash(exc))
            return False
        return True

    def get_value(self, namespace: str, key: str = "") -> str:
        try:
            return self._get_body(self._value_key(namespace, key))
        except ClientError as exc:
            if not _is_not_found(exc):
                logger.warning("Failed to load %s/%s: %s", namespace, key, _squash(exc))
            return ""
        except BotoCoreError as exc:
            logger.warning("Failed to load %s/%s: %s", namespace, key, _squash(exc))
            return ""

    def purge_values(self, namespace: str, time: int) -> None:
        path = self._value_key(namespace)
        try:
            for entry in list(self._list_all_objects(path)):
                name = entry["Key"]
                # skip siblings sharing the prefix, e.g. "salt" vs "salty"
                if len(name) > len(path) and name[len(path)] != "/":
                    continue
                value = self._head_metadata(name).get("value")
                if value is not None and value.isdigit() and int(value) < time:
                    self._delete_object(name)
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Failed to purge %s values: %s", namespace, _squash(exc))

    # --- maintenance ---------------------------------------------------------------
    def _top_level_ids(self) -> Iterator[str]:
        root = self._root()
        for entry in self._list_all_objects(root):
            candidate = entry["Key"][len(root):]
            if candidate and "/" not in candidate:
                yield candidate

    def get_all_pastes(self) -> list[str]:
        try:
            return list(self._top_level_ids())
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Failed to list pastes in %s: %s", self._bucket, _squash(exc))
            return []

    def _find_expired_pastes(self, batch_size: int) -> list[str]:
        """Scan object metadata for expired pastes.

        The scan stops once it holds more than ``batch_size`` ids, so it may
        return one id beyond the batch.
        """
        expired: list[str] = []
        now = epoch_now()
        try:
            for paste_id in self._top_level_ids():
                raw = self._head_metadata(self._key(paste_id)).get("expire_date")
                if raw is not None and raw.isdigit():
                    expire_at = int(raw)
                    if expire_at != 0 and expire_at < now:
                        expired.append(paste_id)
                if len(expired) > batch_size:
                    break
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Failed to scan %s for expired pastes: %s", self._bucket, _squash(exc))
        return expired
