# src/veilbin/data/__init__.py
"""Storage backends implementing the paste storage contract."""

from __future__ import annotations

from veilbin.core.settings import Settings

from .base import (
    PURGE_LIMITER_NAMESPACE,
    SALT_NAMESPACE,
    TRAFFIC_LIMITER_NAMESPACE,
    AbstractData,
)
from .filesystem import FilesystemData


def get_store(settings: Settings) -> AbstractData:
    """Build the storage backend selected in the settings.

    Object store and database backends are imported lazily so that their
    client libraries are only needed when actually configured.
    """
    backend = settings.storage_backend
    if backend == "filesystem":
        return FilesystemData(settings.data_dir)
    if backend == "database":
        from .database import DatabaseData

        return DatabaseData(settings.database_url, echo=settings.sql_debug)
    if backend == "s3":
        from .s3 import S3Data

        if not settings.s3_bucket:
            raise ValueError("S3_BUCKET is required for the s3 storage backend")
        return S3Data(
            settings.s3_bucket,
            prefix=settings.s3_prefix,
            region=settings.s3_region,
            endpoint=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            use_path_style=settings.s3_use_path_style,
        )
    if backend == "gcs":
        from .gcs import GoogleCloudStorageData

        return GoogleCloudStorageData(
            settings.gcs_bucket,
            prefix=settings.gcs_prefix,
            uniform_acl=settings.gcs_uniform_acl,
        )
    raise ValueError(f"Unsupported storage backend: {backend}")


__all__ = [
    "AbstractData",
    "FilesystemData",
    "PURGE_LIMITER_NAMESPACE",
    "SALT_NAMESPACE",
    "TRAFFIC_LIMITER_NAMESPACE",
    "get_store",
]
