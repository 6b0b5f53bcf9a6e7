"""Storage backend selection.

Builds the configured Storage implementation from Settings. The storage
prefix and archive format apply to every backend.
"""

from __future__ import annotations

import logging

from registry.common.config import Settings, get_settings
from registry.infra.storage.client import Storage, StorageConfigurationError
from registry.infra.storage.local_storage import LocalStorage
from registry.infra.storage.s3_storage import S3Storage

startup_logger = logging.getLogger("registry.startup")


def build_storage(settings: Settings | None = None) -> Storage:
    """Build the storage backend selected by configuration."""
    settings = settings or get_settings()
    backend = (settings.STORAGE_BACKEND or "").strip().lower()

    if backend == "s3":
        if not settings.S3_BUCKET:
            raise StorageConfigurationError("S3_BUCKET is required")
        s3_storage = S3Storage(
            settings.S3_BUCKET,
            prefix=settings.STORAGE_PREFIX,
            archive_format=settings.ARCHIVE_FORMAT,
            region=settings.S3_REGION,
            endpoint=settings.S3_ENDPOINT_URL,
            path_style=settings.S3_PATH_STYLE,
            conditional_write=settings.S3_CONDITIONAL_WRITE,
            connect_timeout=settings.S3_CONNECT_TIMEOUT,
            read_timeout=settings.S3_READ_TIMEOUT,
        )
        startup_logger.info(
            "storage backend ready [backend=s3] (bucket=%s, region=%s, prefix=%s)",
            settings.S3_BUCKET,
            s3_storage.region,
            settings.STORAGE_PREFIX or "-",
        )
        return s3_storage

    if backend == "local":
        if not settings.LOCAL_STORAGE_ROOT:
            raise StorageConfigurationError("LOCAL_STORAGE_ROOT is required")
        local_storage = LocalStorage(
            settings.LOCAL_STORAGE_ROOT,
            prefix=settings.STORAGE_PREFIX,
            archive_format=settings.ARCHIVE_FORMAT,
        )
        startup_logger.info(
            "storage backend ready [backend=local] (root=%s)", local_storage.root
        )
        return local_storage

    raise StorageConfigurationError(
        f"Unsupported storage backend: {backend}. Use 's3' or 'local'."
    )
