"""Module storage abstraction layer.

This module provides a protocol-based abstraction for module archive
storage, with backends for S3-compatible object stores and the local
filesystem.
"""

from .client import (
    AlreadyExistsError,
    InvalidModuleError,
    ListFailedError,
    Module,
    NotFoundError,
    Storage,
    StorageConfigurationError,
    StorageError,
    UploadFailedError,
)
from .keys import (
    DEFAULT_ARCHIVE_FORMAT,
    SUPPORTED_ARCHIVE_FORMATS,
    object_metadata,
    storage_path,
    storage_prefix,
    validate_identity,
)

__all__ = [
    "AlreadyExistsError",
    "DEFAULT_ARCHIVE_FORMAT",
    "InvalidModuleError",
    "ListFailedError",
    "Module",
    "NotFoundError",
    "SUPPORTED_ARCHIVE_FORMATS",
    "Storage",
    "StorageConfigurationError",
    "StorageError",
    "UploadFailedError",
    "object_metadata",
    "storage_path",
    "storage_prefix",
    "validate_identity",
]
