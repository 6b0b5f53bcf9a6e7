"""S3-compatible module storage backend.

This module provides a Storage implementation that works with AWS S3,
MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import io
import logging
from typing import Any

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from registry.infra.observability.metrics import observe_operation
from registry.infra.storage.client import (
    AlreadyExistsError,
    ListFailedError,
    Module,
    ModuleBody,
    NotFoundError,
    StorageConfigurationError,
    StorageError,
    UploadFailedError,
)
from registry.infra.storage.keys import (
    DEFAULT_ARCHIVE_FORMAT,
    SUPPORTED_ARCHIVE_FORMATS,
    matches_module,
    object_metadata,
    storage_path,
    storage_prefix,
    validate_identity,
    validate_module,
)

logger = logging.getLogger("registry.storage")

BACKEND = "s3"
DEFAULT_REGION = "us-east-1"
BUCKET_REGION_HEADER = "x-amz-bucket-region"

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_PRECONDITION_FAILED_CODES = {"412", "PreconditionFailed"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _status_code(exc: ClientError) -> int | None:
    return exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


def _response_headers(response: dict[str, Any]) -> dict[str, str]:
    return response.get("ResponseMetadata", {}).get("HTTPHeaders", {}) or {}


def _as_stream(body: ModuleBody) -> Any:
    if isinstance(body, (bytes, bytearray)):
        return io.BytesIO(body)
    return body


class S3Storage:
    """Module storage backed by an S3 bucket.

    Uniqueness of a module identity is enforced with a read before the
    write. Two concurrent uploads of the same identity can both pass that
    read; enable ``conditional_write`` on stores that honour
    ``If-None-Match`` to make the create atomic.
    """

    def __init__(
        self,
        bucket: str,
        *,
        prefix: str = "",
        archive_format: str = DEFAULT_ARCHIVE_FORMAT,
        region: str | None = None,
        endpoint: str | None = None,
        path_style: bool = False,
        conditional_write: bool = False,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        client: Any | None = None,
    ) -> None:
        """Build the client and resolve the bucket region.

        Args:
            bucket: Bucket holding the module archives.
            prefix: Key prefix all archives live under.
            archive_format: Archive extension used for reads and uploads.
            region: Bucket region; discovered from the bucket when unset.
            endpoint: Custom endpoint for S3-compatible services.
            path_style: Use path-style addressing (needed for MinIO).
            conditional_write: Create objects with ``If-None-Match: *``.
            connect_timeout: Socket connect timeout in seconds.
            read_timeout: Socket read timeout in seconds.
            client: Pre-built boto3 S3 client.

        Raises:
            StorageConfigurationError: If the bucket is missing, the archive
                format is unknown, or the region cannot be determined.
        """
        if not bucket:
            raise StorageConfigurationError("bucket is required")
        if archive_format not in SUPPORTED_ARCHIVE_FORMATS:
            raise StorageConfigurationError(
                f"unsupported archive format: {archive_format}"
            )

        self._bucket = bucket
        self._prefix = (prefix or "").strip("/")
        self._archive_format = archive_format
        self._endpoint = (endpoint or "").rstrip("/") or None
        self._path_style = bool(path_style)
        self.supports_conditional_write = bool(conditional_write)
        self._client = client or self._build_client(
            region=region,
            endpoint=self._endpoint,
            path_style=self._path_style,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )
        self._region = region or self._determine_bucket_region()

    @staticmethod
    def _build_client(
        *,
        region: str | None,
        endpoint: str | None,
        path_style: bool,
        connect_timeout: float,
        read_timeout: float,
    ) -> Any:
        """Create a boto3 S3 client from backend options."""
        s3_options = {"addressing_style": "path"} if path_style else {}
        config = Config(
            s3=s3_options,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )
        try:
            return boto3.client(
                "s3",
                endpoint_url=endpoint,
                region_name=region,
                config=config,
            )
        except BotoCoreError as exc:
            raise StorageConfigurationError(
                f"Failed to create S3 client: {exc}"
            ) from exc

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def region(self) -> str:
        return self._region

    def _determine_bucket_region(self) -> str:
        try:
            headers = _response_headers(self._client.head_bucket(Bucket=self._bucket))
        except ClientError as exc:
            # redirects and access-denied responses still carry the header
            headers = _response_headers(exc.response)
            if not headers.get(BUCKET_REGION_HEADER):
                raise StorageConfigurationError(
                    f"failed to determine bucket region: {exc}"
                ) from exc
        except BotoCoreError as exc:
            raise StorageConfigurationError(
                f"failed to determine bucket region: {exc}"
            ) from exc

        region = headers.get(BUCKET_REGION_HEADER)
        if not region:
            try:
                response = self._client.get_bucket_location(Bucket=self._bucket)
            except (ClientError, BotoCoreError) as exc:
                raise StorageConfigurationError(
                    f"failed to determine bucket region: {exc}"
                ) from exc
            region = response.get("LocationConstraint") or DEFAULT_REGION

        logger.info(
            "bucket region determined",
            extra={"extra": {"bucket": self._bucket, "region": region}},
        )
        return region

    def _key(self, namespace: str, name: str, provider: str, version: str) -> str:
        return storage_path(
            self._prefix, namespace, name, provider, version, self._archive_format
        )

    def _download_url(self, key: str) -> str:
        if self._endpoint:
            if self._path_style:
                return f"{self._endpoint}/{self._bucket}/{key}"
            scheme, sep, host = self._endpoint.partition("://")
            if sep:
                return f"{scheme}://{self._bucket}.{host}/{key}"
            return f"{self._bucket}.{self._endpoint}/{key}"
        return f"{self._bucket}.s3-{self._region}.amazonaws.com/{key}"

    def _head(self, key: str) -> None:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES or _status_code(exc) == 404:
                raise NotFoundError(f"module not found: {key}") from exc
            raise StorageError(f"Failed to get object metadata: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to get object metadata: {exc}") from exc

    def get_module(
        self, namespace: str, name: str, provider: str, version: str
    ) -> Module:
        """Check the archive with a HEAD request and describe it."""
        validate_identity(namespace, name, provider, version)
        key = self._key(namespace, name, provider, version)
        with observe_operation(BACKEND, "get_module"):
            self._head(key)

        logger.debug("module found", extra={"extra": {"key": key}})
        return Module(
            namespace=namespace,
            name=name,
            provider=provider,
            version=version,
            download_url=self._download_url(key),
        )

    def list_module_versions(
        self, namespace: str, name: str, provider: str
    ) -> list[Module]:
        """List every archive under the module prefix, across all pages."""
        validate_module(namespace, name, provider)
        prefix = storage_prefix(self._prefix, namespace, name, provider)
        modules: list[Module] = []

        with observe_operation(BACKEND, "list_module_versions"):
            try:
                paginator = self._client.get_paginator("list_objects_v2")
                for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                    for obj in page.get("Contents", []):
                        key = obj["Key"]
                        metadata = object_metadata(
                            key, self._prefix, (self._archive_format,)
                        )
                        if not matches_module(metadata, namespace, name, provider):
                            logger.warning(
                                "skipping unrecognised object key",
                                extra={"extra": {"key": key}},
                            )
                            continue
                        modules.append(
                            Module(
                                namespace=namespace,
                                name=name,
                                provider=provider,
                                version=metadata["version"],
                                download_url=self._download_url(key),
                            )
                        )
            except (ClientError, BotoCoreError) as exc:
                raise ListFailedError(
                    f"Failed to list module versions: {exc}"
                ) from exc

        return modules

    def upload_module(
        self,
        namespace: str,
        name: str,
        provider: str,
        version: str,
        body: ModuleBody,
    ) -> Module:
        """Store a new archive and return it as read back from the bucket."""
        validate_identity(namespace, name, provider, version)
        key = self._key(namespace, name, provider, version)

        with observe_operation(BACKEND, "upload_module"):
            if self.supports_conditional_write:
                self._put_if_absent(key, body)
            else:
                self._ensure_absent(key)
                self._upload(key, body)

        logger.info("module uploaded", extra={"extra": {"key": key}})
        return self.get_module(namespace, name, provider, version)

    def _ensure_absent(self, key: str) -> None:
        try:
            self._head(key)
        except NotFoundError:
            return
        logger.warning("rejecting duplicate upload", extra={"extra": {"key": key}})
        raise AlreadyExistsError(key)

    def _upload(self, key: str, body: ModuleBody) -> None:
        try:
            self._client.upload_fileobj(_as_stream(body), self._bucket, key)
        except (ClientError, BotoCoreError, S3UploadFailedError) as exc:
            raise UploadFailedError(f"Failed to upload module: {exc}") from exc

    def _put_if_absent(self, key: str, body: ModuleBody) -> None:
        try:
            self._client.put_object(
                Bucket=self._bucket, Key=key, Body=body, IfNoneMatch="*"
            )
        except ClientError as exc:
            if (
                _error_code(exc) in _PRECONDITION_FAILED_CODES
                or _status_code(exc) == 412
            ):
                logger.warning(
                    "rejecting duplicate upload", extra={"extra": {"key": key}}
                )
                raise AlreadyExistsError(key) from exc
            raise UploadFailedError(f"Failed to upload module: {exc}") from exc
        except BotoCoreError as exc:
            raise UploadFailedError(f"Failed to upload module: {exc}") from exc
