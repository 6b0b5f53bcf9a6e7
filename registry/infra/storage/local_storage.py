"""Filesystem module storage backend.

Archives are laid out under a root directory with the same key scheme as
the object-store backends, so a bucket can be mirrored to disk and back.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

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

BACKEND = "local"


class LocalStorage:
    """Module storage rooted at a local directory.

    Files are created with exclusive mode, so duplicate detection is atomic.
    """

    supports_conditional_write = True

    def __init__(
        self,
        root: str | Path,
        *,
        prefix: str = "",
        archive_format: str = DEFAULT_ARCHIVE_FORMAT,
    ) -> None:
        if archive_format not in SUPPORTED_ARCHIVE_FORMATS:
            raise StorageConfigurationError(
                f"unsupported archive format: {archive_format}"
            )
        self._root = Path(root).expanduser().resolve()
        self._prefix = (prefix or "").strip("/")
        if self._prefix and any(
            part in {"", ".", ".."} for part in self._prefix.split("/")
        ):
            raise StorageConfigurationError(f"invalid storage prefix: {prefix!r}")
        self._archive_format = archive_format
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageConfigurationError(
                f"storage root is not usable: {self._root}: {exc}"
            ) from exc

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        path = self._root.joinpath(*(part for part in key.split("/") if part))
        if not path.resolve().is_relative_to(self._root):
            raise StorageError(f"key escapes storage root: {key}")
        return path

    def get_module(
        self, namespace: str, name: str, provider: str, version: str
    ) -> Module:
        validate_identity(namespace, name, provider, version)
        key = storage_path(
            self._prefix, namespace, name, provider, version, self._archive_format
        )
        path = self._path(key)
        with observe_operation(BACKEND, "get_module"):
            try:
                exists = path.is_file()
            except OSError as exc:
                raise StorageError(f"Failed to stat {path}: {exc}") from exc
            if not exists:
                raise NotFoundError(f"module not found: {key}")

        return Module(
            namespace=namespace,
            name=name,
            provider=provider,
            version=version,
            download_url=path.as_uri(),
        )

    def list_module_versions(
        self, namespace: str, name: str, provider: str
    ) -> list[Module]:
        validate_module(namespace, name, provider)
        prefix = storage_prefix(self._prefix, namespace, name, provider)
        directory = self._path(prefix)
        modules: list[Module] = []

        with observe_operation(BACKEND, "list_module_versions"):
            try:
                if not directory.is_dir():
                    return modules
                for entry in directory.iterdir():
                    if not entry.is_file():
                        continue
                    key = prefix + entry.name
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
                            download_url=entry.as_uri(),
                        )
                    )
            except OSError as exc:
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
        validate_identity(namespace, name, provider, version)
        key = storage_path(
            self._prefix, namespace, name, provider, version, self._archive_format
        )
        path = self._path(key)

        with observe_operation(BACKEND, "upload_module"):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                handle = path.open("xb")
            except FileExistsError as exc:
                logger.warning(
                    "rejecting duplicate upload", extra={"extra": {"key": key}}
                )
                raise AlreadyExistsError(key) from exc
            except OSError as exc:
                raise UploadFailedError(f"Failed to upload module: {exc}") from exc

            try:
                with handle:
                    if isinstance(body, (bytes, bytearray)):
                        handle.write(body)
                    else:
                        shutil.copyfileobj(body, handle)
            except OSError as exc:
                path.unlink(missing_ok=True)
                raise UploadFailedError(f"Failed to upload module: {exc}") from exc

        logger.info("module uploaded", extra={"extra": {"key": key}})
        return self.get_module(namespace, name, provider, version)
