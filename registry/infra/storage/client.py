"""Storage protocol, module value type and error taxonomy.

This module defines the backend-agnostic contract consumed by the registry
API layer. Backends realise it against a concrete storage technology.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Protocol, Union

ModuleBody = Union[bytes, BinaryIO]


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class NotFoundError(StorageError):
    """Raised when no module archive exists at the computed key."""


class AlreadyExistsError(StorageError):
    """Raised when an upload targets an identity that is already stored."""

    def __init__(self, key: str) -> None:
        super().__init__(f"module already exists: {key}")
        self.key = key


class ListFailedError(StorageError):
    """Raised when listing module versions fails in the backend."""


class UploadFailedError(StorageError):
    """Raised when writing a module archive fails in the backend."""


class InvalidModuleError(StorageError, ValueError):
    """Raised when a module identity field is missing or malformed."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"{field} not defined")
        self.field = field


class StorageConfigurationError(StorageError):
    """Raised when a storage backend cannot be constructed."""


@dataclass(frozen=True, slots=True)
class Module:
    """One stored module archive version.

    ``download_url`` is derived from the backend location and the storage
    key at read time; it is never persisted.
    """

    namespace: str
    name: str
    provider: str
    version: str
    download_url: str


class Storage(Protocol):
    """Protocol defining the interface for module storage backends.

    Implementations must provide all methods defined here.
    """

    supports_conditional_write: bool

    def get_module(
        self, namespace: str, name: str, provider: str, version: str
    ) -> Module:
        """Look up a single module version.

        Args:
            namespace: Module namespace.
            name: Module name.
            provider: Module provider.
            version: Module version.

        Returns:
            Module with a populated download URL.

        Raises:
            NotFoundError: If no archive exists for the identity.
            StorageError: If the backend call fails for any other reason.
        """
        ...

    def list_module_versions(
        self, namespace: str, name: str, provider: str
    ) -> list[Module]:
        """List every stored version of a module.

        Results are not sorted. Objects under the module prefix whose keys
        cannot be parsed are skipped.

        Raises:
            ListFailedError: If the backend listing fails.
        """
        ...

    def upload_module(
        self,
        namespace: str,
        name: str,
        provider: str,
        version: str,
        body: ModuleBody,
    ) -> Module:
        """Store a new module archive.

        Args:
            namespace: Module namespace.
            name: Module name.
            provider: Module provider.
            version: Module version.
            body: Archive content as bytes or a binary file object.

        Returns:
            The Module as read back from the backend after the write.

        Raises:
            InvalidModuleError: If an identity field is empty or malformed.
            AlreadyExistsError: If the identity is already stored.
            UploadFailedError: If the backend write fails.
        """
        ...
