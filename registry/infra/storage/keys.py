"""Storage key layout for module archives.

Keys follow ``<prefix>/<namespace>/<name>/<provider>/<name>-<version>.<format>``.
Object listings only return keys, so the layout must stay reversible:
:func:`object_metadata` recovers the identity from a key produced by
:func:`storage_path`.
"""

from __future__ import annotations

from typing import Final, Iterable

from registry.infra.storage.client import InvalidModuleError

DEFAULT_ARCHIVE_FORMAT: Final[str] = "tar.gz"

SUPPORTED_ARCHIVE_FORMATS: Final[tuple[str, ...]] = (
    "tar.gz",
    "tgz",
    "tar.bz2",
    "tar.xz",
    "tar",
    "zip",
)

IDENTITY_FIELDS: Final[tuple[str, ...]] = ("namespace", "name", "provider", "version")

_FORBIDDEN_CHARS = ("/", "\\", "\0", "\n", "\r")


def _normalize_prefix(prefix: str | None) -> str:
    return (prefix or "").strip("/")


def storage_prefix(
    prefix: str | None, namespace: str, name: str, provider: str
) -> str:
    """Return the listing prefix shared by every version of a module.

    Only an empty storage prefix is omitted; identity segments never are.
    """
    module_prefix = f"{namespace}/{name}/{provider}/"
    root = _normalize_prefix(prefix)
    return f"{root}/{module_prefix}" if root else module_prefix


def storage_path(
    prefix: str | None,
    namespace: str,
    name: str,
    provider: str,
    version: str,
    archive_format: str,
) -> str:
    """Return the object key of one module archive."""
    filename = f"{name}-{version}.{archive_format}"
    return storage_prefix(prefix, namespace, name, provider) + filename


def object_metadata(
    key: str,
    prefix: str | None = "",
    archive_formats: Iterable[str] = SUPPORTED_ARCHIVE_FORMATS,
) -> dict[str, str]:
    """Parse an object key back into module identity fields.

    Returns an empty dict when the key does not have the expected shape.
    """
    root = _normalize_prefix(prefix)
    if root:
        if not key.startswith(root + "/"):
            return {}
        key = key[len(root) + 1 :]

    parts = key.split("/")
    if len(parts) != 4:
        return {}
    namespace, name, provider, filename = parts
    if not namespace or not name or not provider:
        return {}

    head = f"{name}-"
    if not filename.startswith(head):
        return {}
    stem = filename[len(head) :]

    # longest first: "tar.gz" must win over "tar"
    for archive_format in sorted(archive_formats, key=len, reverse=True):
        suffix = f".{archive_format}"
        if stem.endswith(suffix) and len(stem) > len(suffix):
            return {
                "namespace": namespace,
                "name": name,
                "provider": provider,
                "version": stem[: -len(suffix)],
            }
    return {}


def _validate_fields(values: dict[str, str]) -> None:
    for field, value in values.items():
        if not value:
            raise InvalidModuleError(field)
    for field, value in values.items():
        if value in {".", ".."} or any(char in value for char in _FORBIDDEN_CHARS):
            raise InvalidModuleError(
                field, f"invalid {field}: {value!r} is not a valid key segment"
            )


def validate_module(namespace: str, name: str, provider: str) -> None:
    """Reject empty or path-breaking module fields before a listing."""
    _validate_fields(dict(zip(IDENTITY_FIELDS, (namespace, name, provider))))


def validate_identity(namespace: str, name: str, provider: str, version: str) -> None:
    """Reject empty or path-breaking identity fields.

    Raises:
        InvalidModuleError: naming the first offending field.
    """
    _validate_fields(dict(zip(IDENTITY_FIELDS, (namespace, name, provider, version))))


def matches_module(
    metadata: dict[str, str], namespace: str, name: str, provider: str
) -> bool:
    """Tell whether parsed key metadata belongs to the given module."""
    return (
        metadata.get("namespace") == namespace
        and metadata.get("name") == name
        and metadata.get("provider") == provider
    )
