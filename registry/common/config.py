from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from registry.infra.storage.keys import DEFAULT_ARCHIVE_FORMAT, SUPPORTED_ARCHIVE_FORMATS

ENV_FILE = Path(".env")

STORAGE_BACKENDS: tuple[str, ...] = ("s3", "local")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class Settings:
    STORAGE_BACKEND: str = "s3"
    S3_BUCKET: str | None = None
    STORAGE_PREFIX: str = ""
    ARCHIVE_FORMAT: str = DEFAULT_ARCHIVE_FORMAT
    S3_REGION: str | None = None
    S3_ENDPOINT_URL: str | None = None
    S3_PATH_STYLE: bool = False
    S3_CONDITIONAL_WRITE: bool = False
    S3_CONNECT_TIMEOUT: float = 5.0
    S3_READ_TIMEOUT: float = 60.0
    LOCAL_STORAGE_ROOT: str | None = None
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        backend = self.STORAGE_BACKEND.strip().lower()
        if backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}; got {self.STORAGE_BACKEND!r}."
            )
        self.STORAGE_BACKEND = backend
        if self.ARCHIVE_FORMAT not in SUPPORTED_ARCHIVE_FORMATS:
            raise ValueError(
                f"ARCHIVE_FORMAT must be one of {', '.join(SUPPORTED_ARCHIVE_FORMATS)}; got {self.ARCHIVE_FORMAT!r}."
            )

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            STORAGE_BACKEND=os.environ.get("STORAGE_BACKEND", cls.STORAGE_BACKEND),
            S3_BUCKET=_as_optional(os.environ.get("S3_BUCKET")),
            STORAGE_PREFIX=os.environ.get("STORAGE_PREFIX", cls.STORAGE_PREFIX),
            ARCHIVE_FORMAT=os.environ.get(
                "ARCHIVE_FORMAT", cls.ARCHIVE_FORMAT
            ),
            S3_REGION=_as_optional(os.environ.get("S3_REGION")),
            S3_ENDPOINT_URL=_as_optional(os.environ.get("S3_ENDPOINT_URL")),
            S3_PATH_STYLE=_as_bool(os.environ.get("S3_PATH_STYLE"), cls.S3_PATH_STYLE),
            S3_CONDITIONAL_WRITE=_as_bool(
                os.environ.get("S3_CONDITIONAL_WRITE"), cls.S3_CONDITIONAL_WRITE
            ),
            S3_CONNECT_TIMEOUT=float(
                os.environ.get("S3_CONNECT_TIMEOUT", cls.S3_CONNECT_TIMEOUT)
            ),
            S3_READ_TIMEOUT=float(
                os.environ.get("S3_READ_TIMEOUT", cls.S3_READ_TIMEOUT)
            ),
            LOCAL_STORAGE_ROOT=_as_optional(os.environ.get("LOCAL_STORAGE_ROOT")),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
