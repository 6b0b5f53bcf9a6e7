from __future__ import annotations

from pathlib import Path

import pytest

from registry.common.config import Settings, get_settings


def test_defaults():
    settings = Settings.from_environment()

    assert settings.STORAGE_BACKEND == "s3"
    assert settings.S3_BUCKET is None
    assert settings.STORAGE_PREFIX == ""
    assert settings.ARCHIVE_FORMAT == "tar.gz"
    assert settings.S3_REGION is None
    assert settings.S3_ENDPOINT_URL is None
    assert settings.S3_PATH_STYLE is False
    assert settings.S3_CONDITIONAL_WRITE is False


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "S3")
    monkeypatch.setenv("S3_BUCKET", "registry-bucket")
    monkeypatch.setenv("STORAGE_PREFIX", "modules")
    monkeypatch.setenv("ARCHIVE_FORMAT", "zip")
    monkeypatch.setenv("S3_REGION", "eu-west-1")
    monkeypatch.setenv("S3_ENDPOINT_URL", "http://minio:9000")
    monkeypatch.setenv("S3_PATH_STYLE", "yes")
    monkeypatch.setenv("S3_CONDITIONAL_WRITE", "1")
    monkeypatch.setenv("S3_READ_TIMEOUT", "12.5")

    settings = Settings.from_environment()

    assert settings.STORAGE_BACKEND == "s3"
    assert settings.S3_BUCKET == "registry-bucket"
    assert settings.STORAGE_PREFIX == "modules"
    assert settings.ARCHIVE_FORMAT == "zip"
    assert settings.S3_REGION == "eu-west-1"
    assert settings.S3_ENDPOINT_URL == "http://minio:9000"
    assert settings.S3_PATH_STYLE is True
    assert settings.S3_CONDITIONAL_WRITE is True
    assert settings.S3_READ_TIMEOUT == 12.5


def test_blank_values_are_unset(monkeypatch):
    monkeypatch.setenv("S3_REGION", "  ")
    monkeypatch.setenv("S3_ENDPOINT_URL", "")

    settings = Settings.from_environment()

    assert settings.S3_REGION is None
    assert settings.S3_ENDPOINT_URL is None


def test_env_file_does_not_override_environment(monkeypatch):
    Path(".env").write_text(
        "# local overrides\nS3_BUCKET='from-file'\nSTORAGE_PREFIX=\"file-prefix\"\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("S3_BUCKET", "from-env")

    settings = Settings.from_environment()

    assert settings.S3_BUCKET == "from-env"
    assert settings.STORAGE_PREFIX == "file-prefix"


def test_rejects_unknown_backend():
    with pytest.raises(ValueError, match="STORAGE_BACKEND"):
        Settings(STORAGE_BACKEND="gcs")


def test_rejects_unknown_archive_format():
    with pytest.raises(ValueError, match="ARCHIVE_FORMAT"):
        Settings(ARCHIVE_FORMAT="rar")


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("S3_BUCKET", "first")
    first = get_settings()
    monkeypatch.setenv("S3_BUCKET", "second")

    assert get_settings() is first
    assert get_settings().S3_BUCKET == "first"
