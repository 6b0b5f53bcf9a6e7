from __future__ import annotations

import pytest

from registry.common.config import get_settings
from registry.infra.storage.s3_storage import S3Storage
from tests.infra.fake_s3 import FakeS3Client

STORAGE_ENV_VARS = (
    "STORAGE_BACKEND",
    "S3_BUCKET",
    "STORAGE_PREFIX",
    "ARCHIVE_FORMAT",
    "S3_REGION",
    "S3_ENDPOINT_URL",
    "S3_PATH_STYLE",
    "S3_CONDITIONAL_WRITE",
    "S3_CONNECT_TIMEOUT",
    "S3_READ_TIMEOUT",
    "LOCAL_STORAGE_ROOT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for name in STORAGE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def fake_s3():
    return FakeS3Client()


@pytest.fixture()
def s3_storage(fake_s3):
    return S3Storage("registry-bucket", prefix="modules", client=fake_s3)
