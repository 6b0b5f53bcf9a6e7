from __future__ import annotations

import json
import logging

import pytest

from registry.common.logging import SDK_LOGGERS, JsonFormatter, setup_logging


def _record(message: str, **kwargs) -> logging.LogRecord:
    return logging.getLogger("registry.storage").makeRecord(
        "registry.storage", logging.INFO, __file__, 1, message, (), None, **kwargs
    )


@pytest.fixture()
def restore_logging():
    root = logging.getLogger()
    names = ("registry.startup", "registry.storage", *SDK_LOGGERS)
    saved_root = root.level, list(root.handlers)
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    root.handlers[:] = saved_root[1]
    root.setLevel(saved_root[0])
    for name, level in saved.items():
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers.clear()
        logger.propagate = True


def test_json_formatter_merges_extra_payload():
    record = _record("module uploaded", extra={"extra": {"key": "a/b/c/d.tar.gz"}})

    payload = json.loads(JsonFormatter().format(record))

    assert payload.pop("time").endswith("+00:00")
    assert payload == {
        "level": "INFO",
        "logger": "registry.storage",
        "message": "module uploaded",
        "key": "a/b/c/d.tar.gz",
    }


def test_json_formatter_without_extra():
    payload = json.loads(JsonFormatter().format(_record("plain")))

    assert payload["message"] == "plain"
    assert "key" not in payload


def test_setup_logging_installs_json_handler(restore_logging):
    setup_logging("DEBUG")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
    assert logging.getLogger("registry.startup").propagate is False
    assert logging.getLogger("registry.storage").level == logging.DEBUG


def test_setup_logging_quiets_sdk_loggers(restore_logging):
    setup_logging("DEBUG")

    for name in SDK_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_setup_logging_defaults_to_configured_level(monkeypatch, restore_logging):
    monkeypatch.setenv("LOG_LEVEL", "warning")

    setup_logging()

    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("registry.storage").level == logging.WARNING
