from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from lessonpath.core.logging import _ContainerFormatter, _JsonFormatter, setup_logging


def _record(level: int, msg: str = "hello", lineno: int = 1) -> logging.LogRecord:
    return logging.LogRecord(
        name="lessonpath.services.navigation",
        level=level,
        pathname="navigation.py",
        lineno=lineno,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_installs_a_single_handler() -> None:
    setup_logging("info")
    setup_logging("info")
    assert len(logging.getLogger().handlers) == 1


def test_setup_logging_picks_formatter() -> None:
    setup_logging("info", json_format=True)
    assert isinstance(logging.getLogger().handlers[0].formatter, _JsonFormatter)

    setup_logging("info")
    assert isinstance(logging.getLogger().handlers[0].formatter, _ContainerFormatter)


@pytest.mark.parametrize("name", ["uvicorn", "httpx", "sqlalchemy.engine"])
def test_setup_logging_quiets_third_party_at_debug(name: str) -> None:
    setup_logging("debug")
    assert logging.getLogger(name).level == logging.WARNING


def test_setup_logging_allows_uvicorn_at_error() -> None:
    setup_logging("error")
    assert logging.getLogger("uvicorn").level == logging.ERROR


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO))
    assert "hello" in output
    assert "[navigation.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.WARNING, "rejected", 42))
    assert "rejected" in output
    assert "[navigation.py:42]" in output


def test_formatter_timestamp_has_milliseconds() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO))
    timestamp = output.split(" ", 1)[0]
    # 2026-01-01T12:00:00.123+0000
    assert timestamp[19] == "."
    assert timestamp[20:23].isdigit()
