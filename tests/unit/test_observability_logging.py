"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import pytest

import worldweaver.observability.logging as log_module
from worldweaver.observability import (
    bind_turn_context,
    clear_turn_context,
    close_file_logging,
    configure_logging,
    get_log_dir,
    get_logger,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    yield
    close_file_logging()
    clear_turn_context()
    configure_logging(verbosity=0)


def _read_entries(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def test_default_verbosity_is_warning() -> None:
    """Default verbosity (0) sets WARNING level."""
    configure_logging(verbosity=0)

    assert logging.getLogger().level == logging.WARNING


@pytest.mark.parametrize("verbosity", [1, 2])
def test_verbose_opens_root_logger(verbosity: int) -> None:
    configure_logging(verbosity=verbosity)

    assert logging.getLogger().level == logging.DEBUG


def test_noisy_dependencies_are_quieted() -> None:
    configure_logging(verbosity=2)

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("langchain_core").level == logging.WARNING


def test_get_logger_auto_configures() -> None:
    """get_logger configures logging if not already done."""
    log_module._configured = False

    logger = get_logger("worldweaver.test")

    assert log_module._configured is True
    assert hasattr(logger, "warning")


def test_file_logging_requires_directory() -> None:
    with pytest.raises(ValueError, match="log_dir is required"):
        configure_logging(log_to_file=True)


def test_file_logging_creates_directory(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"

    configure_logging(log_to_file=True, log_dir=log_dir)

    assert log_dir.is_dir()
    assert get_log_dir() == log_dir


def test_reconfiguration_closes_previous_handler(tmp_path: Path) -> None:
    """Reconfiguring logging closes the previous file handler."""
    configure_logging(log_to_file=True, log_dir=tmp_path)
    first = log_module._file_handler
    assert first is not None

    configure_logging(log_to_file=True, log_dir=tmp_path)

    assert first.stream is None or first.stream.closed
    assert log_module._file_handler is not None


def test_jsonl_entries_carry_event_and_context(tmp_path: Path) -> None:
    """Events are written as JSON lines with their key/value context."""
    configure_logging(verbosity=2, log_to_file=True, log_dir=tmp_path)
    logger = get_logger("worldweaver.test")

    bind_turn_context(turn_attempt=2)
    logger.info("turn_attempt_failed", reason="json_parse_failed", max_attempts=4)
    clear_turn_context()
    logger.info("turn_parse_succeeded", attempts=1)
    close_file_logging()

    entries = _read_entries(tmp_path / "debug.jsonl")
    failed = next(e for e in entries if e["event"] == "turn_attempt_failed")
    assert failed["reason"] == "json_parse_failed"
    assert failed["max_attempts"] == 4
    assert failed["turn_attempt"] == 2
    assert failed["level"] == "INFO"
    assert failed["logger"] == "worldweaver.test"
    succeeded = next(e for e in entries if e["event"] == "turn_parse_succeeded")
    assert "turn_attempt" not in succeeded


def test_close_file_logging_is_idempotent(tmp_path: Path) -> None:
    configure_logging(log_to_file=True, log_dir=tmp_path)

    close_file_logging()
    close_file_logging()

    assert log_module._file_handler is None
