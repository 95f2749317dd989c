"""Structured logging for WorldWeaver.

Console output goes through rich on stderr, with the level picked by the
``-v`` count. File output is opt-in and writes one JSON object per event to
``{log_dir}/debug.jsonl`` so turn diagnostics can be replayed later.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import Processor

_configured = False
_file_handler: logging.FileHandler | None = None
_log_dir: Path | None = None

_QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "langchain",
    "langchain_core",
    "langsmith",
    "asyncio",
)


class JSONLFileHandler(logging.FileHandler):
    """Writes each record as a single JSON line."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry: dict[str, Any] = {
                "timestamp": datetime.now(UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
            }
            # wrap_for_formatter hands us the structlog event dict as record.msg
            if isinstance(record.msg, dict):
                event = dict(record.msg)
                event.pop("level", None)
                event.pop("timestamp", None)
                entry["event"] = event.pop("event", "")
                entry.update(event)
            else:
                entry["event"] = record.getMessage()

            if self.stream:
                self.stream.write(json.dumps(entry, default=str) + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure stdlib logging and structlog.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG on the console.
        log_to_file: Also write every event to ``{log_dir}/debug.jsonl``.
        log_dir: Directory for the JSONL log. Required with ``log_to_file``.

    Raises:
        ValueError: If ``log_to_file`` is set without ``log_dir``.
    """
    global _configured, _file_handler, _log_dir

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    close_file_logging()

    console_level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_time=verbosity >= 1,
            show_path=verbosity >= 2,
            level=console_level,
        )
    ]

    if log_to_file and log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        _log_dir = log_dir
        _file_handler = JSONLFileHandler(str(log_dir / "debug.jsonl"), mode="a")
        _file_handler.setLevel(logging.DEBUG)
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Return a structlog logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def bind_turn_context(**values: Any) -> None:
    """Attach key/value pairs to every event logged in the current context.

    Used by the orchestrator to tag all nested events with the attempt number.
    """
    structlog.contextvars.bind_contextvars(**values)


def clear_turn_context() -> None:
    """Drop all context bound with :func:`bind_turn_context`."""
    structlog.contextvars.clear_contextvars()


def get_log_dir() -> Path | None:
    """Return the JSONL log directory, or None when file logging is off."""
    return _log_dir


def close_file_logging() -> None:
    """Close the JSONL file handler if one is open."""
    global _file_handler
    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None
