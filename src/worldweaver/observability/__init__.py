"""Observability helpers: structured logging for the turn and map pipelines."""

from worldweaver.observability.logging import (
    bind_turn_context,
    clear_turn_context,
    close_file_logging,
    configure_logging,
    get_log_dir,
    get_logger,
)

__all__ = [
    "bind_turn_context",
    "clear_turn_context",
    "close_file_logging",
    "configure_logging",
    "get_log_dir",
    "get_logger",
]
