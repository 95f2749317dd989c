"""Failure taxonomy and top-level exceptions.

Pipeline stages report problems as ``FailureReason`` values inside typed
results. Exceptions are kept for configuration problems and collaborator
transport failures (see ``worldweaver.providers.base``).
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class FailureReason(StrEnum):
    """Why a turn, batch or stage failed."""

    JSON_PARSE_FAILED = "json_parse_failed"
    NON_OBJECT = "non_object"
    MISSING_PRIMARY_TEXT = "missing_primary_text"
    INVALID_BASE_FIELDS = "invalid_base_fields"
    INVALID_OPTIONS = "invalid_options"
    ENTITY_RESOLUTION_FAILED = "entity_resolution_failed"
    DIALOGUE_STRUCTURALLY_INVALID = "dialogue_structurally_invalid"
    GRAPH_VALIDATION_FAILED = "graph_validation_failed"
    RETRIES_EXHAUSTED = "retries_exhausted"
    UNKNOWN = "unknown"


class WorldWeaverError(Exception):
    """Base exception for the package."""


class ConfigError(WorldWeaverError):
    """Raised when configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load config at {path}: {reason}")


def format_feedback(errors: list[str]) -> str:
    """Render validation errors as the bullet list sent back to the collaborator.

    Args:
        errors: Individual error descriptions.

    Returns:
        Feedback text, or an empty string when there are no errors.
    """
    if not errors:
        return ""
    lines = ["The output had validation errors:"]
    lines.extend(f"  - {error}" for error in errors)
    lines.append("")
    lines.append("Please fix these errors and return the corrected JSON only.")
    return "\n".join(lines)
