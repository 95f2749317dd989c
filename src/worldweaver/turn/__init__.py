"""Turn parsing: single attempts and the bounded retry loop."""

from worldweaver.turn.orchestrator import (
    AttemptRecord,
    AttemptResult,
    TurnParseOrchestrator,
    TurnParseResult,
    normalize_options,
    parse_turn_response,
)

__all__ = [
    "AttemptRecord",
    "AttemptResult",
    "TurnParseOrchestrator",
    "TurnParseResult",
    "normalize_options",
    "parse_turn_response",
]
