"""Dialogue-versus-action turn classification."""

from worldweaver.dialogue.validator import (
    DialogueDecision,
    DialogueSetupValidator,
    DialogueState,
    materialize_turn_entities,
)

__all__ = [
    "DialogueDecision",
    "DialogueSetupValidator",
    "DialogueState",
    "materialize_turn_entities",
]
