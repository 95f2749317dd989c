"""Structural gate for decoded storyteller payloads.

``check_turn_payload`` is a pure function: it type-checks the decoded value
against the known field shapes and returns either a sanitized
:class:`TurnRecord` or a :class:`FailureReason` with human-readable errors.
Only well-typed fields survive into the record; everything downstream works
with the record instead of the raw mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from worldweaver.errors import FailureReason
from worldweaver.parsing.shapes import type_name

PRIMARY_TEXT_FIELD = "sceneDescription"

# Wire key -> record attribute, grouped by expected JSON type
STRING_FIELDS = {
    "mainQuest": "main_quest",
    "currentObjective": "current_objective",
    "logMessage": "log_message",
    "localTime": "local_time",
    "localEnvironment": "local_environment",
    "localPlace": "local_place",
    "currentMapNodeId": "current_map_node_id",
    "mapHint": "map_hint",
    "playerItemsHint": "player_items_hint",
    "worldItemsHint": "world_items_hint",
    "npcItemsHint": "npc_items_hint",
}
BOOLEAN_FIELDS = {
    "objectiveAchieved": "objective_achieved",
    "mapUpdated": "map_updated",
}
ARRAY_FIELDS = {
    "npcsAdded": "entities_added",
    "npcsUpdated": "entities_updated",
    "newItems": "new_items",
}
OBJECT_FIELDS = {
    "dialogueSetup": "dialogue_setup",
}

_FIELD_SHAPES: tuple[tuple[dict[str, str], type, str], ...] = (
    (STRING_FIELDS, str, "string"),
    (BOOLEAN_FIELDS, bool, "boolean"),
    (ARRAY_FIELDS, list, "array"),
    (OBJECT_FIELDS, dict, "object"),
)


@dataclass
class TurnRecord:
    """Sanitized partial record. Absent or null fields stay None."""

    scene_description: str
    options: list[Any] | None = None
    main_quest: str | None = None
    current_objective: str | None = None
    log_message: str | None = None
    local_time: str | None = None
    local_environment: str | None = None
    local_place: str | None = None
    current_map_node_id: str | None = None
    map_hint: str | None = None
    player_items_hint: str | None = None
    world_items_hint: str | None = None
    npc_items_hint: str | None = None
    objective_achieved: bool | None = None
    map_updated: bool | None = None
    entities_added: list[Any] = field(default_factory=list)
    entities_updated: list[Any] = field(default_factory=list)
    new_items: list[Any] = field(default_factory=list)
    dialogue_setup: dict[str, Any] | None = None


@dataclass(frozen=True)
class GateResult:
    """Result of :func:`check_turn_payload`."""

    record: TurnRecord | None
    reason: FailureReason | None = None
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.record is not None


def check_turn_payload(value: Any) -> GateResult:
    """Type-check a decoded payload.

    Args:
        value: Decoded JSON value with nulls already stripped.

    Returns:
        GateResult carrying the sanitized record, or the failure reason
        (``non_object``, ``missing_primary_text`` or ``invalid_base_fields``)
        and one error line per problem.
    """
    if not isinstance(value, dict):
        return GateResult(
            record=None,
            reason=FailureReason.NON_OBJECT,
            errors=(f"Expected a JSON object at the top level, got {type_name(value)}",),
        )

    primary = value.get(PRIMARY_TEXT_FIELD)
    if not isinstance(primary, str) or not primary.strip():
        return GateResult(
            record=None,
            reason=FailureReason.MISSING_PRIMARY_TEXT,
            errors=(f"'{PRIMARY_TEXT_FIELD}' must be a non-empty string",),
        )

    errors: list[str] = []
    sanitized: dict[str, Any] = {}
    for fields, expected, label in _FIELD_SHAPES:
        for wire_key, attr in fields.items():
            if wire_key not in value or value[wire_key] is None:
                continue
            item = value[wire_key]
            # bool is an int subclass; keep booleans out of non-boolean slots and vice versa
            if not isinstance(item, expected) or (expected is not bool and isinstance(item, bool)):
                errors.append(f"'{wire_key}' must be a {label}, got {type_name(item)}")
                continue
            sanitized[attr] = item

    if errors:
        return GateResult(record=None, reason=FailureReason.INVALID_BASE_FIELDS, errors=tuple(errors))

    options = value.get("options")
    record = TurnRecord(
        scene_description=primary,
        options=options if isinstance(options, list) else None,
        **sanitized,
    )
    return GateResult(record=record)
