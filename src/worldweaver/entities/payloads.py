"""Typed parsing of raw entity add/update payloads.

Each parser returns the typed operation plus the list of problems found, so
callers can decide whether to repair, drop or degrade.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from worldweaver.models.entities import DEFAULT_ATTITUDE, Entity, EntityUpdate, PresenceStatus
from worldweaver.parsing.shapes import is_string_list, non_empty_string

_PRESENCE_VALUES = tuple(s.value for s in PresenceStatus)

# Wire key -> EntityUpdate attribute for plain string fields
_UPDATE_STRING_FIELDS = {
    "newDescription": "new_description",
    "addAlias": "add_alias",
    "newAttitudeTowardPlayer": "new_attitude_toward_player",
    "newLastKnownLocation": "new_last_known_location",
    "newPreciseLocation": "new_precise_location",
    "addDialogueMemory": "add_dialogue_memory",
}
_UPDATE_LIST_FIELDS = {
    "newAliases": "new_aliases",
    "newKnownPlayerNames": "new_known_player_names",
}


@dataclass
class ParsedAdd:
    """Outcome of parsing one ``npcsAdded`` item."""

    entity: Entity | None
    raw_name: str | None
    errors: list[str] = field(default_factory=list)


@dataclass
class ParsedUpdate:
    """Outcome of parsing one ``npcsUpdated`` item."""

    update: EntityUpdate | None
    errors: list[str] = field(default_factory=list)


def raw_name_of(raw: Any) -> str | None:
    """Best-effort name from a raw item, used to seed corrective calls."""
    if isinstance(raw, dict) and non_empty_string(raw.get("name")):
        return str(raw["name"]).strip()
    return None


def _known_names(raw: dict[str, Any]) -> Any:
    # Older prompts used "knowsPlayerAs"
    if "knownPlayerNames" in raw:
        return raw["knownPlayerNames"]
    return raw.get("knowsPlayerAs")


def parse_entity_add(raw: Any, default_attitude: str = DEFAULT_ATTITUDE) -> ParsedAdd:
    """Validate an add candidate and build the entity.

    Required: non-empty ``name`` and ``description``. Optional fields are
    type-checked when present: ``aliases`` and ``knownPlayerNames`` (string
    arrays), ``presenceStatus`` (one of the presence values),
    ``attitudeTowardPlayer`` (non-empty string), ``lastKnownLocation`` and
    ``preciseLocation`` (strings).
    """
    name = raw_name_of(raw)
    if not isinstance(raw, dict):
        return ParsedAdd(entity=None, raw_name=None, errors=["entity add must be an object"])

    errors: list[str] = []
    if name is None:
        errors.append("'name' must be a non-empty string")
    if not non_empty_string(raw.get("description")):
        errors.append("'description' must be a non-empty string")
    if "aliases" in raw and not is_string_list(raw["aliases"]):
        errors.append("'aliases' must be an array of strings")
    status = raw.get("presenceStatus")
    if status is not None and status not in _PRESENCE_VALUES:
        errors.append(f"'presenceStatus' must be one of {', '.join(_PRESENCE_VALUES)}")
    attitude = raw.get("attitudeTowardPlayer")
    if attitude is not None and not non_empty_string(attitude):
        errors.append("'attitudeTowardPlayer' must be a non-empty string")
    known = _known_names(raw)
    if known is not None and not is_string_list(known):
        errors.append("'knownPlayerNames' must be an array of strings")
    for key in ("lastKnownLocation", "preciseLocation"):
        if key in raw and not isinstance(raw[key], str):
            errors.append(f"'{key}' must be a string or null")

    if errors:
        return ParsedAdd(entity=None, raw_name=name, errors=errors)

    entity = Entity(
        name=str(name),
        description=raw["description"].strip(),
        aliases=list(raw.get("aliases", [])),
        presence_status=PresenceStatus(status or PresenceStatus.UNKNOWN),
        attitude_toward_player=attitude or default_attitude,
        known_player_names=list(known or []),
        last_known_location=raw.get("lastKnownLocation"),
        precise_location=raw.get("preciseLocation"),
    )
    return ParsedAdd(entity=entity, raw_name=name)


def parse_entity_update(raw: Any) -> ParsedUpdate:
    """Validate an update item and build the typed update.

    Only ``name`` is required. Every other field is type-checked when present.
    """
    if not isinstance(raw, dict):
        return ParsedUpdate(update=None, errors=["entity update must be an object"])
    name = raw_name_of(raw)
    if name is None:
        return ParsedUpdate(update=None, errors=["update is missing a non-empty 'name'"])

    errors: list[str] = []
    values: dict[str, Any] = {"name": name}
    for wire_key, attr in _UPDATE_STRING_FIELDS.items():
        if wire_key not in raw:
            continue
        if not isinstance(raw[wire_key], str):
            errors.append(f"'{wire_key}' must be a string")
        else:
            values[attr] = raw[wire_key]
    for wire_key, attr in _UPDATE_LIST_FIELDS.items():
        if wire_key not in raw:
            continue
        if not is_string_list(raw[wire_key]):
            errors.append(f"'{wire_key}' must be an array of strings")
        else:
            values[attr] = list(raw[wire_key])
    status = raw.get("newPresenceStatus")
    if status is not None:
        if status not in _PRESENCE_VALUES:
            errors.append(f"'newPresenceStatus' must be one of {', '.join(_PRESENCE_VALUES)}")
        else:
            values["new_presence_status"] = PresenceStatus(status)

    if errors:
        return ParsedUpdate(update=None, errors=errors)
    return ParsedUpdate(update=EntityUpdate(**values))
