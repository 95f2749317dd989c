"""Corrective detail fetch for entities with missing or invalid fields."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from worldweaver.config import DEFAULT_CORRECTION_TEMPERATURE
from worldweaver.corrections.base import RepairContext, accept_json, run_repair
from worldweaver.models.entities import DEFAULT_ATTITUDE, PresenceStatus
from worldweaver.parsing.shapes import is_string_list, non_empty_string

if TYPE_CHECKING:
    from worldweaver.config import RetryConfig
    from worldweaver.providers.base import Collaborator

MAX_ATTITUDE_LENGTH = 100

_SYSTEM_INSTRUCTION = (
    "You generate JSON objects describing characters in a text adventure. "
    "Derive every field strictly from the provided context and follow the JSON format exactly."
)


@dataclass
class EntityDetails:
    """A full entity record recovered by the corrective call."""

    description: str
    aliases: list[str] = field(default_factory=list)
    presence_status: PresenceStatus = PresenceStatus.UNKNOWN
    attitude_toward_player: str = DEFAULT_ATTITUDE
    known_player_names: list[str] = field(default_factory=list)
    last_known_location: str | None = None
    precise_location: str | None = None


def parse_entity_details(value: Any, default_attitude: str = DEFAULT_ATTITUDE) -> EntityDetails | None:
    """Accept a corrected record only if it is complete and consistent.

    Rejects records with an empty description, non-string aliases, an
    unknown presence status, an attitude outside 1-100 characters, or a
    precise location that contradicts the presence status.
    """
    if not isinstance(value, dict):
        return None
    if not non_empty_string(value.get("description")):
        return None
    aliases = value.get("aliases", [])
    if not is_string_list(aliases):
        return None
    try:
        status = PresenceStatus(value.get("presenceStatus"))
    except ValueError:
        return None

    attitude = value.get("attitudeTowardPlayer")
    if attitude is not None and not (
        isinstance(attitude, str) and 0 < len(attitude.strip()) <= MAX_ATTITUDE_LENGTH
    ):
        return None
    known = value.get("knownPlayerNames", value.get("knowsPlayerAs", []))
    if not is_string_list(known):
        return None

    last_known = value.get("lastKnownLocation")
    precise = value.get("preciseLocation")
    if (last_known is not None and not isinstance(last_known, str)) or (
        precise is not None and not isinstance(precise, str)
    ):
        return None
    if status.in_scene and not (precise or "").strip():
        return None
    if not status.in_scene and precise is not None:
        return None

    return EntityDetails(
        description=value["description"].strip(),
        aliases=list(aliases),
        presence_status=status,
        attitude_toward_player=(attitude or default_attitude).strip(),
        known_player_names=list(known),
        last_known_location=last_known,
        precise_location=precise,
    )


def _details_prompt(name: str, context: RepairContext) -> str:
    statuses = " | ".join(f'"{s.value}"' for s in PresenceStatus)
    return f"""Provide details for a character newly mentioned in the story.

Character Name: "{name}"

Context:
{context.describe()}

Respond ONLY with JSON of this shape:
{{
  "description": "string (non-empty, fits the scene)",
  "aliases": ["string"],
  "presenceStatus": {statuses},
  "attitudeTowardPlayer": "string (at most {MAX_ATTITUDE_LENGTH} characters)",
  "knownPlayerNames": ["string"],
  "lastKnownLocation": "string | null",
  "preciseLocation": "string | null"
}}

Constraints:
- If presenceStatus is "nearby" or "companion", preciseLocation MUST be a descriptive string.
- If presenceStatus is "distant" or "unknown", preciseLocation MUST be null."""


async def fetch_entity_details(
    collaborator: Collaborator,
    *,
    name: str,
    context: RepairContext,
    default_attitude: str = DEFAULT_ATTITUDE,
    retries: RetryConfig | None = None,
    temperature: float = DEFAULT_CORRECTION_TEMPERATURE,
) -> EntityDetails | None:
    """Ask the collaborator for a complete record for ``name``."""
    return await run_repair(
        collaborator,
        label="entity_details",
        prompt=_details_prompt(name, context),
        system_instruction=_SYSTEM_INSTRUCTION,
        accept=accept_json(lambda value: parse_entity_details(value, default_attitude)),
        retries=retries,
        temperature=temperature,
    )
