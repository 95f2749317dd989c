"""Entity (character) state and the operations that change it."""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_ATTITUDE = "neutral"

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


class PresenceStatus(StrEnum):
    """How available an entity is to the player right now."""

    COMPANION = "companion"
    NEARBY = "nearby"
    DISTANT = "distant"
    UNKNOWN = "unknown"

    @property
    def in_scene(self) -> bool:
        """Companions and nearby entities have a meaningful precise location."""
        return self in (PresenceStatus.COMPANION, PresenceStatus.NEARBY)


PRESENCE_PLACEHOLDERS = {
    PresenceStatus.COMPANION: "with you",
    PresenceStatus.NEARBY: "nearby in the scene",
}


def build_entity_id(name: str) -> str:
    """Derive a stable id from a name: ``"Old Tom!"`` becomes ``"npc_old_tom"``."""
    slug = _SLUG_STRIP_RE.sub("_", name.strip().lower()).strip("_")
    return f"npc_{slug or 'unnamed'}"


def dedupe_strings(values: list[str]) -> list[str]:
    """Trim, drop empties and remove duplicates while keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        cleaned = value.strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


def placed_location(status: PresenceStatus, precise_location: str | None) -> str | None:
    """Apply the presence/location rule to a precise location.

    Distant and unknown entities never carry a precise location. In-scene
    entities keep theirs, or get a status-specific placeholder when unset.
    """
    if not status.in_scene:
        return None
    if precise_location is None or not precise_location.strip():
        return PRESENCE_PLACEHOLDERS[status]
    return precise_location


class Entity(BaseModel):
    """A character known to the world model.

    Attributes:
        id: Slug derived from ``name``.
        name: Unique display name.
        description: Narrative description.
        aliases: Other names, ordered and unique.
        presence_status: Availability tier.
        attitude_toward_player: Short attitude summary.
        known_player_names: Names this entity uses for the player.
        last_known_location: Broad whereabouts.
        precise_location: In-scene position; only set while in scene.
        dialogue_memory: Append-only conversation summaries.
    """

    id: str = ""
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    aliases: list[str] = Field(default_factory=list)
    presence_status: PresenceStatus = PresenceStatus.UNKNOWN
    attitude_toward_player: str = DEFAULT_ATTITUDE
    known_player_names: list[str] = Field(default_factory=list)
    last_known_location: str | None = None
    precise_location: str | None = None
    dialogue_memory: list[str] = Field(default_factory=list)

    @field_validator("aliases", "known_player_names")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return dedupe_strings(value)

    @field_validator("attitude_toward_player")
    @classmethod
    def _attitude_not_blank(cls, value: str) -> str:
        return value.strip() or DEFAULT_ATTITUDE

    @model_validator(mode="after")
    def _derive_id_and_location(self) -> Entity:
        if not self.id:
            self.id = build_entity_id(self.name)
        self.precise_location = placed_location(self.presence_status, self.precise_location)
        return self

    def matches(self, identifier: str) -> bool:
        """Case-insensitive match against the name or any alias."""
        needle = identifier.strip().casefold()
        if self.name.casefold() == needle:
            return True
        return any(alias.casefold() == needle for alias in self.aliases)

    def with_presence_rules(self) -> Entity:
        """Return a copy satisfying the presence/location invariant."""
        location = placed_location(self.presence_status, self.precise_location)
        if location == self.precise_location:
            return self
        return self.model_copy(update={"precise_location": location})


class EntityUpdate(BaseModel):
    """A change to an existing entity, addressed by name.

    Unset fields leave the target untouched. ``add_dialogue_memory`` is
    appended; it never replaces earlier memories.
    """

    name: str = Field(min_length=1)
    new_description: str | None = None
    new_aliases: list[str] | None = None
    add_alias: str | None = None
    new_presence_status: PresenceStatus | None = None
    new_attitude_toward_player: str | None = None
    new_known_player_names: list[str] | None = None
    new_last_known_location: str | None = None
    new_precise_location: str | None = None
    add_dialogue_memory: str | None = None

    def apply_to(self, entity: Entity) -> Entity:
        """Return ``entity`` with this update merged in.

        The target's name and id are kept. Presence rules are re-applied so a
        status change never leaves a stale precise location behind.
        """
        update: dict[str, object] = {}
        if self.new_description is not None and self.new_description.strip():
            update["description"] = self.new_description
        aliases = list(entity.aliases)
        if self.new_aliases is not None:
            aliases = list(self.new_aliases)
        if self.add_alias:
            aliases.append(self.add_alias)
        update["aliases"] = dedupe_strings(aliases)
        if self.new_presence_status is not None:
            update["presence_status"] = self.new_presence_status
        if self.new_attitude_toward_player is not None and self.new_attitude_toward_player.strip():
            update["attitude_toward_player"] = self.new_attitude_toward_player.strip()
        if self.new_known_player_names is not None:
            update["known_player_names"] = dedupe_strings(
                [*entity.known_player_names, *self.new_known_player_names]
            )
        if self.new_last_known_location is not None:
            update["last_known_location"] = self.new_last_known_location
        if self.new_precise_location is not None:
            update["precise_location"] = self.new_precise_location
        if self.add_dialogue_memory:
            update["dialogue_memory"] = [*entity.dialogue_memory, self.add_dialogue_memory]
        return entity.model_copy(update=update).with_presence_rules()
