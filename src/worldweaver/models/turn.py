"""Turn outcome: the validated artifact produced from one storyteller response."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from worldweaver.models.dialogue import DialogueSetup  # noqa: TC001 - pydantic field type
from worldweaver.models.entities import Entity, EntityUpdate  # noqa: TC001 - pydantic field type


class TurnOutcome(BaseModel):
    """Everything a turn contributes once validated.

    A turn is either an action turn (``options`` populated, no dialogue) or a
    dialogue turn (``dialogue_setup`` set, ``options`` empty).
    """

    scene_description: str = Field(min_length=1)
    options: list[str] = Field(default_factory=list)
    dialogue_setup: DialogueSetup | None = None
    entities_added: list[Entity] = Field(default_factory=list)
    entities_updated: list[EntityUpdate] = Field(default_factory=list)

    log_message: str | None = None
    main_quest: str | None = None
    current_objective: str | None = None
    objective_achieved: bool = False
    local_time: str = "Time Unknown"
    local_environment: str = "Environment Undetermined"
    local_place: str = "Undetermined Location"
    current_map_node_id: str | None = None
    map_updated: bool | None = None
    map_hint: str | None = None
    player_items_hint: str | None = None
    world_items_hint: str | None = None
    npc_items_hint: str | None = None
    new_items: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def is_dialogue_turn(self) -> bool:
        return self.dialogue_setup is not None

    @property
    def graph_change_hint(self) -> str | None:
        """Narrative hint for the map pipeline, when the turn changed places."""
        if self.map_hint:
            return self.map_hint
        if self.map_updated:
            return self.local_place
        return None
