"""Pydantic models for world state and the operations that change it."""

from worldweaver.models.dialogue import MIN_DIALOGUE_OPTIONS, DialogueLine, DialogueSetup
from worldweaver.models.entities import (
    DEFAULT_ATTITUDE,
    PRESENCE_PLACEHOLDERS,
    Entity,
    EntityUpdate,
    PresenceStatus,
    build_entity_id,
)
from worldweaver.models.graph import (
    CONTAINMENT,
    EdgeAdd,
    EdgeRemove,
    EdgeStatus,
    EdgeType,
    EdgeUpdate,
    LocationEdge,
    LocationGraph,
    LocationNode,
    MapUpdateBatch,
    NodeAdd,
    NodeRemove,
    NodeStatus,
    NodeUpdate,
    Position,
)
from worldweaver.models.turn import TurnOutcome

__all__ = [
    "CONTAINMENT",
    "DEFAULT_ATTITUDE",
    "MIN_DIALOGUE_OPTIONS",
    "PRESENCE_PLACEHOLDERS",
    "DialogueLine",
    "DialogueSetup",
    "EdgeAdd",
    "EdgeRemove",
    "EdgeStatus",
    "EdgeType",
    "EdgeUpdate",
    "Entity",
    "EntityUpdate",
    "LocationEdge",
    "LocationGraph",
    "LocationNode",
    "MapUpdateBatch",
    "NodeAdd",
    "NodeRemove",
    "NodeStatus",
    "NodeUpdate",
    "Position",
    "PresenceStatus",
    "TurnOutcome",
    "build_entity_id",
]
