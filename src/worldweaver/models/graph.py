"""Location graph state and the map-update operations applied to it.

Nodes reference their parent by id only, so a graph is plain data that can
be dumped to JSON and copied without cycles.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

CONTAINMENT = "containment"


class NodeStatus(StrEnum):
    UNDISCOVERED = "undiscovered"
    DISCOVERED = "discovered"
    RUMORED = "rumored"
    QUEST_TARGET = "quest_target"
    BLOCKED = "blocked"


class EdgeType(StrEnum):
    PATH = "path"
    ROAD = "road"
    SEA_ROUTE = "sea route"
    DOOR = "door"
    TELEPORTER = "teleporter"
    SECRET_PASSAGE = "secret_passage"
    RIVER_CROSSING = "river_crossing"
    TEMPORARY_BRIDGE = "temporary_bridge"
    BOARDING_HOOK = "boarding_hook"
    SHORTCUT = "shortcut"
    CONTAINMENT = CONTAINMENT


class EdgeStatus(StrEnum):
    OPEN = "open"
    ACCESSIBLE = "accessible"
    CLOSED = "closed"
    LOCKED = "locked"
    BLOCKED = "blocked"
    HIDDEN = "hidden"
    RUMORED = "rumored"
    ONE_WAY = "one_way"
    COLLAPSED = "collapsed"
    REMOVED = "removed"
    ACTIVE = "active"
    INACTIVE = "inactive"


class Position(BaseModel):
    """Cosmetic 2D layout coordinate."""

    x: float = 0.0
    y: float = 0.0


class LocationNode(BaseModel):
    """A place on the map.

    Attributes:
        id: Globally unique id (theme, kind, sanitized name, nonce).
        theme: Theme the node belongs to.
        place_name: Display name, unique per theme and kind.
        position: Layout coordinate.
        is_leaf: Leaf nodes are fine-grained places inside a main node.
        parent_node_id: Id of the containing node; main nodes have none.
        description: Short description.
        aliases: Other names for the place.
        status: Discovery status.
    """

    id: str
    theme: str = ""
    place_name: str = Field(min_length=1)
    position: Position = Field(default_factory=Position)
    is_leaf: bool = False
    parent_node_id: str | None = None
    description: str = ""
    aliases: list[str] = Field(default_factory=list)
    status: str = NodeStatus.DISCOVERED.value

    def matches(self, name: str) -> bool:
        """Case-insensitive match against the place name or an alias."""
        needle = name.strip().casefold()
        if self.place_name.casefold() == needle:
            return True
        return any(alias.casefold() == needle for alias in self.aliases)


class LocationEdge(BaseModel):
    """A connection between two nodes."""

    id: str
    source_node_id: str
    target_node_id: str
    type: str = EdgeType.PATH.value
    status: str = EdgeStatus.OPEN.value
    travel_time: str | None = None
    description: str | None = None

    def connects(self, a: str, b: str) -> bool:
        """True if the edge joins ``a`` and ``b`` in either direction."""
        return {self.source_node_id, self.target_node_id} == {a, b}


class LocationGraph(BaseModel):
    """Nodes plus edges. Treated as a value: mutation returns a new graph."""

    nodes: list[LocationNode] = Field(default_factory=list)
    edges: list[LocationEdge] = Field(default_factory=list)

    def node_by_id(self, node_id: str) -> LocationNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def containment_count(self, node_id: str) -> int:
        """Number of containment edges touching ``node_id``."""
        return sum(
            1
            for e in self.edges
            if e.type == CONTAINMENT and node_id in (e.source_node_id, e.target_node_id)
        )


class NodeAdd(BaseModel):
    """Create a node. ``parent_place_name`` is resolved by name at apply time."""

    place_name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    aliases: list[str] = Field(default_factory=list)
    status: str
    is_leaf: bool = False
    parent_place_name: str | None = None
    position: Position | None = None


class NodeUpdate(BaseModel):
    """Change a node addressed by its current place name."""

    place_name: str = Field(min_length=1)
    new_place_name: str | None = None
    description: str | None = None
    aliases: list[str] | None = None
    status: str | None = None
    is_leaf: bool | None = None
    parent_place_name: str | None = None


class NodeRemove(BaseModel):
    place_name: str = Field(min_length=1)


class EdgeAdd(BaseModel):
    """Connect two places addressed by name."""

    source_place_name: str = Field(min_length=1)
    target_place_name: str = Field(min_length=1)
    type: str
    status: str
    travel_time: str | None = None
    description: str | None = None


class EdgeUpdate(BaseModel):
    source_place_name: str = Field(min_length=1)
    target_place_name: str = Field(min_length=1)
    type: str | None = None
    status: str | None = None
    travel_time: str | None = None
    description: str | None = None


class EdgeRemove(BaseModel):
    """Remove edges between two places; ``type`` narrows the removal."""

    source_place_name: str = Field(min_length=1)
    target_place_name: str = Field(min_length=1)
    type: str | None = None


class MapUpdateBatch(BaseModel):
    """One batch of map-update operations keyed by place names."""

    nodes_to_add: list[NodeAdd] = Field(default_factory=list)
    nodes_to_update: list[NodeUpdate] = Field(default_factory=list)
    nodes_to_remove: list[NodeRemove] = Field(default_factory=list)
    edges_to_add: list[EdgeAdd] = Field(default_factory=list)
    edges_to_update: list[EdgeUpdate] = Field(default_factory=list)
    edges_to_remove: list[EdgeRemove] = Field(default_factory=list)
    suggested_current_node: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.nodes_to_add
            or self.nodes_to_update
            or self.nodes_to_remove
            or self.edges_to_add
            or self.edges_to_update
            or self.edges_to_remove
        )
