"""Apply a batch of map-update operations to a location graph.

Operations address places by name; ids are resolved through indexes built
once per batch. The input graph is never modified: ``apply`` works on a deep
copy and returns it with a log of applied and skipped operations.

Order of application:
    1. Annihilate add/remove pairs for the same place or connection.
    2. Insert main nodes, then leaf nodes (so leaves can parent to new mains).
    3. Update nodes (renames last).
    4. Remove nodes, cascading to their edges.
    5. Add, update, then remove edges.
    6. Promote leaves with enough containment edges to main nodes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from worldweaver.config import GraphConfig
from worldweaver.graph.errors import (
    DuplicateEdgeError,
    EdgeNotFoundError,
    GraphOperationError,
    PlaceNotFoundError,
)
from worldweaver.graph.ids import edge_id, node_id
from worldweaver.models.graph import (
    EdgeAdd,
    EdgeRemove,
    LocationEdge,
    LocationNode,
    MapUpdateBatch,
    NodeAdd,
    NodeRemove,
    Position,
)
from worldweaver.observability.logging import get_logger

if TYPE_CHECKING:
    from worldweaver.models.graph import EdgeUpdate, LocationGraph, NodeUpdate

log = get_logger(__name__)


@dataclass(frozen=True)
class AppliedOp:
    """One operation that changed the graph."""

    kind: str
    target: str


@dataclass(frozen=True)
class SkippedOp:
    """One operation that was not applied, with the reason."""

    kind: str
    target: str
    reason: str
    error: GraphOperationError | None = None


@dataclass
class MapUpdateResult:
    """Next graph version plus the operation log.

    Attributes:
        graph: The mutated copy.
        applied: Operations that changed the graph, in application order.
        skipped: Operations that were rejected or had nothing to act on.
        annihilated: Place or connection names whose add/remove pair cancelled.
        promoted: Ids of leaves promoted to main nodes.
        suggested_current_node_id: Id of the batch's suggested current node, if it resolved.
    """

    graph: LocationGraph
    applied: list[AppliedOp] = field(default_factory=list)
    skipped: list[SkippedOp] = field(default_factory=list)
    annihilated: list[str] = field(default_factory=list)
    promoted: list[str] = field(default_factory=list)
    suggested_current_node_id: str | None = None

    @property
    def changed(self) -> bool:
        return bool(self.applied or self.promoted)

    @property
    def reference_errors(self) -> list[GraphOperationError]:
        """Errors from operations that named places absent from the graph."""
        return [s.error for s in self.skipped if isinstance(s.error, PlaceNotFoundError)]


def _fold(name: str) -> str:
    return name.strip().casefold()


def _pair_key(a: str, b: str) -> frozenset[str]:
    return frozenset((_fold(a), _fold(b)))


def annihilate(batch: MapUpdateBatch) -> tuple[MapUpdateBatch, list[str]]:
    """Cancel add/remove pairs that target the same place or connection.

    Node pairs match on case-insensitive place name. An edge add cancels a
    remove between the same unordered names when the remove names no type
    or the add's type. Each remove cancels at most one add.

    Returns:
        The reduced batch and the names of the cancelled pairs.
    """
    cancelled: list[str] = []

    node_removes = list(batch.nodes_to_remove)
    node_adds: list[NodeAdd] = []
    for add in batch.nodes_to_add:
        match = next((r for r in node_removes if _fold(r.place_name) == _fold(add.place_name)), None)
        if match is None:
            node_adds.append(add)
            continue
        node_removes.remove(match)
        cancelled.append(add.place_name)

    edge_removes = list(batch.edges_to_remove)
    edge_adds: list[EdgeAdd] = []
    for add in batch.edges_to_add:
        key = _pair_key(add.source_place_name, add.target_place_name)
        match = next(
            (
                r
                for r in edge_removes
                if _pair_key(r.source_place_name, r.target_place_name) == key
                and (r.type is None or r.type == add.type)
            ),
            None,
        )
        if match is None:
            edge_adds.append(add)
            continue
        edge_removes.remove(match)
        cancelled.append(f"{add.source_place_name} <-> {add.target_place_name}")

    reduced = batch.model_copy(
        update={
            "nodes_to_add": node_adds,
            "nodes_to_remove": node_removes,
            "edges_to_add": edge_adds,
            "edges_to_remove": edge_removes,
        }
    )
    return reduced, cancelled


class _GraphIndex:
    """Id and name lookups over the working copy, kept in step with mutations."""

    def __init__(self, graph: LocationGraph, theme: str) -> None:
        self.graph = graph
        self.theme = theme
        self.by_id: dict[str, LocationNode] = {n.id: n for n in graph.nodes}
        self.by_name: dict[str, list[str]] = {}
        for node in graph.nodes:
            self._index(node)

    def _index(self, node: LocationNode) -> None:
        self.by_name.setdefault(_fold(node.place_name), []).append(node.id)

    def _unindex(self, node: LocationNode) -> None:
        ids = self.by_name.get(_fold(node.place_name), [])
        if node.id in ids:
            ids.remove(node.id)

    def insert(self, node: LocationNode) -> None:
        self.graph.nodes.append(node)
        self.by_id[node.id] = node
        self._index(node)

    def delete(self, node: LocationNode) -> int:
        """Delete ``node`` and every edge touching it; returns the edge count removed.

        Children that named ``node`` as parent are left without a parent.
        """
        self._unindex(node)
        del self.by_id[node.id]
        self.graph.nodes = [n for n in self.graph.nodes if n.id != node.id]
        for child in self.graph.nodes:
            if child.parent_node_id == node.id:
                child.parent_node_id = None
        before = len(self.graph.edges)
        self.graph.edges = [
            e for e in self.graph.edges if node.id not in (e.source_node_id, e.target_node_id)
        ]
        return before - len(self.graph.edges)

    def rename(self, node: LocationNode, new_name: str) -> None:
        self._unindex(node)
        node.place_name = new_name
        self._index(node)

    def in_theme(self, name: str, *, is_leaf: bool | None = None) -> LocationNode | None:
        """Exact (case-insensitive) place-name lookup within the theme."""
        for nid in self.by_name.get(_fold(name), []):
            node = self.by_id[nid]
            if node.theme == self.theme and (is_leaf is None or node.is_leaf == is_leaf):
                return node
        return None

    def resolve(self, name: str) -> LocationNode | None:
        """Resolve a place name: theme name first, then theme alias, then any theme."""
        node = self.in_theme(name)
        if node is not None:
            return node
        for candidate in self.graph.nodes:
            if candidate.theme == self.theme and candidate.matches(name):
                return candidate
        ids = self.by_name.get(_fold(name), [])
        return self.by_id[ids[0]] if ids else None

    def place_names(self) -> list[str]:
        return [n.place_name for n in self.graph.nodes if n.theme == self.theme]


class GraphMutator:
    """Applies map-update batches to location graphs."""

    def __init__(self, config: GraphConfig | None = None) -> None:
        self._config = config or GraphConfig()

    def apply(self, graph: LocationGraph, batch: MapUpdateBatch, theme: str) -> MapUpdateResult:
        """Apply ``batch`` to a copy of ``graph``.

        Args:
            graph: Current graph; left untouched.
            batch: Operations keyed by place names.
            theme: Theme new nodes belong to and names resolve within.

        Returns:
            MapUpdateResult holding the next graph version.
        """
        working = graph.model_copy(deep=True)
        reduced, cancelled = annihilate(batch)
        result = MapUpdateResult(graph=working, annihilated=cancelled)
        if cancelled:
            log.info("map_ops_annihilated", count=len(cancelled), names=cancelled)

        index = _GraphIndex(working, theme)
        # Names as they stood before this batch, so updates see pre-rename state
        original_names = {n.id: n.place_name for n in working.nodes}

        for add in reduced.nodes_to_add:
            if not add.is_leaf:
                self._insert_node(index, add, result)
        for add in reduced.nodes_to_add:
            if add.is_leaf:
                self._insert_node(index, add, result)

        for update in reduced.nodes_to_update:
            self._update_node(index, update, original_names, result)
        for remove in reduced.nodes_to_remove:
            self._remove_node(index, remove, result)

        for add in reduced.edges_to_add:
            self._add_edge(index, add, result)
        for update in reduced.edges_to_update:
            self._update_edge(index, update, result)
        for remove in reduced.edges_to_remove:
            self._remove_edge(index, remove, result)

        self._promote_leaves(index, result)

        if reduced.suggested_current_node:
            suggested = index.by_id.get(reduced.suggested_current_node) or index.resolve(
                reduced.suggested_current_node
            )
            result.suggested_current_node_id = suggested.id if suggested else None

        log.info(
            "map_update_applied",
            theme=theme,
            applied=len(result.applied),
            skipped=len(result.skipped),
            promoted=len(result.promoted),
        )
        return result

    def _skip(
        self,
        result: MapUpdateResult,
        kind: str,
        target: str,
        reason: str,
        error: GraphOperationError | None = None,
    ) -> None:
        log.warning("map_op_skipped", kind=kind, target=target, reason=reason)
        result.skipped.append(SkippedOp(kind=kind, target=target, reason=reason, error=error))

    def _insert_node(self, index: _GraphIndex, add: NodeAdd, result: MapUpdateResult) -> None:
        existing = index.in_theme(add.place_name, is_leaf=add.is_leaf)
        if existing is not None:
            self._skip(result, "node_add", add.place_name, f"already exists as {existing.id}")
            return

        parent_id = None
        if add.is_leaf and add.parent_place_name:
            parent = index.resolve(add.parent_place_name)
            if parent is None:
                log.warning(
                    "leaf_parent_not_found",
                    place_name=add.place_name,
                    parent=add.parent_place_name,
                )
            else:
                parent_id = parent.id

        node = LocationNode(
            id=node_id(index.theme, add.place_name, is_leaf=add.is_leaf, taken=index.by_id),
            theme=index.theme,
            place_name=add.place_name,
            position=add.position or Position(),
            is_leaf=add.is_leaf,
            parent_node_id=parent_id,
            description=add.description,
            aliases=list(add.aliases),
            status=add.status,
        )
        index.insert(node)
        result.applied.append(AppliedOp(kind="node_add", target=node.id))

    def _update_node(
        self,
        index: _GraphIndex,
        update: NodeUpdate,
        original_names: dict[str, str],
        result: MapUpdateResult,
    ) -> None:
        node = next(
            (
                index.by_id[nid]
                for nid, name in original_names.items()
                if nid in index.by_id
                and index.by_id[nid].theme == index.theme
                and _fold(name) == _fold(update.place_name)
            ),
            None,
        ) or index.resolve(update.place_name)
        if node is None:
            error = PlaceNotFoundError(update.place_name, index.place_names(), "nodesToUpdate")
            self._skip(result, "node_update", update.place_name, str(error), error)
            return

        if update.description is not None:
            node.description = update.description
        if update.aliases is not None:
            node.aliases = list(update.aliases)
        if update.status is not None:
            node.status = update.status
        if update.is_leaf is not None:
            node.is_leaf = update.is_leaf

        if not node.is_leaf:
            node.parent_node_id = None
        elif update.parent_place_name is not None:
            parent = index.resolve(update.parent_place_name)
            if parent is None:
                log.warning(
                    "leaf_parent_not_found",
                    place_name=node.place_name,
                    parent=update.parent_place_name,
                )
            node.parent_node_id = parent.id if parent is not None and parent.id != node.id else None

        if update.new_place_name and update.new_place_name != node.place_name:
            index.rename(node, update.new_place_name)
        result.applied.append(AppliedOp(kind="node_update", target=node.id))

    def _remove_node(self, index: _GraphIndex, remove: NodeRemove, result: MapUpdateResult) -> None:
        node = index.resolve(remove.place_name)
        if node is None:
            error = PlaceNotFoundError(remove.place_name, index.place_names(), "nodesToRemove")
            self._skip(result, "node_remove", remove.place_name, str(error), error)
            return
        edges_removed = index.delete(node)
        log.debug("node_removed", node_id=node.id, edges_removed=edges_removed)
        result.applied.append(AppliedOp(kind="node_remove", target=node.id))

    def _endpoints(
        self,
        index: _GraphIndex,
        kind: str,
        source: str,
        target: str,
        result: MapUpdateResult,
    ) -> tuple[LocationNode, LocationNode] | None:
        src = index.resolve(source)
        tgt = index.resolve(target)
        if src is not None and tgt is not None:
            return src, tgt
        missing = source if src is None else target
        error = PlaceNotFoundError(missing, index.place_names(), f"{kind} {source} -> {target}")
        self._skip(result, kind, f"{source} -> {target}", str(error), error)
        return None

    def _add_edge(self, index: _GraphIndex, add: EdgeAdd, result: MapUpdateResult) -> None:
        ends = self._endpoints(index, "edge_add", add.source_place_name, add.target_place_name, result)
        if ends is None:
            return
        src, tgt = ends
        if any(e.connects(src.id, tgt.id) and e.type == add.type for e in index.graph.edges):
            error = DuplicateEdgeError(add.type, add.source_place_name, add.target_place_name)
            self._skip(result, "edge_add", f"{src.id} -> {tgt.id}", str(error), error)
            return
        edge = LocationEdge(
            id=edge_id(src.id, tgt.id, taken={e.id for e in index.graph.edges}),
            source_node_id=src.id,
            target_node_id=tgt.id,
            type=add.type,
            status=add.status,
            travel_time=add.travel_time,
            description=add.description,
        )
        index.graph.edges.append(edge)
        result.applied.append(AppliedOp(kind="edge_add", target=edge.id))

    def _update_edge(self, index: _GraphIndex, update: EdgeUpdate, result: MapUpdateResult) -> None:
        ends = self._endpoints(
            index, "edge_update", update.source_place_name, update.target_place_name, result
        )
        if ends is None:
            return
        src, tgt = ends
        between = [e for e in index.graph.edges if e.connects(src.id, tgt.id)]
        edge = next((e for e in between if update.type and e.type == update.type), None)
        if edge is None and between:
            edge = between[0]
        if edge is None:
            error = EdgeNotFoundError(update.source_place_name, update.target_place_name, update.type)
            self._skip(result, "edge_update", f"{src.id} -> {tgt.id}", str(error), error)
            return
        for attr in ("type", "status", "travel_time", "description"):
            value = getattr(update, attr)
            if value is not None:
                setattr(edge, attr, value)
        result.applied.append(AppliedOp(kind="edge_update", target=edge.id))

    def _remove_edge(self, index: _GraphIndex, remove: EdgeRemove, result: MapUpdateResult) -> None:
        ends = self._endpoints(
            index, "edge_remove", remove.source_place_name, remove.target_place_name, result
        )
        if ends is None:
            return
        src, tgt = ends
        doomed = [
            e
            for e in index.graph.edges
            if e.connects(src.id, tgt.id) and (remove.type is None or e.type == remove.type)
        ]
        if not doomed:
            error = EdgeNotFoundError(remove.source_place_name, remove.target_place_name, remove.type)
            self._skip(result, "edge_remove", f"{src.id} -> {tgt.id}", str(error), error)
            return
        doomed_ids = {e.id for e in doomed}
        index.graph.edges = [e for e in index.graph.edges if e.id not in doomed_ids]
        result.applied.extend(AppliedOp(kind="edge_remove", target=eid) for eid in sorted(doomed_ids))

    def _promote_leaves(self, index: _GraphIndex, result: MapUpdateResult) -> None:
        threshold = self._config.promotion_threshold
        for node in index.graph.nodes:
            if not node.is_leaf:
                continue
            count = index.graph.containment_count(node.id)
            if count >= threshold:
                node.is_leaf = False
                node.parent_node_id = None
                result.promoted.append(node.id)
                log.info("leaf_promoted", node_id=node.id, containment_edges=count)
