"""Validation of map-update payloads.

Turns a decoded payload into a typed :class:`MapUpdateBatch`. Status and
type synonyms are normalized first so near-miss vocabulary is not treated
as an error. Items may be flat or carry their fields under ``data`` /
``newData``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from worldweaver.config import DEFAULT_MAX_NODE_DESCRIPTION
from worldweaver.models.graph import (
    EdgeAdd,
    EdgeRemove,
    EdgeStatus,
    EdgeType,
    EdgeUpdate,
    MapUpdateBatch,
    NodeAdd,
    NodeRemove,
    NodeStatus,
    NodeUpdate,
)
from worldweaver.parsing.shapes import is_string_list, non_empty_string, type_name

NODE_STATUS_VALUES = frozenset(s.value for s in NodeStatus)
EDGE_TYPE_VALUES = frozenset(t.value for t in EdgeType)
EDGE_STATUS_VALUES = frozenset(s.value for s in EdgeStatus)

NODE_STATUS_SYNONYMS = {
    "known": "discovered",
    "visited": "discovered",
    "explored": "discovered",
    "unknown": "undiscovered",
    "unexplored": "undiscovered",
    "rumoured": "rumored",
    "rumor": "rumored",
    "objective": "quest_target",
    "quest target": "quest_target",
    "target": "quest_target",
    "inaccessible": "blocked",
    "sealed": "blocked",
}
EDGE_TYPE_SYNONYMS = {
    "trail": "path",
    "footpath": "path",
    "passage": "path",
    "street": "road",
    "highway": "road",
    "sea_route": "sea route",
    "searoute": "sea route",
    "doorway": "door",
    "gate": "door",
    "portal": "teleporter",
    "secret passage": "secret_passage",
    "ford": "river_crossing",
    "river crossing": "river_crossing",
    "bridge": "temporary_bridge",
    "contains": "containment",
    "contained": "containment",
    "parent": "containment",
}
EDGE_STATUS_SYNONYMS = {
    "unlocked": "open",
    "passable": "accessible",
    "shut": "closed",
    "impassable": "blocked",
    "secret": "hidden",
    "rumoured": "rumored",
    "one-way": "one_way",
    "one way": "one_way",
    "destroyed": "collapsed",
}

_PAYLOAD_KEYS = (
    "nodesToAdd",
    "nodesToUpdate",
    "nodesToRemove",
    "edgesToAdd",
    "edgesToUpdate",
    "edgesToRemove",
)


@dataclass
class MapPayloadParse:
    """Outcome of :func:`parse_map_update`."""

    batch: MapUpdateBatch | None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.batch is not None


def _canonical(value: Any, synonyms: dict[str, str]) -> Any:
    if not isinstance(value, str):
        return value
    key = value.strip().lower()
    return synonyms.get(key, key)


def _flatten(item: Any) -> Any:
    """Merge a nested ``data``/``newData`` block into the item."""
    if not isinstance(item, dict):
        return item
    flat = {k: v for k, v in item.items() if k not in ("data", "newData")}
    for nested_key in ("data", "newData"):
        nested = item.get(nested_key)
        if isinstance(nested, dict):
            flat.update(nested)
    return flat


def normalize_synonyms(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a copy with flattened items and canonical status/type values."""
    result = dict(payload)
    for key in _PAYLOAD_KEYS:
        items = payload.get(key)
        if not isinstance(items, list):
            continue
        normalized = []
        for item in items:
            flat = _flatten(item)
            if isinstance(flat, dict):
                if key.startswith("nodes") and "status" in flat:
                    flat["status"] = _canonical(flat["status"], NODE_STATUS_SYNONYMS)
                if key.startswith("edges"):
                    if "type" in flat:
                        flat["type"] = _canonical(flat["type"], EDGE_TYPE_SYNONYMS)
                    if "status" in flat:
                        flat["status"] = _canonical(flat["status"], EDGE_STATUS_SYNONYMS)
            normalized.append(flat)
        result[key] = normalized
    return result


def _parent_name(item: dict[str, Any]) -> Any:
    for key in ("parentPlaceName", "parentNodeName", "parentNodeId"):
        if key in item:
            return item[key]
    return None


def _check_optional(item: dict[str, Any], where: str, errors: list[str]) -> None:
    for key in ("description", "travelTime", "newPlaceName"):
        if key in item and not isinstance(item[key], str):
            errors.append(f"{where}.{key} must be a string")
    if "aliases" in item and not is_string_list(item["aliases"]):
        errors.append(f"{where}.aliases must be an array of strings")
    if "isLeaf" in item and not isinstance(item["isLeaf"], bool):
        errors.append(f"{where}.isLeaf must be a boolean")
    parent = _parent_name(item)
    if parent is not None and not isinstance(parent, str):
        errors.append(f"{where}.parentPlaceName must be a string")


def _parse_node_add(item: Any, where: str, max_description: int, errors: list[str]) -> NodeAdd | None:
    if not isinstance(item, dict):
        errors.append(f"{where} must be an object, got {type_name(item)}")
        return None
    before = len(errors)
    if not non_empty_string(item.get("placeName")):
        errors.append(f"{where}.placeName must be a non-empty string")
    description = item.get("description")
    if not non_empty_string(description):
        errors.append(f"{where}.description is required and must be a non-empty string")
    elif len(description.strip()) >= max_description:
        errors.append(f"{where}.description must be shorter than {max_description} characters")
    if not is_string_list(item.get("aliases")):
        errors.append(f"{where}.aliases is required and must be an array of strings (can be empty)")
    if item.get("status") not in NODE_STATUS_VALUES:
        errors.append(
            f"{where}.status {item.get('status')!r} is invalid; use one of {', '.join(sorted(NODE_STATUS_VALUES))}"
        )
    _check_optional(item, where, errors)
    if len(errors) > before:
        return None
    parent = _parent_name(item)
    return NodeAdd(
        place_name=item["placeName"].strip(),
        description=description.strip(),
        aliases=list(item["aliases"]),
        status=item["status"],
        is_leaf=item.get("isLeaf", parent is not None),
        parent_place_name=parent.strip() if parent and parent.strip() else None,
    )


def _parse_node_update(item: Any, where: str, errors: list[str]) -> NodeUpdate | None:
    if not isinstance(item, dict):
        errors.append(f"{where} must be an object, got {type_name(item)}")
        return None
    before = len(errors)
    if not non_empty_string(item.get("placeName")):
        errors.append(f"{where}.placeName must be a non-empty string")
    if "status" in item and item["status"] not in NODE_STATUS_VALUES:
        errors.append(f"{where}.status {item['status']!r} is invalid")
    _check_optional(item, where, errors)
    if len(errors) > before:
        return None
    parent = _parent_name(item)
    return NodeUpdate(
        place_name=item["placeName"].strip(),
        new_place_name=(item.get("newPlaceName") or "").strip() or None,
        description=item.get("description"),
        aliases=item.get("aliases"),
        status=item.get("status"),
        is_leaf=item.get("isLeaf"),
        parent_place_name=parent,
    )


def _parse_node_remove(item: Any, where: str, errors: list[str]) -> NodeRemove | None:
    name = item if isinstance(item, str) else item.get("placeName") if isinstance(item, dict) else None
    if not non_empty_string(name):
        errors.append(f"{where}.placeName must be a non-empty string")
        return None
    return NodeRemove(place_name=name.strip())


def _endpoints(item: Any, where: str, errors: list[str]) -> tuple[str, str] | None:
    if not isinstance(item, dict):
        errors.append(f"{where} must be an object, got {type_name(item)}")
        return None
    source, target = item.get("sourcePlaceName"), item.get("targetPlaceName")
    if not non_empty_string(source) or not non_empty_string(target):
        errors.append(f"{where} needs non-empty sourcePlaceName and targetPlaceName")
        return None
    return source.strip(), target.strip()


def _parse_edge_add(item: Any, where: str, errors: list[str]) -> EdgeAdd | None:
    ends = _endpoints(item, where, errors)
    if ends is None:
        return None
    before = len(errors)
    if item.get("type") not in EDGE_TYPE_VALUES:
        errors.append(f"{where}.type {item.get('type')!r} is invalid; use one of {', '.join(sorted(EDGE_TYPE_VALUES))}")
    if item.get("status") not in EDGE_STATUS_VALUES:
        errors.append(f"{where}.status {item.get('status')!r} is invalid")
    _check_optional(item, where, errors)
    if len(errors) > before:
        return None
    return EdgeAdd(
        source_place_name=ends[0],
        target_place_name=ends[1],
        type=item["type"],
        status=item["status"],
        travel_time=item.get("travelTime"),
        description=item.get("description"),
    )


def _parse_edge_update(item: Any, where: str, errors: list[str]) -> EdgeUpdate | None:
    ends = _endpoints(item, where, errors)
    if ends is None:
        return None
    before = len(errors)
    if "type" in item and item["type"] not in EDGE_TYPE_VALUES:
        errors.append(f"{where}.type {item['type']!r} is invalid")
    if "status" in item and item["status"] not in EDGE_STATUS_VALUES:
        errors.append(f"{where}.status {item['status']!r} is invalid")
    _check_optional(item, where, errors)
    if len(errors) > before:
        return None
    return EdgeUpdate(
        source_place_name=ends[0],
        target_place_name=ends[1],
        type=item.get("type"),
        status=item.get("status"),
        travel_time=item.get("travelTime"),
        description=item.get("description"),
    )


def _parse_edge_remove(item: Any, where: str, errors: list[str]) -> EdgeRemove | None:
    ends = _endpoints(item, where, errors)
    if ends is None:
        return None
    edge_type = item.get("type")
    if edge_type is not None and edge_type not in EDGE_TYPE_VALUES:
        errors.append(f"{where}.type {edge_type!r} is invalid")
        return None
    return EdgeRemove(source_place_name=ends[0], target_place_name=ends[1], type=edge_type)


def parse_map_update(value: Any, max_description: int = DEFAULT_MAX_NODE_DESCRIPTION) -> MapPayloadParse:
    """Validate a decoded map-update payload.

    Args:
        value: Decoded JSON value.
        max_description: Exclusive upper bound for node descriptions.

    Returns:
        MapPayloadParse with the typed batch, or every error found.
    """
    if not isinstance(value, dict):
        return MapPayloadParse(batch=None, errors=[f"Expected a JSON object, got {type_name(value)}"])
    if not any(key in value for key in _PAYLOAD_KEYS) and "suggestedCurrentMapNodeId" not in value:
        return MapPayloadParse(batch=None, errors=["Payload contains no map-update keys"])

    payload = normalize_synonyms(value)
    errors: list[str] = []
    for key in _PAYLOAD_KEYS:
        if key in payload and not isinstance(payload[key], list):
            errors.append(f"'{key}' must be an array")
    if errors:
        return MapPayloadParse(batch=None, errors=errors)

    def _items(key: str) -> list[tuple[str, Any]]:
        return [(f"{key}[{i}]", item) for i, item in enumerate(payload.get(key, []))]

    nodes_to_add = [_parse_node_add(item, w, max_description, errors) for w, item in _items("nodesToAdd")]
    nodes_to_update = [_parse_node_update(item, w, errors) for w, item in _items("nodesToUpdate")]
    nodes_to_remove = [_parse_node_remove(item, w, errors) for w, item in _items("nodesToRemove")]
    edges_to_add = [_parse_edge_add(item, w, errors) for w, item in _items("edgesToAdd")]
    edges_to_update = [_parse_edge_update(item, w, errors) for w, item in _items("edgesToUpdate")]
    edges_to_remove = [_parse_edge_remove(item, w, errors) for w, item in _items("edgesToRemove")]

    suggested = payload.get("suggestedCurrentMapNodeId")
    if suggested is not None and not isinstance(suggested, str):
        errors.append("'suggestedCurrentMapNodeId' must be a string")

    if errors:
        return MapPayloadParse(batch=None, errors=errors)
    # Every parser returned a value when no errors were recorded
    return MapPayloadParse(
        batch=MapUpdateBatch(
            nodes_to_add=[n for n in nodes_to_add if n is not None],
            nodes_to_update=[n for n in nodes_to_update if n is not None],
            nodes_to_remove=[n for n in nodes_to_remove if n is not None],
            edges_to_add=[e for e in edges_to_add if e is not None],
            edges_to_update=[e for e in edges_to_update if e is not None],
            edges_to_remove=[e for e in edges_to_remove if e is not None],
            suggested_current_node=suggested,
        )
    )
