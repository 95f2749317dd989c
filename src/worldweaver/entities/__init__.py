"""Entity parsing, resolution and reconciliation."""

from worldweaver.entities.payloads import ParsedAdd, ParsedUpdate, parse_entity_add, parse_entity_update
from worldweaver.entities.reconciler import EntityReconciler, ReconcileResult, merge_entities
from worldweaver.entities.resolver import EntityResolver, MatchMethod, Resolution, match_locally

__all__ = [
    "EntityReconciler",
    "EntityResolver",
    "MatchMethod",
    "ParsedAdd",
    "ParsedUpdate",
    "ReconcileResult",
    "Resolution",
    "match_locally",
    "merge_entities",
    "parse_entity_add",
    "parse_entity_update",
]
