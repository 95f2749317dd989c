"""Corrective sub-collaborators that repair malformed payloads."""

from worldweaver.corrections.base import RepairContext, accept_json, run_repair
from worldweaver.corrections.dialogue import correct_dialogue_setup
from worldweaver.corrections.entity import EntityDetails, fetch_entity_details, parse_entity_details
from worldweaver.corrections.graph_payload import correct_map_payload
from worldweaver.corrections.name import correct_name

__all__ = [
    "EntityDetails",
    "RepairContext",
    "accept_json",
    "correct_dialogue_setup",
    "correct_map_payload",
    "correct_name",
    "fetch_entity_details",
    "parse_entity_details",
    "run_repair",
]
