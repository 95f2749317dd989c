"""Decoding and structural validation of raw completions."""

from worldweaver.parsing.dialogue import DialogueParse, parse_dialogue_setup, valid_action_options
from worldweaver.parsing.map_payload import MapPayloadParse, normalize_synonyms, parse_map_update
from worldweaver.parsing.schema_gate import GateResult, TurnRecord, check_turn_payload
from worldweaver.parsing.wire import (
    DecodeResult,
    decode_response,
    extract_json_from_fence,
    strip_null_values,
)

__all__ = [
    "DecodeResult",
    "DialogueParse",
    "GateResult",
    "MapPayloadParse",
    "TurnRecord",
    "check_turn_payload",
    "decode_response",
    "extract_json_from_fence",
    "normalize_synonyms",
    "parse_dialogue_setup",
    "parse_map_update",
    "strip_null_values",
    "valid_action_options",
]
