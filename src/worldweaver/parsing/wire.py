"""Wire-format helpers: fence stripping, JSON decoding, null stripping."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

# Matches a single fenced block spanning the whole (trimmed) response
_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding a raw completion.

    Attributes:
        value: Decoded JSON value with nulls stripped, or None on failure.
        error: Decoder message when decoding failed.
        json_text: The text handed to the decoder after fence stripping.
    """

    value: Any
    error: str | None
    json_text: str

    @property
    def ok(self) -> bool:
        return self.error is None


def extract_json_from_fence(text: str) -> str:
    """Strip one surrounding ```/```json fence, if present.

    Text without a fence is returned trimmed.
    """
    trimmed = text.strip()
    match = _FENCE_RE.match(trimmed)
    if match and match.group(1):
        return match.group(1).strip()
    return trimmed


def strip_null_values(data: Any) -> Any:
    """Recursively drop ``None`` values from mappings.

    Optional fields sent as explicit null mean "absent". Lists are walked so
    nested objects are cleaned too; None items inside lists are dropped. The
    input is never mutated.
    """
    if isinstance(data, dict):
        return {key: strip_null_values(value) for key, value in data.items() if value is not None}
    if isinstance(data, list):
        return [strip_null_values(item) for item in data if item is not None]
    return data


def decode_response(text: str) -> DecodeResult:
    """Decode a raw completion into a JSON value.

    Args:
        text: Raw completion text, optionally fenced.

    Returns:
        DecodeResult with the null-stripped value or the decoder error.
    """
    json_text = extract_json_from_fence(text)
    if not json_text:
        return DecodeResult(value=None, error="Response was empty", json_text=json_text)
    try:
        value = json.loads(json_text)
    except json.JSONDecodeError as e:
        return DecodeResult(
            value=None,
            error=f"Invalid JSON at line {e.lineno} column {e.colno}: {e.msg}",
            json_text=json_text,
        )
    return DecodeResult(value=strip_null_values(value), error=None, json_text=json_text)
