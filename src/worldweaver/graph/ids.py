"""Node and edge id generation.

The id suffix joins a process-wide counter with a random part, so ids never
repeat within one process and do not collide with ids already saved in a
graph by an earlier run. Callers pass the ids already in use as ``taken``
and a colliding candidate is regenerated.
"""

from __future__ import annotations

import itertools
import re
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Container

_counter = itertools.count(1)

_WHITESPACE_RE = re.compile(r"\s+")
_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_]")


def sanitize_name(name: str) -> str:
    """Collapse whitespace to underscores and drop non-alphanumerics."""
    return _UNSAFE_RE.sub("", _WHITESPACE_RE.sub("_", name.strip())) or "place"


def next_nonce() -> str:
    return f"{next(_counter)}{uuid.uuid4().hex[:6]}"


def _unused(prefix: str, taken: Container[str]) -> str:
    candidate = f"{prefix}_{next_nonce()}"
    while candidate in taken:
        candidate = f"{prefix}_{next_nonce()}"
    return candidate


def node_id(theme: str, place_name: str, *, is_leaf: bool, taken: Container[str] = ()) -> str:
    kind = "leaf" if is_leaf else "main"
    return _unused(f"{sanitize_name(theme)}_{kind}_{sanitize_name(place_name)}", taken)


def edge_id(source_id: str, target_id: str, taken: Container[str] = ()) -> str:
    return _unused(f"{source_id}_to_{target_id}", taken)
