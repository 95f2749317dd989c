"""Graph operation errors with LLM-actionable feedback.

The mutator never raises these: a failing operation is skipped and the
error is recorded on the result. Each error can format itself as feedback
for a correction prompt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches

from worldweaver.errors import WorldWeaverError


class GraphOperationError(WorldWeaverError):
    """Base class for map-update operations that could not be applied."""

    def to_llm_feedback(self) -> str:
        """Format error as actionable feedback for a correction prompt."""
        raise NotImplementedError


def _suggest(name: str, available: list[str]) -> list[str]:
    by_folded = {a.casefold(): a for a in available}
    matches = get_close_matches(name.casefold(), list(by_folded), n=3, cutoff=0.6)
    return [by_folded[m] for m in matches]


@dataclass
class PlaceNotFoundError(GraphOperationError):
    """An operation referenced a place name that resolves to no node.

    Attributes:
        place_name: The name that was referenced.
        available: Place names that exist in the graph.
        context: Which operation made the reference.
    """

    place_name: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        msg = f"Place '{self.place_name}' not found"
        if self.context:
            msg += f" ({self.context})"
        super().__init__(msg)

    def to_llm_feedback(self) -> str:
        lines = [f"Place '{self.place_name}' does not exist on the map."]
        if self.context:
            lines.append(f"It was referenced by: {self.context}")
        suggestions = _suggest(self.place_name, self.available)
        if suggestions:
            lines.append("Did you mean: " + ", ".join(f"'{s}'" for s in suggestions) + "?")
        if self.available:
            shown = sorted(self.available)[:20]
            lines.append("Known places: " + ", ".join(f"'{a}'" for a in shown))
            if len(self.available) > 20:
                lines.append(f"... and {len(self.available) - 20} more")
        return "\n".join(lines)


@dataclass
class DuplicateEdgeError(GraphOperationError):
    """An edge of the same type already joins the two places."""

    edge_type: str
    source: str
    target: str

    def __post_init__(self) -> None:
        super().__init__(
            f"Edge '{self.edge_type}' between '{self.source}' and '{self.target}' already exists"
        )

    def to_llm_feedback(self) -> str:
        return (
            f"A '{self.edge_type}' connection between '{self.source}' and '{self.target}' "
            "already exists. Use edgesToUpdate to change it, or choose a different type."
        )


@dataclass
class EdgeNotFoundError(GraphOperationError):
    """No edge joins the two places (optionally of the given type)."""

    source: str
    target: str
    edge_type: str | None = None

    def __post_init__(self) -> None:
        kind = f"'{self.edge_type}' edge" if self.edge_type else "Edge"
        super().__init__(f"{kind} between '{self.source}' and '{self.target}' not found")

    def to_llm_feedback(self) -> str:
        return (
            f"There is no connection between '{self.source}' and '{self.target}'"
            + (f" of type '{self.edge_type}'" if self.edge_type else "")
            + ". Add it with edgesToAdd instead."
        )
