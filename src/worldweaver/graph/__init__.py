"""Location graph mutation and map-update acquisition."""

from worldweaver.graph.acquire import MapAcquisition, MapUpdateAcquirer
from worldweaver.graph.errors import (
    DuplicateEdgeError,
    EdgeNotFoundError,
    GraphOperationError,
    PlaceNotFoundError,
)
from worldweaver.graph.mutator import AppliedOp, GraphMutator, MapUpdateResult, SkippedOp, annihilate

__all__ = [
    "AppliedOp",
    "DuplicateEdgeError",
    "EdgeNotFoundError",
    "GraphMutator",
    "GraphOperationError",
    "MapAcquisition",
    "MapUpdateAcquirer",
    "MapUpdateResult",
    "PlaceNotFoundError",
    "SkippedOp",
    "annihilate",
]
