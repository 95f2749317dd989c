"""Corrective call for map-update payloads that failed validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from worldweaver.config import DEFAULT_CORRECTION_TEMPERATURE, DEFAULT_MAX_NODE_DESCRIPTION
from worldweaver.corrections.base import RepairContext, accept_json, run_repair
from worldweaver.parsing.map_payload import (
    EDGE_STATUS_VALUES,
    EDGE_TYPE_VALUES,
    NODE_STATUS_VALUES,
    parse_map_update,
)

if TYPE_CHECKING:
    from worldweaver.config import RetryConfig
    from worldweaver.models.graph import MapUpdateBatch
    from worldweaver.providers.base import Collaborator

_SYSTEM_INSTRUCTION = (
    "Correct a malformed map-update JSON payload so that it satisfies the documented structure. "
    "Keep the intent of the original operations. Adhere strictly to the JSON format."
)


def _map_prompt(malformed_json: str, validation_error: str, context: RepairContext, max_description: int) -> str:
    return f"""A map-update payload failed validation.

Malformed payload:
```json
{malformed_json}
```

Validation error:
{validation_error}

Narrative Context:
{context.describe()}

Rules:
- Top-level keys: nodesToAdd, nodesToUpdate, nodesToRemove, edgesToAdd, edgesToUpdate, edgesToRemove, suggestedCurrentMapNodeId.
- nodesToAdd items need placeName, description (under {max_description} characters), aliases (array of strings, may be empty) and status.
- Node status is one of: {", ".join(sorted(NODE_STATUS_VALUES))}.
- Edge type is one of: {", ".join(sorted(EDGE_TYPE_VALUES))}.
- Edge status is one of: {", ".join(sorted(EDGE_STATUS_VALUES))}.
- Edges name their endpoints with sourcePlaceName and targetPlaceName.

Respond ONLY with the corrected JSON object."""


async def correct_map_payload(
    collaborator: Collaborator,
    *,
    malformed_json: str,
    validation_error: str,
    context: RepairContext,
    retries: RetryConfig | None = None,
    temperature: float = DEFAULT_CORRECTION_TEMPERATURE,
    max_description: int = DEFAULT_MAX_NODE_DESCRIPTION,
) -> MapUpdateBatch | None:
    """Ask for a corrected map-update payload.

    Args:
        collaborator: Text-completion capability.
        malformed_json: The payload text that failed validation.
        validation_error: Validator message for the failed payload.
        context: Narrative context.
        retries: Retry bounds.
        temperature: Sampling temperature.
        max_description: Node description bound used by validation.

    Returns:
        A validated batch, or None.
    """
    return await run_repair(
        collaborator,
        label="map_payload",
        prompt=_map_prompt(malformed_json, validation_error, context, max_description),
        system_instruction=_SYSTEM_INSTRUCTION,
        accept=accept_json(lambda value: parse_map_update(value, max_description).batch),
        retries=retries,
        temperature=temperature,
    )
