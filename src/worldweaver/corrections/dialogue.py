"""Corrective call for malformed dialogue setups."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from worldweaver.config import DEFAULT_CORRECTION_TEMPERATURE
from worldweaver.corrections.base import RepairContext, accept_json, run_repair
from worldweaver.parsing.dialogue import parse_dialogue_setup

if TYPE_CHECKING:
    from collections.abc import Sequence

    from worldweaver.config import RetryConfig
    from worldweaver.models.dialogue import DialogueSetup
    from worldweaver.models.entities import Entity
    from worldweaver.providers.base import Collaborator

_SYSTEM_INSTRUCTION = (
    "Correct a malformed 'dialogueSetup' JSON payload. Participants must be known characters, "
    "opening lines must be spoken by participants, and player options must be varied with the "
    "last one ending the conversation. Adhere strictly to the JSON format."
)


def _describe_entities(entities: Sequence[Entity]) -> str:
    if not entities:
        return "None known yet."
    return "\n".join(
        f' - "{e.name}" ({e.presence_status.value}): {e.description}' for e in entities
    )


def _dialogue_prompt(malformed: Any, context: RepairContext, entities: Sequence[Entity]) -> str:
    return f"""Reconstruct a 'dialogueSetup' object from the narrative context and the malformed data.

Malformed 'dialogueSetup' payload:
```json
{json.dumps(malformed, ensure_ascii=False, default=str)}
```

Narrative Context:
{context.describe()}

Characters available for dialogue:
{_describe_entities(entities)}

Required JSON structure:
{{
  "participants": ["Character Name"],
  "initialNpcResponses": [{{"speaker": "Character Name", "line": "Their first line."}}],
  "initialPlayerOptions": ["at least four options, the last one leaves the conversation"]
}}

Respond ONLY with the corrected JSON object."""


async def correct_dialogue_setup(
    collaborator: Collaborator,
    *,
    malformed: Any,
    context: RepairContext,
    entities: Sequence[Entity],
    retries: RetryConfig | None = None,
    temperature: float = DEFAULT_CORRECTION_TEMPERATURE,
) -> DialogueSetup | None:
    """Ask for a corrected dialogue setup that passes structural validation.

    Args:
        collaborator: Text-completion capability.
        malformed: The payload that failed validation.
        context: Narrative context.
        entities: Known entities plus this turn's proposed ones.
        retries: Retry bounds.
        temperature: Sampling temperature.

    Returns:
        A structurally valid DialogueSetup, or None.
    """
    return await run_repair(
        collaborator,
        label="dialogue_setup",
        prompt=_dialogue_prompt(malformed, context, entities),
        system_instruction=_SYSTEM_INSTRUCTION,
        accept=accept_json(lambda value: parse_dialogue_setup(value).setup),
        retries=retries,
        temperature=temperature,
    )
