"""Corrective name resolution against a closed list of valid names."""

from __future__ import annotations

from typing import TYPE_CHECKING

from worldweaver.config import DEFAULT_CORRECTION_TEMPERATURE
from worldweaver.corrections.base import RepairContext, run_repair
from worldweaver.observability.logging import get_logger
from worldweaver.providers.retry import RetryOutcome

if TYPE_CHECKING:
    from collections.abc import Sequence

    from worldweaver.config import RetryConfig
    from worldweaver.providers.base import Collaborator

log = get_logger(__name__)

_QUOTES = "'\"`"


def _name_prompt(entity_kind: str, candidate: str, context: RepairContext, valid: Sequence[str]) -> str:
    names = ", ".join(f'"{n}"' for n in valid)
    return f"""Match a possibly incorrect or partial {entity_kind} name against a list of valid names.
Name provided: "{candidate}"

Narrative Context:
{context.describe()}

The corrected {entity_kind} name MUST be one of these exact, case-sensitive names: [{names}].

Respond ONLY with the single corrected name. If no confident match exists, respond with an empty string."""


async def correct_name(
    collaborator: Collaborator,
    *,
    entity_kind: str,
    candidate: str,
    context: RepairContext,
    valid_names: Sequence[str],
    retries: RetryConfig | None = None,
    temperature: float = DEFAULT_CORRECTION_TEMPERATURE,
) -> str | None:
    """Ask the collaborator which valid name ``candidate`` was meant to be.

    Args:
        collaborator: Text-completion capability.
        entity_kind: What is being named ("NPC name", "dialogue participant").
        candidate: The unresolved name.
        context: Narrative context.
        valid_names: Closed set of acceptable answers.
        retries: Retry bounds.
        temperature: Sampling temperature.

    Returns:
        A member of ``valid_names``, the candidate itself when there is nothing
        to match against, or None when no match was found.
    """
    valid = list(dict.fromkeys(valid_names))
    if not valid:
        log.warning("name_correction_no_candidates", entity_kind=entity_kind, candidate=candidate)
        return candidate

    def _accept(text: str) -> RetryOutcome[str]:
        answer = text.strip().strip(_QUOTES).strip()
        if not answer:
            log.warning("name_correction_no_match", entity_kind=entity_kind, candidate=candidate)
            return RetryOutcome(result=None, retry=False)
        if answer in valid:
            return RetryOutcome(result=answer)
        log.warning(
            "name_correction_invalid_answer",
            entity_kind=entity_kind,
            candidate=candidate,
            answer=answer,
        )
        return RetryOutcome(result=None)

    system_instruction = (
        f"Match a malformed {entity_kind} against a list of valid names using narrative context. "
        "Respond ONLY with the best-matched string from the list, or an empty string."
    )
    return await run_repair(
        collaborator,
        label="name_correction",
        prompt=_name_prompt(entity_kind, candidate, context, valid),
        system_instruction=system_instruction,
        accept=_accept,
        retries=retries,
        temperature=temperature,
        json_mode=False,
    )
