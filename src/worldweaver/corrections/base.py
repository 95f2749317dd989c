"""Shared repair call used by every corrective sub-collaborator.

All four correctors (name, entity detail, dialogue setup, graph payload)
have the same shape: build a prompt from a malformed payload, narrative
context and the valid identifiers, ask the collaborator, and accept the
answer only if a validator approves it. ``run_repair`` is that loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from worldweaver.config import DEFAULT_CORRECTION_TEMPERATURE, RetryConfig
from worldweaver.observability.logging import get_logger
from worldweaver.parsing.wire import decode_response
from worldweaver.providers.base import CollaboratorError, CompletionOptions
from worldweaver.providers.retry import RetryOutcome, retry_collaborator_call

if TYPE_CHECKING:
    from collections.abc import Callable

    from worldweaver.providers.base import Collaborator

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RepairContext:
    """Narrative context handed to every corrective call.

    Attributes:
        log_message: What just happened, from the turn payload.
        scene_description: The turn's narrative text.
        theme_guidance: Style guidance for the current theme.
        known_places: Place names the corrector may reference.
    """

    log_message: str | None = None
    scene_description: str | None = None
    theme_guidance: str = ""
    known_places: tuple[str, ...] = field(default_factory=tuple)

    def describe(self) -> str:
        """Render the context block embedded in corrective prompts."""
        lines = [
            f'- Log Message: "{self.log_message or "Not specified, infer from scene."}"',
            f'- Scene Description: "{self.scene_description or "Not specified, infer from log."}"',
        ]
        if self.known_places:
            lines.append("- Known Places: " + ", ".join(f'"{p}"' for p in self.known_places))
        if self.theme_guidance:
            lines.append(f'- Theme Guidance: "{self.theme_guidance}"')
        return "\n".join(lines)


def accept_json(validate: Callable[[Any], T | None]) -> Callable[[str], RetryOutcome[T]]:
    """Wrap a value validator into a text acceptor that decodes JSON first."""

    def _accept(text: str) -> RetryOutcome[T]:
        decoded = decode_response(text)
        if not decoded.ok:
            return RetryOutcome(result=None)
        return RetryOutcome(result=validate(decoded.value))

    return _accept


async def run_repair(
    collaborator: Collaborator,
    *,
    label: str,
    prompt: str,
    system_instruction: str,
    accept: Callable[[str], RetryOutcome[T]],
    retries: RetryConfig | None = None,
    temperature: float = DEFAULT_CORRECTION_TEMPERATURE,
    json_mode: bool = True,
) -> T | None:
    """Ask the collaborator for a corrected payload.

    Args:
        collaborator: Text-completion capability.
        label: Corrector name for logs.
        prompt: Corrective prompt.
        system_instruction: System prompt.
        accept: Turns response text into a RetryOutcome; a None result
            means "try again" unless ``retry`` is False.
        retries: Retry bounds.
        temperature: Sampling temperature for the corrective call.
        json_mode: Request a JSON response.

    Returns:
        The accepted payload, or None if every attempt was rejected or the
        collaborator failed with a non-retryable error.
    """
    options = CompletionOptions(temperature=temperature, json_mode=json_mode, label=label)

    async def _attempt(attempt: int) -> RetryOutcome[T]:
        completion = await collaborator.complete(prompt, system_instruction, options)
        outcome = accept(completion.text)
        if outcome.result is None and outcome.retry:
            log.warning("correction_rejected", label=label, attempt=attempt + 1)
        return outcome

    try:
        result = await retry_collaborator_call(_attempt, retries, label=label)
    except CollaboratorError as e:
        log.warning("correction_failed", label=label, error=str(e), retryable=e.retryable)
        return None
    if result is not None:
        log.info("correction_accepted", label=label)
    return result
