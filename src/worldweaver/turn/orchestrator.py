"""Bounded retry loop that turns storyteller completions into turn outcomes.

One attempt runs the whole pipeline over a completion::

    decode -> SchemaGate -> dialogue evaluation -> entity reconciliation
           -> participant revalidation -> options fallback

:func:`parse_turn_response` is a single attempt over already-received text.
:class:`TurnParseOrchestrator` calls the collaborator, runs an attempt, and
re-prompts with parser feedback until an attempt succeeds or the bound is
reached.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from worldweaver.config import WeaverConfig
from worldweaver.corrections.base import RepairContext
from worldweaver.dialogue.validator import DialogueSetupValidator
from worldweaver.entities.reconciler import EntityReconciler
from worldweaver.entities.resolver import EntityResolver
from worldweaver.errors import FailureReason, format_feedback
from worldweaver.models.turn import TurnOutcome
from worldweaver.observability.logging import bind_turn_context, clear_turn_context, get_logger
from worldweaver.parsing.schema_gate import check_turn_payload
from worldweaver.parsing.wire import decode_response
from worldweaver.providers.base import CollaboratorError, CompletionOptions

if TYPE_CHECKING:
    from collections.abc import Sequence

    from worldweaver.config import TurnConfig
    from worldweaver.models.entities import Entity
    from worldweaver.parsing.schema_gate import TurnRecord
    from worldweaver.providers.base import Collaborator

log = get_logger(__name__)

DEFAULT_PARSER_FEEDBACK = (
    "The previous response could not be parsed. Return strictly valid JSON that matches "
    "the provided schema without extra commentary."
)
OPTION_PLACEHOLDER = "..."

LOCAL_TIME_DEFAULT = "Time Unknown"
LOCAL_ENVIRONMENT_DEFAULT = "Environment Undetermined"
LOCAL_PLACE_DEFAULT = "Undetermined Location"


@dataclass
class AttemptResult:
    """Outcome of one pass over a completion."""

    outcome: TurnOutcome | None
    reason: FailureReason | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is not None


@dataclass
class AttemptRecord:
    """Diagnostic snapshot of one orchestrator attempt.

    Attributes:
        attempt: One-based attempt number.
        prompt: Prompt actually sent, including any parser feedback.
        raw_text: Completion text, or None if the call failed.
        thought_trace: Reasoning summaries returned with the completion.
        parsed: Outcome produced by the attempt, if any.
        error: Failure message, if any.
        reason: Failure reason, if any.
    """

    attempt: int
    prompt: str
    raw_text: str | None = None
    thought_trace: list[str] = field(default_factory=list)
    parsed: TurnOutcome | None = None
    error: str | None = None
    reason: FailureReason | None = None


@dataclass
class TurnParseResult:
    """What the orchestrator hands back to the caller.

    ``data`` is None exactly when every attempt failed; ``error`` and
    ``reason`` then describe the failure.
    """

    data: TurnOutcome | None
    error: str | None = None
    reason: FailureReason | None = None
    attempts: int = 0
    debug_records: list[AttemptRecord] = field(default_factory=list)
    consecutive_failures: int = 0

    @property
    def ok(self) -> bool:
        return self.data is not None


def normalize_options(options: Sequence[str], count: int) -> list[str]:
    """Trim options and pad with placeholders or truncate to ``count``."""
    cleaned = [o.strip() for o in options if o.strip()]
    if len(cleaned) < count:
        cleaned.extend([OPTION_PLACEHOLDER] * (count - len(cleaned)))
    return cleaned[:count]


def _trimmed_or(value: str | None, default: str) -> str:
    if value is None or not value.strip():
        return default
    return value.strip()


def _dict_items(items: list[Any]) -> list[dict[str, Any]]:
    kept = [item for item in items if isinstance(item, dict)]
    if len(kept) != len(items):
        log.warning("new_items_dropped", count=len(items) - len(kept))
    return kept


def _build_outcome(
    record: TurnRecord,
    *,
    options: list[str],
    dialogue_setup: Any,
    entities_added: list[Entity],
    entities_updated: list[Any],
) -> TurnOutcome:
    return TurnOutcome(
        scene_description=record.scene_description,
        options=options,
        dialogue_setup=dialogue_setup,
        entities_added=entities_added,
        entities_updated=entities_updated,
        log_message=record.log_message,
        main_quest=record.main_quest,
        current_objective=record.current_objective,
        objective_achieved=bool(record.objective_achieved),
        local_time=_trimmed_or(record.local_time, LOCAL_TIME_DEFAULT),
        local_environment=_trimmed_or(record.local_environment, LOCAL_ENVIRONMENT_DEFAULT),
        local_place=_trimmed_or(record.local_place, LOCAL_PLACE_DEFAULT),
        current_map_node_id=record.current_map_node_id,
        map_updated=record.map_updated,
        map_hint=record.map_hint,
        player_items_hint=record.player_items_hint,
        world_items_hint=record.world_items_hint,
        npc_items_hint=record.npc_items_hint,
        new_items=_dict_items(record.new_items),
    )


async def parse_turn_response(
    text: str,
    registry: Sequence[Entity],
    *,
    collaborator: Collaborator,
    config: WeaverConfig | None = None,
    context: RepairContext | None = None,
) -> AttemptResult:
    """Run one attempt of the turn pipeline over a completion.

    Corrective calls (names, entity details, dialogue setup) go through
    ``collaborator``; the completion itself is not re-requested here.

    Args:
        text: Raw completion text.
        registry: Entities known before this turn. Not modified.
        collaborator: Capability used for corrective calls.
        config: Settings; defaults when None.
        context: Theme guidance and known places for corrective prompts.

    Returns:
        AttemptResult with the outcome, or the failure reason and message.
    """
    config = config or WeaverConfig()
    turn_config: TurnConfig = config.turn

    decoded = decode_response(text)
    if not decoded.ok:
        log.warning("turn_payload_undecodable", error=decoded.error)
        return AttemptResult(
            outcome=None,
            reason=FailureReason.JSON_PARSE_FAILED,
            error=format_feedback([f"Response is not valid JSON: {decoded.error}"]),
        )

    gate = check_turn_payload(decoded.value)
    if gate.record is None:
        log.warning("turn_payload_rejected", reason=str(gate.reason), errors=list(gate.errors))
        return AttemptResult(outcome=None, reason=gate.reason, error=format_feedback(list(gate.errors)))
    record = gate.record

    context = replace(
        context or RepairContext(),
        log_message=record.log_message,
        scene_description=record.scene_description,
    )
    resolver = EntityResolver(
        collaborator,
        context,
        retries=config.retries,
        temperature=config.correction_temperature,
    )
    validator = DialogueSetupValidator(
        collaborator,
        context,
        turn_config=turn_config,
        retries=config.retries,
        temperature=config.correction_temperature,
    )
    reconciler = EntityReconciler(
        collaborator,
        resolver,
        context,
        turn_config=turn_config,
        retries=config.retries,
        temperature=config.correction_temperature,
    )

    decision = await validator.evaluate(record, registry)
    if decision.failed:
        log.warning("turn_options_invalid", reason=str(decision.reason))
        return AttemptResult(outcome=None, reason=decision.reason, error=format_feedback(decision.errors))

    reconciled = await reconciler.reconcile(record.entities_added, record.entities_updated, registry)

    decision = await validator.revalidate_participants(
        decision,
        resolver,
        [*registry, *reconciled.added],
        extra_names=[u.name for u in reconciled.updated],
    )

    if decision.is_dialogue:
        options: list[str] = []
    else:
        options = normalize_options(
            decision.options or validator.fallback_options(decision.proposed_options),
            turn_config.options_count,
        )

    outcome = _build_outcome(
        record,
        options=options,
        dialogue_setup=decision.setup if decision.is_dialogue else None,
        entities_added=reconciled.added,
        entities_updated=reconciled.updated,
    )
    log.debug(
        "turn_parsed",
        dialogue=outcome.is_dialogue_turn,
        added=len(outcome.entities_added),
        updated=len(outcome.entities_updated),
    )
    return AttemptResult(outcome=outcome)


class TurnParseOrchestrator:
    """Drives the bounded request/parse/re-prompt loop for storyteller turns.

    The orchestrator keeps a consecutive-failure count across turns: success
    resets it, an exhausted turn increments it.
    """

    def __init__(self, collaborator: Collaborator, config: WeaverConfig | None = None) -> None:
        self._collaborator = collaborator
        self._config = config or WeaverConfig()
        self.consecutive_failures = 0

    @property
    def max_attempts(self) -> int:
        return self._config.retries.max_attempts

    async def run(
        self,
        prompt: str,
        system_instruction: str,
        registry: Sequence[Entity],
        context: RepairContext | None = None,
    ) -> TurnParseResult:
        """Request and parse one turn.

        Args:
            prompt: Storyteller prompt.
            system_instruction: Storyteller system prompt.
            registry: Entities known before this turn. Not modified.
            context: Theme guidance and known places for corrective prompts.

        Returns:
            TurnParseResult. On exhaustion ``data`` is None and ``reason`` is
            the first reason recorded.

        Raises:
            KeyboardInterrupt, asyncio.CancelledError: Never swallowed.
        """
        records: list[AttemptRecord] = []
        reason: FailureReason | None = None
        error: str | None = None
        retries = self._config.retries

        try:
            for attempt in range(self.max_attempts):
                bind_turn_context(turn_attempt=attempt + 1)
                prompt_used = (
                    prompt
                    if attempt == 0
                    else f"{prompt}\n\n[Parser Feedback]\n{error or DEFAULT_PARSER_FEEDBACK}"
                )
                debug = AttemptRecord(attempt=attempt + 1, prompt=prompt_used)
                records.append(debug)

                try:
                    completion = await self._collaborator.complete(
                        prompt_used,
                        system_instruction,
                        CompletionOptions(label="turn"),
                    )
                    debug.raw_text = completion.text
                    debug.thought_trace = list(completion.thought_trace)

                    result = await parse_turn_response(
                        completion.text,
                        registry,
                        collaborator=self._collaborator,
                        config=self._config,
                        context=context,
                    )
                except CollaboratorError as e:
                    debug.error = str(e)
                    debug.reason = FailureReason.UNKNOWN
                    error = str(e)
                    reason = reason or FailureReason.UNKNOWN
                    if not e.retryable:
                        log.error("turn_request_failed", error=str(e), retryable=False)
                        break
                    log.warning("turn_request_failed", error=str(e), retryable=True)
                    if attempt < self.max_attempts - 1:
                        delay_ms = (
                            max(retries.delay_ms, retries.transient_delay_ms)
                            if e.transient
                            else retries.delay_ms
                        )
                        await asyncio.sleep(delay_ms / 1000)
                    continue

                debug.parsed = result.outcome
                debug.error = result.error
                debug.reason = result.reason

                if result.outcome is not None:
                    self.consecutive_failures = 0
                    log.info("turn_parse_succeeded", attempts=attempt + 1)
                    return TurnParseResult(
                        data=result.outcome,
                        attempts=attempt + 1,
                        debug_records=records,
                        consecutive_failures=0,
                    )

                error = result.error
                if reason is None or reason == FailureReason.UNKNOWN:
                    reason = result.reason or FailureReason.UNKNOWN
                log.warning(
                    "turn_attempt_failed",
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    reason=str(result.reason),
                )
        finally:
            clear_turn_context()

        self.consecutive_failures += 1
        log.error(
            "turn_parse_failed",
            attempts=len(records),
            reason=str(reason),
            consecutive_failures=self.consecutive_failures,
        )
        return TurnParseResult(
            data=None,
            error=error or "The storyteller response could not be used.",
            reason=reason or FailureReason.RETRIES_EXHAUSTED,
            attempts=len(records),
            debug_records=records,
            consecutive_failures=self.consecutive_failures,
        )
