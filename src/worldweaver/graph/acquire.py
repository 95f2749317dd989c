"""Retried acquisition of a map-update batch from the collaborator.

Each attempt asks for a batch, validates it, and on validation failure
hands the malformed payload to the graph-payload corrector for a single
repair call. A valid batch whose operations reference unknown places is
re-requested with that feedback while attempts remain. Exhausting the
bound means no map update for the turn; nothing else about the turn is
rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from worldweaver.config import DEFAULT_CORRECTION_TEMPERATURE, GraphConfig, RetryConfig
from worldweaver.corrections.base import RepairContext
from worldweaver.corrections.graph_payload import correct_map_payload
from worldweaver.errors import FailureReason, format_feedback
from worldweaver.graph.mutator import GraphMutator, MapUpdateResult
from worldweaver.observability.logging import get_logger
from worldweaver.parsing.map_payload import parse_map_update
from worldweaver.parsing.wire import decode_response
from worldweaver.providers.base import CollaboratorError, CompletionOptions
from worldweaver.providers.retry import RetryOutcome, retry_collaborator_call

if TYPE_CHECKING:
    from worldweaver.models.graph import LocationGraph, MapUpdateBatch
    from worldweaver.providers.base import Collaborator

log = get_logger(__name__)


@dataclass
class MapAcquisition:
    """Outcome of :meth:`MapUpdateAcquirer.acquire`.

    Attributes:
        result: Applied update, or None when no valid batch was obtained.
        batch: The batch that was applied.
        attempts: Collaborator calls made for the batch itself.
        error: Last validation message when acquisition failed.
        reason: ``graph_validation_failed`` when acquisition failed.
    """

    result: MapUpdateResult | None
    batch: MapUpdateBatch | None = None
    attempts: int = 0
    error: str | None = None
    reason: FailureReason | None = None

    @property
    def updated(self) -> bool:
        return self.result is not None


@dataclass
class _AttemptState:
    feedback: str | None = None
    attempts: int = 0
    batch: MapUpdateBatch | None = None


class MapUpdateAcquirer:
    """Requests, validates, repairs and applies a map-update batch."""

    def __init__(
        self,
        collaborator: Collaborator,
        *,
        mutator: GraphMutator | None = None,
        graph_config: GraphConfig | None = None,
        retries: RetryConfig | None = None,
        temperature: float = DEFAULT_CORRECTION_TEMPERATURE,
    ) -> None:
        self._collaborator = collaborator
        self._graph_config = graph_config or GraphConfig()
        self._mutator = mutator or GraphMutator(self._graph_config)
        self._retries = retries or RetryConfig()
        self._temperature = temperature

    async def acquire(
        self,
        prompt: str,
        system_instruction: str,
        graph: LocationGraph,
        theme: str,
        context: RepairContext | None = None,
    ) -> MapAcquisition:
        """Obtain a valid batch and apply it to a copy of ``graph``.

        Args:
            prompt: Map-update prompt.
            system_instruction: System prompt for the map-update call.
            graph: Current graph; never modified.
            theme: Theme new nodes belong to.
            context: Narrative context for the corrector.

        Returns:
            MapAcquisition with the applied result, or the failure.
        """
        context = context or RepairContext()
        max_attempts = self._retries.max_attempts
        state = _AttemptState()

        async def _attempt(attempt: int) -> RetryOutcome[MapUpdateResult]:
            state.attempts = attempt + 1
            prompt_used = (
                prompt if not state.feedback else f"{prompt}\n\n[Parser Feedback]\n{state.feedback}"
            )
            completion = await self._collaborator.complete(
                prompt_used,
                system_instruction,
                CompletionOptions(label="map_update"),
            )

            decoded = decode_response(completion.text)
            if not decoded.ok:
                state.feedback = format_feedback([f"Invalid JSON: {decoded.error}"])
                log.warning("map_payload_undecodable", attempt=attempt + 1, error=decoded.error)
                return RetryOutcome(result=None)

            parsed = parse_map_update(decoded.value, self._graph_config.max_node_description)
            batch = parsed.batch
            if batch is None:
                validation_error = format_feedback(parsed.errors)
                state.feedback = validation_error
                log.warning("map_payload_invalid", attempt=attempt + 1, errors=parsed.errors)
                batch = await correct_map_payload(
                    self._collaborator,
                    malformed_json=decoded.json_text,
                    validation_error=validation_error,
                    context=context,
                    retries=replace(self._retries, max_retries=0),
                    temperature=self._temperature,
                    max_description=self._graph_config.max_node_description,
                )
                if batch is None:
                    return RetryOutcome(result=None)

            result = self._mutator.apply(graph, batch, theme)
            reference_errors = result.reference_errors
            if reference_errors and attempt < max_attempts - 1:
                state.feedback = "\n\n".join(e.to_llm_feedback() for e in reference_errors)
                log.warning(
                    "map_payload_unresolved_places",
                    attempt=attempt + 1,
                    count=len(reference_errors),
                )
                return RetryOutcome(result=None)

            state.batch = batch
            return RetryOutcome(result=result)

        try:
            result = await retry_collaborator_call(_attempt, self._retries, label="map_update")
        except CollaboratorError as e:
            log.warning("map_update_request_failed", error=str(e), retryable=e.retryable)
            state.feedback = str(e)
            result = None
        if result is None:
            error = state.feedback or "No valid map-update payload was produced."
            log.error("map_update_abandoned", attempts=state.attempts)
            return MapAcquisition(
                result=None,
                attempts=state.attempts,
                error=error,
                reason=FailureReason.GRAPH_VALIDATION_FAILED,
            )
        return MapAcquisition(
            result=result,
            batch=state.batch,
            attempts=state.attempts,
        )
