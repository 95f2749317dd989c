"""Decide between a dialogue turn and an action turn.

States::

    NO_DIALOGUE                      no dialogue payload; action options required
    PROPOSED -> VALID                payload passed structural checks
    PROPOSED -> CORRECTED            payload repaired by the dialogue corrector
    PROPOSED -> CANCELLED            repair failed; fall back to action options

A dialogue turn and action options are mutually exclusive. After entity
reconciliation, participants are checked again against the final entity
set and the dialogue is cancelled if none survive.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import ValidationError

from worldweaver.config import DEFAULT_CORRECTION_TEMPERATURE, TurnConfig
from worldweaver.corrections.dialogue import correct_dialogue_setup
from worldweaver.entities.payloads import parse_entity_add, parse_entity_update
from worldweaver.errors import FailureReason
from worldweaver.models.entities import Entity
from worldweaver.observability.logging import get_logger
from worldweaver.parsing.dialogue import parse_dialogue_setup, valid_action_options

if TYPE_CHECKING:
    from collections.abc import Sequence

    from worldweaver.config import RetryConfig
    from worldweaver.corrections.base import RepairContext
    from worldweaver.entities.resolver import EntityResolver
    from worldweaver.models.dialogue import DialogueSetup
    from worldweaver.parsing.schema_gate import TurnRecord
    from worldweaver.providers.base import Collaborator

log = get_logger(__name__)


class DialogueState(StrEnum):
    NO_DIALOGUE = "no_dialogue"
    PROPOSED = "proposed"
    VALID = "valid"
    CORRECTED = "corrected"
    CANCELLED = "cancelled"


@dataclass
class DialogueDecision:
    """Result of dialogue validation for one turn.

    Attributes:
        state: Final state of the dialogue state machine.
        setup: Dialogue setup for dialogue turns, else None.
        options: Action options; empty for dialogue turns.
        proposed_options: Valid action options found in the payload, kept in
            case the dialogue is cancelled later.
        reason: Set when the turn cannot proceed (missing/invalid options).
        errors: Human-readable problems found along the way.
    """

    state: DialogueState
    setup: DialogueSetup | None = None
    options: list[str] = field(default_factory=list)
    proposed_options: list[str] | None = None
    reason: FailureReason | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def is_dialogue(self) -> bool:
        return self.state in (DialogueState.VALID, DialogueState.CORRECTED)

    @property
    def failed(self) -> bool:
        return self.reason is not None


def materialize_turn_entities(record: TurnRecord, known: Sequence[Entity]) -> list[Entity]:
    """Known entities plus this turn's proposed adds and updates as records.

    Used as the context registry for the dialogue corrector. Invalid
    proposals are skipped; nothing here is persisted.
    """
    entities = list(known)
    by_name = {e.name: e for e in entities}
    for raw in record.entities_added:
        entity = parse_entity_add(raw).entity
        if entity is not None and entity.name not in by_name:
            entities.append(entity)
            by_name[entity.name] = entity
    for raw in record.entities_updated:
        update = parse_entity_update(raw).update
        if update is None:
            continue
        existing = by_name.get(update.name)
        if existing is not None:
            merged = update.apply_to(existing)
            entities[entities.index(existing)] = merged
            by_name[update.name] = merged
            continue
        try:
            entity = Entity(
                name=update.name,
                description=update.new_description or "Updated NPC",
                aliases=update.new_aliases or [],
                presence_status=update.new_presence_status or "unknown",
                precise_location=update.new_precise_location,
                last_known_location=update.new_last_known_location,
            )
        except ValidationError:
            continue
        entities.append(entity)
        by_name[entity.name] = entity
    return entities


class DialogueSetupValidator:
    """Runs the dialogue state machine for one turn."""

    def __init__(
        self,
        collaborator: Collaborator,
        context: RepairContext,
        *,
        turn_config: TurnConfig | None = None,
        retries: RetryConfig | None = None,
        temperature: float = DEFAULT_CORRECTION_TEMPERATURE,
    ) -> None:
        self._collaborator = collaborator
        self._context = context
        self._turn = turn_config or TurnConfig()
        self._retries = retries
        self._temperature = temperature

    def fallback_options(self, proposed: list[str] | None) -> list[str]:
        """Action options to use once a dialogue is cancelled."""
        if proposed:
            return list(proposed)
        log.warning("dialogue_fallback_options", reason="no_valid_options")
        return list(self._turn.fallback_options)

    async def evaluate(self, record: TurnRecord, known: Sequence[Entity]) -> DialogueDecision:
        """Classify the turn and validate or repair its dialogue payload.

        Args:
            record: Sanitized turn record.
            known: Entities known before this turn.

        Returns:
            DialogueDecision. ``reason`` is ``invalid_options`` only when the
            turn has no dialogue and no valid action options.
        """
        proposed = valid_action_options(record.options)
        raw_setup = record.dialogue_setup

        if raw_setup is None:
            if proposed is None:
                return DialogueDecision(
                    state=DialogueState.NO_DIALOGUE,
                    reason=FailureReason.INVALID_OPTIONS,
                    errors=["'options' must be a non-empty array of non-empty strings when there is no dialogue"],
                )
            return DialogueDecision(
                state=DialogueState.NO_DIALOGUE,
                options=proposed,
                proposed_options=proposed,
            )

        parsed = parse_dialogue_setup(raw_setup)
        if parsed.setup is not None:
            return DialogueDecision(
                state=DialogueState.VALID,
                setup=parsed.setup,
                proposed_options=proposed,
            )

        log.warning(
            "dialogue_setup_invalid",
            reason=FailureReason.DIALOGUE_STRUCTURALLY_INVALID.value,
            errors=parsed.errors,
        )
        corrected = await correct_dialogue_setup(
            self._collaborator,
            malformed=raw_setup,
            context=self._context,
            entities=materialize_turn_entities(record, known),
            retries=self._retries,
            temperature=self._temperature,
        )
        if corrected is not None:
            log.info("dialogue_setup_corrected", participants=corrected.participants)
            return DialogueDecision(
                state=DialogueState.CORRECTED,
                setup=corrected,
                proposed_options=proposed,
                errors=parsed.errors,
            )

        log.warning("dialogue_setup_cancelled", reason="correction_failed")
        return DialogueDecision(
            state=DialogueState.CANCELLED,
            options=self.fallback_options(proposed),
            proposed_options=proposed,
            errors=parsed.errors,
        )

    async def revalidate_participants(
        self,
        decision: DialogueDecision,
        resolver: EntityResolver,
        available: Sequence[Entity],
        extra_names: Sequence[str] = (),
    ) -> DialogueDecision:
        """Check participants against the turn's final entity set.

        Each participant is resolved with ``resolver``; unresolvable ones are
        dropped along with their opening lines. If no participant survives,
        the dialogue is cancelled and the action-option fallback applies.

        Args:
            decision: Decision from :meth:`evaluate`.
            resolver: Entity resolver for this turn.
            available: Prior entities plus this turn's additions.
            extra_names: Names of this turn's update targets.

        Returns:
            The updated decision (unchanged for non-dialogue turns).
        """
        if not decision.is_dialogue or decision.setup is None:
            return decision

        renamed: dict[str, str] = {}
        for participant in decision.setup.participants:
            resolution = await resolver.resolve(
                participant,
                available,
                extra_names=extra_names,
                entity_kind="dialogue participant",
            )
            if resolution.name is not None:
                renamed[participant] = resolution.name
            else:
                log.warning(
                    "dialogue_participant_dropped",
                    participant=participant,
                    reason=FailureReason.ENTITY_RESOLUTION_FAILED.value,
                )

        participants = list(dict.fromkeys(renamed.values()))
        responses = [
            line.model_copy(update={"speaker": renamed[line.speaker]})
            for line in decision.setup.initial_responses
            if line.speaker in renamed
        ]
        if not participants or not responses:
            log.warning("dialogue_cancelled_no_participants")
            return replace(
                decision,
                state=DialogueState.CANCELLED,
                setup=None,
                options=self.fallback_options(decision.proposed_options),
            )

        setup = decision.setup.model_copy(
            update={"participants": participants, "initial_responses": responses}
        )
        return replace(decision, setup=setup, options=[])
