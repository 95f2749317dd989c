"""Tests for dialogue setup validation and the dialogue state machine."""

from __future__ import annotations

from typing import Any

import pytest

from worldweaver.config import RetryConfig, TurnConfig
from worldweaver.corrections.base import RepairContext
from worldweaver.dialogue.validator import (
    DialogueSetupValidator,
    DialogueState,
    materialize_turn_entities,
)
from worldweaver.entities.resolver import EntityResolver
from worldweaver.errors import FailureReason
from worldweaver.models.entities import Entity
from worldweaver.parsing.dialogue import parse_dialogue_setup, valid_action_options
from worldweaver.parsing.schema_gate import TurnRecord

OPTIONS = ["Ask about the sword.", "Haggle.", "Compliment the work.", "Leave."]


def _setup(**overrides: Any) -> dict[str, Any]:
    setup: dict[str, Any] = {
        "participants": ["Elrik"],
        "initialNpcResponses": [{"speaker": "Elrik", "line": "Need a blade?"}],
        "initialPlayerOptions": list(OPTIONS),
    }
    setup.update(overrides)
    return setup


@pytest.fixture
def registry() -> list[Entity]:
    return [Entity(name="Elrik", description="The village blacksmith.")]


def _validator(collaborator, retries: RetryConfig) -> DialogueSetupValidator:
    return DialogueSetupValidator(collaborator, RepairContext(), retries=retries)


class TestParseDialogueSetup:
    """Structural checks."""

    def test_valid_setup(self) -> None:
        parsed = parse_dialogue_setup(_setup())

        assert parsed.setup is not None
        assert parsed.setup.participants == ["Elrik"]
        assert parsed.setup.initial_responses[0].line == "Need a blade?"

    def test_legacy_keys(self) -> None:
        parsed = parse_dialogue_setup(
            {
                "participants": ["Elrik"],
                "initialResponses": [{"speaker": "Elrik", "line": "Hm?"}],
                "initialOptions": list(OPTIONS),
            }
        )

        assert parsed.setup is not None

    @pytest.mark.parametrize(
        ("overrides", "fragment"),
        [
            pytest.param({"participants": []}, "participants", id="no-participants"),
            pytest.param({"initialNpcResponses": []}, "initialNpcResponses", id="no-responses"),
            pytest.param(
                {"initialNpcResponses": [{"speaker": "Mara", "line": "Hi."}]},
                "not a participant",
                id="speaker-not-participant",
            ),
            pytest.param(
                {"initialPlayerOptions": ["Yes.", "No.", "Yes.", "Leave."]},
                "at least 4",
                id="duplicate-options",
            ),
        ],
    )
    def test_invalid_setup(self, overrides: dict[str, Any], fragment: str) -> None:
        parsed = parse_dialogue_setup(_setup(**overrides))

        assert parsed.setup is None
        assert any(fragment in error for error in parsed.errors)


@pytest.mark.parametrize(
    ("options", "expected"),
    [
        pytest.param([" Go north. "], ["Go north."], id="trimmed"),
        pytest.param([], None, id="empty"),
        pytest.param(["Go.", ""], None, id="blank-entry"),
        pytest.param("Go.", None, id="not-a-list"),
    ],
)
def test_valid_action_options(options: Any, expected: list[str] | None) -> None:
    assert valid_action_options(options) == expected


class TestEvaluate:
    """Tests for DialogueSetupValidator.evaluate."""

    @pytest.mark.asyncio
    async def test_action_turn(self, registry, scripted_collaborator, fast_retries) -> None:
        record = TurnRecord(scene_description="The forge.", options=["Look.", "Leave."])

        decision = await _validator(scripted_collaborator(), fast_retries).evaluate(record, registry)

        assert decision.state == DialogueState.NO_DIALOGUE
        assert decision.options == ["Look.", "Leave."]
        assert not decision.failed

    @pytest.mark.asyncio
    async def test_action_turn_without_options_fails(
        self, registry, scripted_collaborator, fast_retries
    ) -> None:
        record = TurnRecord(scene_description="The forge.")

        decision = await _validator(scripted_collaborator(), fast_retries).evaluate(record, registry)

        assert decision.reason == FailureReason.INVALID_OPTIONS

    @pytest.mark.asyncio
    async def test_valid_dialogue(self, registry, scripted_collaborator, fast_retries) -> None:
        record = TurnRecord(scene_description="The forge.", dialogue_setup=_setup())

        decision = await _validator(scripted_collaborator(), fast_retries).evaluate(record, registry)

        assert decision.state == DialogueState.VALID
        assert decision.is_dialogue
        assert decision.options == []

    @pytest.mark.asyncio
    async def test_invalid_dialogue_is_corrected(
        self, registry, scripted_collaborator, fast_retries
    ) -> None:
        collaborator = scripted_collaborator(_setup())
        record = TurnRecord(
            scene_description="The forge.",
            dialogue_setup=_setup(initialPlayerOptions=["Leave."]),
        )

        decision = await _validator(collaborator, fast_retries).evaluate(record, registry)

        assert decision.state == DialogueState.CORRECTED
        assert decision.setup is not None
        assert len(decision.setup.initial_options) == 4

    @pytest.mark.asyncio
    async def test_uncorrectable_dialogue_is_cancelled_with_payload_options(
        self, registry, scripted_collaborator, fast_retries
    ) -> None:
        collaborator = scripted_collaborator(*["nope"] * fast_retries.max_attempts)
        record = TurnRecord(
            scene_description="The forge.",
            options=["Look.", "Leave."],
            dialogue_setup={"participants": "Elrik"},
        )

        decision = await _validator(collaborator, fast_retries).evaluate(record, registry)

        assert decision.state == DialogueState.CANCELLED
        assert decision.options == ["Look.", "Leave."]
        assert not decision.is_dialogue

    @pytest.mark.asyncio
    async def test_cancelled_without_options_uses_fallback(
        self, registry, scripted_collaborator, fast_retries
    ) -> None:
        collaborator = scripted_collaborator(*["nope"] * fast_retries.max_attempts)
        record = TurnRecord(scene_description="The forge.", dialogue_setup={})

        decision = await _validator(collaborator, fast_retries).evaluate(record, registry)

        assert decision.options == TurnConfig().fallback_options


class TestRevalidateParticipants:
    """Participants are checked against the final entity set."""

    @pytest.mark.asyncio
    async def test_unknown_participant_is_dropped(
        self, registry, scripted_collaborator, fast_retries
    ) -> None:
        collaborator = scripted_collaborator("")
        validator = _validator(collaborator, fast_retries)
        record = TurnRecord(
            scene_description="The forge.",
            dialogue_setup=_setup(
                participants=["elrik", "Ghost"],
                initialNpcResponses=[
                    {"speaker": "elrik", "line": "Need a blade?"},
                    {"speaker": "Ghost", "line": "Boo."},
                ],
            ),
        )
        decision = await validator.evaluate(record, registry)
        resolver = EntityResolver(collaborator, RepairContext(), retries=fast_retries)

        decision = await validator.revalidate_participants(decision, resolver, registry)

        assert decision.setup is not None
        assert decision.setup.participants == ["Elrik"]
        assert [line.speaker for line in decision.setup.initial_responses] == ["Elrik"]
        assert set(decision.setup.participants) <= {e.name for e in registry}

    @pytest.mark.asyncio
    async def test_no_surviving_participant_cancels(
        self, scripted_collaborator, fast_retries
    ) -> None:
        collaborator = scripted_collaborator()
        validator = _validator(collaborator, fast_retries)
        record = TurnRecord(
            scene_description="The forge.",
            options=["Look."],
            dialogue_setup=_setup(),
        )
        decision = await validator.evaluate(record, [])
        resolver = EntityResolver(collaborator, RepairContext(), retries=fast_retries)

        decision = await validator.revalidate_participants(decision, resolver, [])

        assert decision.state == DialogueState.CANCELLED
        assert decision.setup is None
        assert decision.options == ["Look."]


def test_materialize_turn_entities_includes_proposals(registry: list[Entity]) -> None:
    record = TurnRecord(
        scene_description="The forge.",
        entities_added=[{"name": "Mara", "description": "A smuggler."}, {"name": "Broken"}],
        entities_updated=[{"name": "Elrik", "newDescription": "A tired smith."}, {"name": "Tobin"}],
    )

    entities = materialize_turn_entities(record, registry)

    assert [e.name for e in entities] == ["Elrik", "Mara", "Tobin"]
    assert entities[0].description == "A tired smith."
    assert registry[0].description == "The village blacksmith."
