"""Tests for the corrective sub-collaborators."""

from __future__ import annotations

from typing import Any

import pytest

from worldweaver.corrections import (
    RepairContext,
    correct_map_payload,
    correct_name,
    fetch_entity_details,
    parse_entity_details,
)
from worldweaver.models.entities import PresenceStatus
from worldweaver.providers.base import CollaboratorRequestError, CompletionOptions


def _details(**overrides: Any) -> dict[str, Any]:
    details: dict[str, Any] = {
        "description": "A wary ferryman.",
        "aliases": ["Ferryman"],
        "presenceStatus": "nearby",
        "attitudeTowardPlayer": "wary",
        "knownPlayerNames": [],
        "lastKnownLocation": "the river",
        "preciseLocation": "on his boat",
    }
    details.update(overrides)
    return details


class TestRepairContext:
    """Tests for the narrative context block."""

    def test_defaults_ask_to_infer(self) -> None:
        text = RepairContext().describe()

        assert "Not specified, infer from scene." in text
        assert "Known Places" not in text

    def test_places_and_guidance(self) -> None:
        text = RepairContext(theme_guidance="grim", known_places=("Docks", "Forge")).describe()

        assert '- Known Places: "Docks", "Forge"' in text
        assert 'Theme Guidance: "grim"' in text


class TestCorrectName:
    """Tests for correct_name."""

    @pytest.mark.asyncio
    async def test_quoted_answer_is_accepted(self, scripted_collaborator, fast_retries) -> None:
        collaborator = scripted_collaborator("'Elrik'\n")

        name = await correct_name(
            collaborator,
            entity_kind="NPC name",
            candidate="Elric",
            context=RepairContext(),
            valid_names=["Elrik", "Mara"],
            retries=fast_retries,
        )

        assert name == "Elrik"
        options: CompletionOptions = collaborator.complete.await_args.args[2]
        assert options.json_mode is False
        assert options.label == "name_correction"

    @pytest.mark.asyncio
    async def test_empty_answer_stops_without_retry(self, scripted_collaborator, fast_retries) -> None:
        collaborator = scripted_collaborator("  ")

        name = await correct_name(
            collaborator,
            entity_kind="NPC name",
            candidate="Ghost",
            context=RepairContext(),
            valid_names=["Elrik"],
            retries=fast_retries,
        )

        assert name is None
        assert collaborator.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_no_valid_names_returns_candidate(self, scripted_collaborator, fast_retries) -> None:
        collaborator = scripted_collaborator()

        name = await correct_name(
            collaborator,
            entity_kind="NPC name",
            candidate="Ghost",
            context=RepairContext(),
            valid_names=[],
            retries=fast_retries,
        )

        assert name == "Ghost"
        collaborator.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_case_mismatch_is_not_accepted(self, scripted_collaborator, fast_retries) -> None:
        collaborator = scripted_collaborator(*["elrik"] * fast_retries.max_attempts)

        name = await correct_name(
            collaborator,
            entity_kind="NPC name",
            candidate="Elric",
            context=RepairContext(),
            valid_names=["Elrik"],
            retries=fast_retries,
        )

        assert name is None
        assert collaborator.complete.await_count == fast_retries.max_attempts


class TestParseEntityDetails:
    """Tests for parse_entity_details."""

    def test_complete_record(self) -> None:
        details = parse_entity_details(_details())

        assert details is not None
        assert details.presence_status == PresenceStatus.NEARBY
        assert details.precise_location == "on his boat"

    def test_attitude_defaults(self) -> None:
        details = parse_entity_details(_details(attitudeTowardPlayer=None), "cautious")

        assert details is not None
        assert details.attitude_toward_player == "cautious"

    @pytest.mark.parametrize(
        "overrides",
        [
            pytest.param({"description": " "}, id="blank-description"),
            pytest.param({"aliases": "Ferryman"}, id="aliases-not-array"),
            pytest.param({"presenceStatus": "here"}, id="unknown-status"),
            pytest.param({"attitudeTowardPlayer": "x" * 101}, id="attitude-too-long"),
            pytest.param({"preciseLocation": None}, id="in-scene-without-location"),
            pytest.param(
                {"presenceStatus": "distant", "preciseLocation": "on his boat"},
                id="distant-with-location",
            ),
        ],
    )
    def test_rejected(self, overrides: dict[str, Any]) -> None:
        assert parse_entity_details(_details(**overrides)) is None


class TestFetchEntityDetails:
    """Tests for fetch_entity_details."""

    @pytest.mark.asyncio
    async def test_retries_until_valid(self, scripted_collaborator, fast_retries) -> None:
        collaborator = scripted_collaborator(
            "not json",
            _details(presenceStatus="distant"),
            _details(),
        )

        details = await fetch_entity_details(
            collaborator,
            name="Tobin",
            context=RepairContext(log_message="A boat drifts by."),
            retries=fast_retries,
        )

        assert details is not None
        assert details.description == "A wary ferryman."
        assert collaborator.complete.await_count == 3
        prompt = collaborator.complete.await_args.args[0]
        assert 'Character Name: "Tobin"' in prompt
        assert "A boat drifts by." in prompt

    @pytest.mark.asyncio
    async def test_gives_up(self, scripted_collaborator, fast_retries) -> None:
        collaborator = scripted_collaborator(*["[]"] * fast_retries.max_attempts)

        details = await fetch_entity_details(
            collaborator, name="Tobin", context=RepairContext(), retries=fast_retries
        )

        assert details is None

    @pytest.mark.asyncio
    async def test_request_error_returns_none(self, scripted_collaborator, fast_retries) -> None:
        collaborator = scripted_collaborator(CollaboratorRequestError("openai", "bad request", 400))

        details = await fetch_entity_details(
            collaborator, name="Tobin", context=RepairContext(), retries=fast_retries
        )

        assert details is None
        assert collaborator.complete.await_count == 1


class TestCorrectMapPayload:
    """Tests for correct_map_payload."""

    @pytest.mark.asyncio
    async def test_accepts_valid_batch(self, scripted_collaborator, fast_retries) -> None:
        collaborator = scripted_collaborator(
            {"nodesToAdd": [{"placeName": "Docks", "description": "Wet planks.", "aliases": [], "status": "known"}]}
        )

        batch = await correct_map_payload(
            collaborator,
            malformed_json='{"nodesToAdd": [{"placeName": "Docks"}]}',
            validation_error="description missing",
            context=RepairContext(),
            retries=fast_retries,
        )

        assert batch is not None
        assert batch.nodes_to_add[0].place_name == "Docks"
        prompt = collaborator.complete.await_args.args[0]
        assert "description missing" in prompt

    @pytest.mark.asyncio
    async def test_rejects_invalid_batches(self, scripted_collaborator, fast_retries) -> None:
        collaborator = scripted_collaborator(*[{"nodesToAdd": [{"placeName": "Docks"}]}] * 4)

        batch = await correct_map_payload(
            collaborator,
            malformed_json="{}",
            validation_error="nothing",
            context=RepairContext(),
            retries=fast_retries,
        )

        assert batch is None
