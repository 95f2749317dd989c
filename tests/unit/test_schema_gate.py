"""Tests for the structural schema gate."""

from __future__ import annotations

from typing import Any

import pytest

from worldweaver.errors import FailureReason
from worldweaver.parsing.schema_gate import check_turn_payload


def _payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "sceneDescription": "The tavern is loud tonight.",
        "options": ["Order a drink", "Leave"],
    }
    payload.update(overrides)
    return payload


class TestCheckTurnPayload:
    """Tests for check_turn_payload."""

    @pytest.mark.parametrize(
        "value",
        [
            pytest.param([], id="array"),
            pytest.param("text", id="string"),
            pytest.param(None, id="null"),
            pytest.param(3, id="number"),
        ],
    )
    def test_rejects_non_object(self, value: Any) -> None:
        result = check_turn_payload(value)

        assert not result.ok
        assert result.reason == FailureReason.NON_OBJECT

    @pytest.mark.parametrize(
        "scene",
        [
            pytest.param(None, id="absent"),
            pytest.param("", id="empty"),
            pytest.param("   ", id="blank"),
            pytest.param(42, id="wrong-type"),
        ],
    )
    def test_rejects_missing_primary_text(self, scene: Any) -> None:
        payload = _payload()
        if scene is None:
            del payload["sceneDescription"]
        else:
            payload["sceneDescription"] = scene

        result = check_turn_payload(payload)

        assert result.reason == FailureReason.MISSING_PRIMARY_TEXT

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            pytest.param("logMessage", 5, id="string-field-number"),
            pytest.param("objectiveAchieved", "yes", id="boolean-field-string"),
            pytest.param("npcsAdded", {"name": "x"}, id="array-field-object"),
            pytest.param("dialogueSetup", ["x"], id="object-field-array"),
            pytest.param("localTime", True, id="string-field-boolean"),
        ],
    )
    def test_rejects_wrongly_typed_optional_field(self, field: str, value: Any) -> None:
        result = check_turn_payload(_payload(**{field: value}))

        assert result.reason == FailureReason.INVALID_BASE_FIELDS
        assert any(field in error for error in result.errors)

    def test_reports_every_bad_field(self) -> None:
        result = check_turn_payload(_payload(logMessage=1, mapUpdated="no"))

        assert len(result.errors) == 2

    def test_sanitized_record_keeps_well_typed_fields(self) -> None:
        result = check_turn_payload(
            _payload(
                logMessage="You arrive.",
                objectiveAchieved=False,
                npcsAdded=[{"name": "Mara"}],
                dialogueSetup={"participants": ["Mara"]},
                unknownField="ignored",
            )
        )

        assert result.ok
        record = result.record
        assert record is not None
        assert record.scene_description == "The tavern is loud tonight."
        assert record.options == ["Order a drink", "Leave"]
        assert record.log_message == "You arrive."
        assert record.objective_achieved is False
        assert record.entities_added == [{"name": "Mara"}]
        assert record.dialogue_setup == {"participants": ["Mara"]}
        assert not hasattr(record, "unknownField")

    def test_absent_fields_stay_unset(self) -> None:
        result = check_turn_payload({"sceneDescription": "Quiet."})

        assert result.record is not None
        assert result.record.options is None
        assert result.record.map_updated is None
        assert result.record.entities_updated == []

    def test_does_not_mutate_input(self) -> None:
        payload = _payload(logMessage="x")
        snapshot = dict(payload)

        check_turn_payload(payload)

        assert payload == snapshot
