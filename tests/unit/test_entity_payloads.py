"""Tests for raw entity payload parsing."""

from __future__ import annotations

from typing import Any

import pytest

from worldweaver.entities.payloads import parse_entity_add, parse_entity_update
from worldweaver.models.entities import PresenceStatus


class TestParseEntityAdd:
    """Tests for parse_entity_add."""

    def test_minimal_add_gets_defaults(self) -> None:
        parsed = parse_entity_add({"name": "Elrik", "description": "A blacksmith."})

        assert parsed.errors == []
        entity = parsed.entity
        assert entity is not None
        assert entity.attitude_toward_player == "neutral"
        assert entity.presence_status == PresenceStatus.UNKNOWN
        assert entity.aliases == []

    def test_default_attitude_is_configurable(self) -> None:
        parsed = parse_entity_add({"name": "Elrik", "description": "A smith."}, "wary")

        assert parsed.entity is not None
        assert parsed.entity.attitude_toward_player == "wary"

    def test_legacy_known_names_key(self) -> None:
        parsed = parse_entity_add(
            {"name": "Elrik", "description": "A smith.", "knowsPlayerAs": ["Lad", "Lad"]}
        )

        assert parsed.entity is not None
        assert parsed.entity.known_player_names == ["Lad"]

    @pytest.mark.parametrize(
        ("raw", "fragment"),
        [
            pytest.param({"description": "x"}, "'name'", id="missing-name"),
            pytest.param({"name": "Elrik"}, "'description'", id="missing-description"),
            pytest.param(
                {"name": "Elrik", "description": "x", "aliases": "Smith"},
                "'aliases'",
                id="aliases-not-array",
            ),
            pytest.param(
                {"name": "Elrik", "description": "x", "presenceStatus": "here"},
                "'presenceStatus'",
                id="bad-presence",
            ),
            pytest.param(
                {"name": "Elrik", "description": "x", "attitudeTowardPlayer": ""},
                "'attitudeTowardPlayer'",
                id="blank-attitude",
            ),
        ],
    )
    def test_invalid_add_reports_field(self, raw: dict[str, Any], fragment: str) -> None:
        parsed = parse_entity_add(raw)

        assert parsed.entity is None
        assert any(fragment in error for error in parsed.errors)

    def test_invalid_add_keeps_raw_name_for_repair(self) -> None:
        parsed = parse_entity_add({"name": "Elrik"})

        assert parsed.raw_name == "Elrik"

    def test_non_object(self) -> None:
        parsed = parse_entity_add("Elrik")

        assert parsed.entity is None
        assert parsed.raw_name is None


class TestParseEntityUpdate:
    """Tests for parse_entity_update."""

    def test_all_fields(self) -> None:
        parsed = parse_entity_update(
            {
                "name": "Elrik",
                "newDescription": "A tired smith.",
                "newAliases": ["Smith"],
                "addAlias": "Hammer",
                "newPresenceStatus": "companion",
                "newAttitudeTowardPlayer": "grateful",
                "newKnownPlayerNames": ["Friend"],
                "newLastKnownLocation": "the forge",
                "newPreciseLocation": "at your side",
                "addDialogueMemory": "Promised a sword.",
            }
        )

        update = parsed.update
        assert update is not None
        assert update.new_presence_status == PresenceStatus.COMPANION
        assert update.add_alias == "Hammer"
        assert update.new_known_player_names == ["Friend"]
        assert update.add_dialogue_memory == "Promised a sword."

    def test_missing_name(self) -> None:
        parsed = parse_entity_update({"newDescription": "x"})

        assert parsed.update is None

    def test_wrong_types(self) -> None:
        parsed = parse_entity_update(
            {"name": "Elrik", "newAliases": "Smith", "newPresenceStatus": "gone"}
        )

        assert parsed.update is None
        assert len(parsed.errors) == 2
