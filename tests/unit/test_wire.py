"""Tests for wire-format decoding."""

from __future__ import annotations

import pytest

from worldweaver.parsing.wire import decode_response, extract_json_from_fence, strip_null_values


class TestExtractJsonFromFence:
    """Tests for fence stripping."""

    @pytest.mark.parametrize(
        "text",
        [
            pytest.param('```json\n{"a": 1}\n```', id="json-tag"),
            pytest.param('```\n{"a": 1}\n```', id="no-tag"),
            pytest.param('  ```json\n{"a": 1}\n```  \n', id="surrounding-whitespace"),
            pytest.param('{"a": 1}', id="unfenced"),
        ],
    )
    def test_returns_inner_json(self, text: str) -> None:
        """Fenced and unfenced payloads yield the bare JSON text."""
        assert extract_json_from_fence(text) == '{"a": 1}'

    def test_text_around_fence_is_left_alone(self) -> None:
        """Only a fence spanning the whole response is stripped."""
        text = 'Here you go:\n```json\n{"a": 1}\n```'
        assert extract_json_from_fence(text) == text


class TestStripNullValues:
    """Tests for null stripping."""

    def test_drops_null_fields_recursively(self) -> None:
        data = {"a": None, "b": {"c": None, "d": 1}, "e": [{"f": None, "g": 2}, None]}

        assert strip_null_values(data) == {"b": {"d": 1}, "e": [{"g": 2}]}

    def test_does_not_mutate_input(self) -> None:
        data = {"a": None}
        strip_null_values(data)

        assert data == {"a": None}


class TestDecodeResponse:
    """Tests for decode_response."""

    def test_decodes_fenced_object(self) -> None:
        result = decode_response('```json\n{"sceneDescription": "Rain.", "mapHint": null}\n```')

        assert result.ok
        assert result.value == {"sceneDescription": "Rain."}
        assert result.json_text == '{"sceneDescription": "Rain.", "mapHint": null}'

    def test_invalid_json_reports_position(self) -> None:
        result = decode_response('{"sceneDescription": ')

        assert not result.ok
        assert result.value is None
        assert "Invalid JSON" in (result.error or "")

    def test_empty_response(self) -> None:
        result = decode_response("   ")

        assert not result.ok
        assert result.error == "Response was empty"

    def test_top_level_array_decodes(self) -> None:
        """Non-object JSON is a decode success; the schema gate rejects it."""
        result = decode_response("[1, 2]")

        assert result.ok
        assert result.value == [1, 2]
