"""Tests for provider strings, the model factory and error classification."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from worldweaver.providers.base import (
    CollaboratorConfigError,
    CollaboratorConnectionError,
    CollaboratorError,
    CollaboratorRateLimitError,
    CollaboratorRequestError,
    classify_status,
)
from worldweaver.providers.factory import (
    create_chat_model,
    create_collaborator,
    parse_provider_string,
)
from worldweaver.providers.langchain_wrapper import LangChainCollaborator


@pytest.fixture(autouse=True)
def clear_provider_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("OLLAMA_HOST", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


class TestParseProviderString:
    """Tests for parse_provider_string."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            pytest.param("ollama/qwen3:8b", ("ollama", "qwen3:8b"), id="ollama"),
            pytest.param("OpenAI/gpt-4o", ("openai", "gpt-4o"), id="case"),
            pytest.param("gemini/gemini-2.0-flash", ("google", "gemini-2.0-flash"), id="gemini-alias"),
            pytest.param("claude/claude-sonnet", ("anthropic", "claude-sonnet"), id="claude-alias"),
        ],
    )
    def test_valid(self, value: str, expected: tuple[str, str]) -> None:
        assert parse_provider_string(value) == expected

    @pytest.mark.parametrize("value", ["ollama", "ollama/"])
    def test_missing_model(self, value: str) -> None:
        with pytest.raises(CollaboratorConfigError, match="provider/model"):
            parse_provider_string(value)


class TestCreateChatModel:
    """Tests for create_chat_model."""

    def test_unknown_provider(self) -> None:
        with pytest.raises(CollaboratorConfigError, match="Unknown provider"):
            create_chat_model("mystery", "m")

    def test_ollama_requires_host(self) -> None:
        with pytest.raises(CollaboratorConfigError, match="OLLAMA_HOST"):
            create_chat_model("ollama", "qwen3:8b")

    def test_api_key_required(self) -> None:
        with pytest.raises(CollaboratorConfigError, match="OPENAI_API_KEY"):
            create_chat_model("openai", "gpt-4o")

    def test_ollama_host_passed_as_base_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OLLAMA_HOST", "http://localhost:11434")
        with patch("langchain.chat_models.init_chat_model") as init:
            init.return_value = MagicMock()
            create_chat_model("ollama", "qwen3:8b", temperature=0.5)

        init.assert_called_once_with(
            model="qwen3:8b",
            model_provider="ollama",
            temperature=0.5,
            base_url="http://localhost:11434",
        )

    def test_google_uses_genai_integration(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_API_KEY", "key")
        with patch("langchain.chat_models.init_chat_model") as init:
            create_chat_model("gemini", "gemini-2.0-flash")

        assert init.call_args.kwargs["model_provider"] == "google_genai"
        assert init.call_args.kwargs["api_key"] == "key"

    def test_missing_integration_package(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "key")
        with (
            patch("langchain.chat_models.init_chat_model", side_effect=ImportError("nope")),
            pytest.raises(CollaboratorConfigError, match="langchain-anthropic not installed"),
        ):
            create_chat_model("anthropic", "claude-sonnet")


def test_create_collaborator_wraps_model(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OLLAMA_HOST", "http://localhost:11434")
    with patch("langchain.chat_models.init_chat_model", return_value=MagicMock()):
        collaborator = create_collaborator("ollama/qwen3:8b")

    assert isinstance(collaborator, LangChainCollaborator)
    assert collaborator.provider_name == "ollama"


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        pytest.param(429, CollaboratorRateLimitError, id="429"),
        pytest.param(500, CollaboratorConnectionError, id="500"),
        pytest.param(404, CollaboratorRequestError, id="404"),
        pytest.param(302, CollaboratorError, id="other"),
    ],
)
def test_classify_status(status: int, expected: type[CollaboratorError]) -> None:
    error = classify_status("openai", status, "failed")

    assert type(error) is expected
    assert error.status_code == status


def test_only_transport_failures_are_retryable() -> None:
    assert CollaboratorConnectionError("x", "y").retryable
    assert CollaboratorRateLimitError("x", "y").transient
    assert not CollaboratorRequestError("x", "y").retryable
    assert not CollaboratorConfigError("x", "y").retryable
