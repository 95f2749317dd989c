"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from worldweaver.config import RetryConfig, WeaverConfig
from worldweaver.providers.base import Completion

ScriptedCollaborator = Callable[..., AsyncMock]


@pytest.fixture(autouse=True, scope="session")
def disable_langsmith_tracing() -> None:
    """Disable LangSmith tracing during test runs.

    Set LANGSMITH_TEST_TRACING=true to override for debugging.
    """
    if os.environ.get("LANGSMITH_TEST_TRACING", "").lower() != "true":
        os.environ["LANGSMITH_TRACING"] = "false"


@pytest.fixture(autouse=True)
def clear_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment overrides out of config defaults."""
    monkeypatch.delenv("WW_PROVIDER", raising=False)
    monkeypatch.delenv("WW_MAX_RETRIES", raising=False)


@pytest.fixture
def fast_retries() -> RetryConfig:
    """Default retry bound (4 attempts) without sleeping between attempts."""
    return RetryConfig(max_retries=3, delay_ms=0, transient_delay_ms=0)


@pytest.fixture
def fast_config(fast_retries: RetryConfig) -> WeaverConfig:
    """Default config with zero retry delays."""
    return WeaverConfig(retries=fast_retries)


def _as_completion(item: Any) -> Any:
    if isinstance(item, BaseException):
        return item
    if isinstance(item, Completion):
        return item
    if isinstance(item, str):
        return Completion(text=item)
    return Completion(text=json.dumps(item))


@pytest.fixture
def scripted_collaborator() -> ScriptedCollaborator:
    """Build a collaborator whose ``complete`` returns the given items in order.

    Strings are returned verbatim, dicts/lists are JSON-encoded, and
    exceptions are raised.
    """

    def _build(*items: Any) -> AsyncMock:
        collaborator = AsyncMock()
        collaborator.complete = AsyncMock(side_effect=[_as_completion(i) for i in items])
        return collaborator

    return _build
