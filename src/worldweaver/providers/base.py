"""Collaborator protocol and error types.

A collaborator is any text-completion capability. The core never talks to a
transport directly; it receives an object satisfying :class:`Collaborator`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call generation settings.

    Attributes:
        temperature: Sampling temperature, or None for the model default.
        json_mode: Ask the collaborator for a bare JSON response.
        max_output_tokens: Upper bound on response length, if supported.
        label: Short tag used in logs to identify the caller.
    """

    temperature: float | None = None
    json_mode: bool = True
    max_output_tokens: int | None = None
    label: str = "turn"


@dataclass
class Completion:
    """Result of a completion request.

    Attributes:
        text: Raw response text.
        thought_trace: Reasoning summaries, when the model exposes them.
    """

    text: str
    thought_trace: list[str] = field(default_factory=list)


class Collaborator(Protocol):
    """Text-completion capability injected into every component."""

    async def complete(
        self,
        prompt: str,
        system_instruction: str,
        options: CompletionOptions | None = None,
    ) -> Completion:
        """Generate a completion.

        Args:
            prompt: User prompt text.
            system_instruction: System prompt text.
            options: Generation settings; defaults when None.

        Returns:
            Completion with the raw text and optional thought trace.

        Raises:
            CollaboratorError: If the request fails. ``retryable`` tells the
                caller whether trying again can help.
        """
        ...


class CollaboratorError(Exception):
    """Base exception for collaborator failures."""

    retryable: bool = False
    transient: bool = False

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}")


class CollaboratorConnectionError(CollaboratorError):
    """Network-level failure (timeouts, refused connections, 5xx)."""

    retryable = True
    transient = True


class CollaboratorRateLimitError(CollaboratorError):
    """Rate limit exceeded (429)."""

    retryable = True
    transient = True


class CollaboratorRequestError(CollaboratorError):
    """Rejected request (4xx other than 429). Never retried."""


class CollaboratorConfigError(CollaboratorError):
    """Provider is unknown or misconfigured. Never retried."""


def classify_status(provider: str, status_code: int, message: str) -> CollaboratorError:
    """Map an HTTP status code to the matching error class.

    Args:
        provider: Provider name for the error message.
        status_code: HTTP status returned by the transport.
        message: Error detail.

    Returns:
        The most specific CollaboratorError subclass for the status.
    """
    if status_code == 429:
        return CollaboratorRateLimitError(provider, message, status_code)
    if status_code >= 500:
        return CollaboratorConnectionError(provider, message, status_code)
    if status_code >= 400:
        return CollaboratorRequestError(provider, message, status_code)
    return CollaboratorError(provider, message, status_code)
