"""Text-completion collaborators."""

from worldweaver.providers.base import (
    Collaborator,
    CollaboratorConfigError,
    CollaboratorConnectionError,
    CollaboratorError,
    CollaboratorRateLimitError,
    CollaboratorRequestError,
    Completion,
    CompletionOptions,
)
from worldweaver.providers.factory import create_chat_model, create_collaborator
from worldweaver.providers.langchain_wrapper import LangChainCollaborator
from worldweaver.providers.retry import RetryOutcome, retry_collaborator_call

__all__ = [
    "Collaborator",
    "CollaboratorConfigError",
    "CollaboratorConnectionError",
    "CollaboratorError",
    "CollaboratorRateLimitError",
    "CollaboratorRequestError",
    "Completion",
    "CompletionOptions",
    "LangChainCollaborator",
    "RetryOutcome",
    "create_chat_model",
    "create_collaborator",
    "retry_collaborator_call",
]
