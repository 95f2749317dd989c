"""Factory for building collaborators from ``provider/model`` strings.

Uses LangChain's ``init_chat_model`` so any installed LangChain integration
can back the :class:`~worldweaver.providers.base.Collaborator` protocol.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from worldweaver.observability.logging import get_logger
from worldweaver.providers.base import CollaboratorConfigError
from worldweaver.providers.langchain_wrapper import LangChainCollaborator

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

log = get_logger(__name__)

_KNOWN_PROVIDERS = frozenset({"ollama", "openai", "anthropic", "google"})

_PROVIDER_ALIASES = {"gemini": "google", "claude": "anthropic"}

# Environment variable holding the credential (or host) for each provider
_PROVIDER_ENV = {
    "ollama": "OLLAMA_HOST",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}

_PROVIDER_PACKAGES = {
    "ollama": "langchain-ollama",
    "openai": "langchain-openai",
    "anthropic": "langchain-anthropic",
    "google": "langchain-google-genai",
}


def parse_provider_string(value: str) -> tuple[str, str]:
    """Split ``"provider/model"`` into its parts.

    Raises:
        CollaboratorConfigError: If the model part is missing.
    """
    provider, sep, model = value.partition("/")
    provider = _normalize_provider(provider)
    if not sep or not model:
        raise CollaboratorConfigError(provider, f"Expected 'provider/model', got {value!r}")
    return provider, model


def create_chat_model(provider_name: str, model: str, **kwargs: Any) -> BaseChatModel:
    """Create a LangChain chat model.

    Args:
        provider_name: Provider identifier (ollama, openai, anthropic, google).
        model: Model name.
        **kwargs: Extra model options (temperature, api_key, host, ...).

    Returns:
        Configured BaseChatModel.

    Raises:
        CollaboratorConfigError: If the provider is unknown, misconfigured or
            its integration package is not installed.
    """
    provider = _normalize_provider(provider_name)
    if provider not in _KNOWN_PROVIDERS:
        log.error("provider_unknown", provider=provider)
        raise CollaboratorConfigError(provider, f"Unknown provider: {provider}")

    kwargs = _resolve_credentials(provider, dict(kwargs))
    init_name = "google_genai" if provider == "google" else provider

    try:
        from langchain.chat_models import init_chat_model

        chat_model: BaseChatModel = init_chat_model(model=model, model_provider=init_name, **kwargs)
    except ImportError as e:
        package = _PROVIDER_PACKAGES[provider]
        log.error("provider_import_error", provider=provider, package=package)
        raise CollaboratorConfigError(provider, f"{package} not installed") from e

    log.info("chat_model_created", provider=provider, model=model)
    return chat_model


def create_collaborator(provider_string: str, **kwargs: Any) -> LangChainCollaborator:
    """Build a collaborator from a ``provider/model`` string."""
    provider, model = parse_provider_string(provider_string)
    return LangChainCollaborator(create_chat_model(provider, model, **kwargs), provider)


def _resolve_credentials(provider: str, kwargs: dict[str, Any]) -> dict[str, Any]:
    env_name = _PROVIDER_ENV[provider]
    if provider == "ollama":
        host = kwargs.pop("host", None) or os.getenv(env_name)
        if not host:
            log.error("provider_config_error", provider=provider, missing=env_name)
            raise CollaboratorConfigError(provider, f"{env_name} not configured")
        kwargs["base_url"] = host
        return kwargs

    api_key = kwargs.get("api_key") or os.getenv(env_name)
    if not api_key:
        log.error("provider_config_error", provider=provider, missing=env_name)
        raise CollaboratorConfigError(provider, f"API key required. Set {env_name}.")
    kwargs["api_key"] = api_key
    return kwargs


def _normalize_provider(provider_name: str) -> str:
    name = provider_name.strip().lower()
    return _PROVIDER_ALIASES.get(name, name)
