"""LangChain adapter for the Collaborator protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from worldweaver.observability.logging import get_logger
from worldweaver.providers.base import (
    CollaboratorConnectionError,
    CollaboratorError,
    Completion,
    CompletionOptions,
    classify_status,
)

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

log = get_logger(__name__)


class LangChainCollaborator:
    """Adapts a LangChain chat model to :class:`Collaborator`.

    Attributes:
        provider_name: Provider label used in error messages.
    """

    def __init__(self, model: BaseChatModel, provider_name: str = "langchain") -> None:
        self._model = model
        self.provider_name = provider_name

    async def complete(
        self,
        prompt: str,
        system_instruction: str,
        options: CompletionOptions | None = None,
    ) -> Completion:
        """Run one completion through the wrapped chat model.

        Raises:
            CollaboratorError: With a subclass matching the failure class.
        """
        options = options or CompletionOptions()
        messages = [SystemMessage(content=system_instruction), HumanMessage(content=prompt)]
        model = self._configure(options)

        try:
            response: AIMessage = await model.ainvoke(messages)
        except CollaboratorError:
            raise
        except httpx.TransportError as e:
            raise CollaboratorConnectionError(self.provider_name, f"Transport failed: {e}") from e
        except Exception as e:
            status = getattr(e, "status_code", None)
            if isinstance(status, int):
                raise classify_status(self.provider_name, status, str(e)) from e
            raise CollaboratorError(self.provider_name, f"Completion failed: {e}") from e

        text, thoughts = _split_content(response)
        log.debug(
            "completion_received",
            label=options.label,
            chars=len(text),
            thoughts=len(thoughts),
        )
        return Completion(text=text, thought_trace=thoughts)

    def _configure(self, options: CompletionOptions) -> Any:
        """Apply per-call overrides the model supports."""
        model: Any = self._model
        update: dict[str, Any] = {}
        if options.temperature is not None and hasattr(model, "temperature"):
            update["temperature"] = options.temperature
        if options.max_output_tokens is not None and hasattr(model, "max_tokens"):
            update["max_tokens"] = options.max_output_tokens
        if update and hasattr(model, "model_copy"):
            model = model.model_copy(update=update)
        return model


def _split_content(response: AIMessage) -> tuple[str, list[str]]:
    """Separate answer text from reasoning blocks.

    Content may be a plain string or a list of typed blocks. Blocks tagged
    ``thinking`` or ``reasoning`` become the thought trace.
    """
    thoughts: list[str] = []
    reasoning = (response.additional_kwargs or {}).get("reasoning_content")
    if isinstance(reasoning, str) and reasoning.strip():
        thoughts.append(reasoning.strip())

    content = response.content
    if isinstance(content, str):
        return content, thoughts

    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
            continue
        kind = block.get("type")
        if kind in ("thinking", "reasoning"):
            thought = block.get("thinking") or block.get("reasoning") or block.get("text")
            if thought:
                thoughts.append(str(thought))
        elif kind == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts), thoughts
