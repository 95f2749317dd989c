"""Bounded retry helper shared by all corrective collaborator calls."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from worldweaver.config import RetryConfig
from worldweaver.observability.logging import get_logger
from worldweaver.providers.base import CollaboratorError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    """What one attempt produced.

    Attributes:
        result: The value, or None if the attempt produced nothing usable.
        retry: Set False to stop retrying even though ``result`` is None.
    """

    result: T | None
    retry: bool = True


async def retry_collaborator_call(
    callback: Callable[[int], Awaitable[RetryOutcome[T]]],
    retries: RetryConfig | None = None,
    label: str = "collaborator",
) -> T | None:
    """Call ``callback`` until it yields a result or the bound is reached.

    ``callback`` receives the zero-based attempt number. Retryable
    :class:`CollaboratorError` failures count as an empty attempt; any other
    exception propagates.

    Args:
        callback: Async function producing a :class:`RetryOutcome`.
        retries: Retry bounds and delays. Defaults to :class:`RetryConfig`.
        label: Caller name used in logs.

    Returns:
        The first non-None result, or None once attempts are exhausted or the
        callback asks to stop.
    """
    retries = retries or RetryConfig()
    for attempt in range(retries.max_attempts):
        transient = False
        try:
            outcome = await callback(attempt)
        except CollaboratorError as e:
            if not e.retryable:
                raise
            transient = e.transient
            log.warning(
                "collaborator_call_failed",
                label=label,
                attempt=attempt + 1,
                max_attempts=retries.max_attempts,
                error=str(e),
            )
        else:
            if outcome.result is not None:
                return outcome.result
            if not outcome.retry:
                log.debug("collaborator_call_stopped", label=label, attempt=attempt + 1)
                return None

        if attempt < retries.max_attempts - 1:
            delay_ms = max(retries.delay_ms, retries.transient_delay_ms) if transient else retries.delay_ms
            await asyncio.sleep(delay_ms / 1000)

    log.warning("collaborator_call_exhausted", label=label, max_attempts=retries.max_attempts)
    return None
