"""Resolve a name or alias to a known entity name."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from worldweaver.config import DEFAULT_CORRECTION_TEMPERATURE
from worldweaver.corrections.name import correct_name
from worldweaver.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from worldweaver.config import RetryConfig
    from worldweaver.corrections.base import RepairContext
    from worldweaver.models.entities import Entity
    from worldweaver.providers.base import Collaborator

log = get_logger(__name__)


class MatchMethod(StrEnum):
    EXACT = "exact"
    ALIAS = "alias"
    CORRECTED = "corrected"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one identifier."""

    identifier: str
    name: str | None
    method: MatchMethod

    @property
    def resolved(self) -> bool:
        return self.name is not None


def match_locally(
    identifier: str,
    registry: Sequence[Entity],
    extra_names: Sequence[str] = (),
) -> Resolution:
    """Resolve without calling the collaborator.

    Tries an exact name match first, then a case-insensitive match against
    names and aliases. ``extra_names`` are bare names that count as known
    (e.g. this turn's update targets).
    """
    candidate = identifier.strip()
    names = [entity.name for entity in registry] + list(extra_names)
    if candidate in names:
        return Resolution(identifier, candidate, MatchMethod.EXACT)

    for entity in registry:
        if entity.matches(candidate):
            return Resolution(identifier, entity.name, MatchMethod.ALIAS)
    folded = candidate.casefold()
    for name in extra_names:
        if name.casefold() == folded:
            return Resolution(identifier, name, MatchMethod.ALIAS)
    return Resolution(identifier, None, MatchMethod.UNRESOLVED)


class EntityResolver:
    """Resolves identifiers against an evolving registry.

    Local matching is tried first; when it fails, a corrective name call is
    made with the full list of valid names. A corrected answer is accepted
    only if it names an entity that already exists in the registry.
    """

    def __init__(
        self,
        collaborator: Collaborator,
        context: RepairContext,
        *,
        retries: RetryConfig | None = None,
        temperature: float = DEFAULT_CORRECTION_TEMPERATURE,
    ) -> None:
        self._collaborator = collaborator
        self._context = context
        self._retries = retries
        self._temperature = temperature

    async def resolve(
        self,
        identifier: str,
        registry: Sequence[Entity],
        *,
        extra_names: Sequence[str] = (),
        entity_kind: str = "NPC name",
    ) -> Resolution:
        """Resolve ``identifier`` to a member of the registry.

        Args:
            identifier: Name or alias as written by the collaborator.
            registry: Snapshot of known entities.
            extra_names: Additional valid names without full records.
            entity_kind: Label used in the corrective prompt.

        Returns:
            Resolution; unresolved results are not errors, callers choose the
            fallback.
        """
        local = match_locally(identifier, registry, extra_names)
        if local.resolved:
            return local

        valid_names = list(dict.fromkeys([e.name for e in registry] + list(extra_names)))
        if not valid_names:
            log.debug("entity_resolution_empty_registry", identifier=identifier)
            return local

        corrected = await correct_name(
            self._collaborator,
            entity_kind=entity_kind,
            candidate=identifier,
            context=self._context,
            valid_names=valid_names,
            retries=self._retries,
            temperature=self._temperature,
        )
        if corrected is not None and corrected in valid_names:
            log.info("entity_resolution_corrected", identifier=identifier, name=corrected)
            return Resolution(identifier, corrected, MatchMethod.CORRECTED)

        log.warning(
            "entity_resolution_failed",
            identifier=identifier,
            reason="entity_resolution_failed",
        )
        return Resolution(identifier, None, MatchMethod.UNRESOLVED)
