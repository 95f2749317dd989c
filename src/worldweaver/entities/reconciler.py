"""Merge a turn's proposed entity additions and updates into the registry.

Additions are reconciled first so updates in the same turn can target them.
Updates whose target cannot be resolved are converted into synthetic
additions. The presence/location rule is applied to every output record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from worldweaver.config import DEFAULT_CORRECTION_TEMPERATURE, TurnConfig
from worldweaver.corrections.entity import EntityDetails, fetch_entity_details
from worldweaver.entities.payloads import parse_entity_add, parse_entity_update
from worldweaver.models.entities import (
    PRESENCE_PLACEHOLDERS,
    Entity,
    EntityUpdate,
    PresenceStatus,
    dedupe_strings,
)
from worldweaver.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from worldweaver.config import RetryConfig
    from worldweaver.corrections.base import RepairContext
    from worldweaver.entities.resolver import EntityResolver
    from worldweaver.providers.base import Collaborator

log = get_logger(__name__)

FALLBACK_ENTITY_NAME = "Newly Mentioned NPC"


def placeholder_description(name: str) -> str:
    return f"Details for {name} are emerging."


@dataclass
class ReconcileResult:
    """Final additions and updates for one turn.

    Attributes:
        added: New entities, including synthetic ones from failed updates.
        updated: Updates that target existing or this-turn entities.
        dropped: Short notes on candidates discarded as invalid.
        converted: Names of updates turned into synthetic additions.
    """

    added: list[Entity] = field(default_factory=list)
    updated: list[EntityUpdate] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    converted: list[str] = field(default_factory=list)


def merge_entities(existing: Entity, incoming: Entity) -> Entity:
    """Merge two records for the same name.

    Aliases, known player names and dialogue memory are unioned; scalar
    fields take the incoming value.
    """
    merged = incoming.model_copy(
        update={
            "id": existing.id,
            "aliases": dedupe_strings([*existing.aliases, *incoming.aliases]),
            "known_player_names": dedupe_strings(
                [*existing.known_player_names, *incoming.known_player_names]
            ),
            "dialogue_memory": [*existing.dialogue_memory, *incoming.dialogue_memory],
        }
    )
    return merged.with_presence_rules()


def _upsert(entities: list[Entity], entity: Entity) -> None:
    for index, current in enumerate(entities):
        if current.name == entity.name:
            entities[index] = merge_entities(current, entity)
            return
    entities.append(entity)


def enforce_update_presence(update: EntityUpdate, target: Entity | None) -> EntityUpdate:
    """Apply the presence/location rule to an update before it is emitted.

    A status change to distant/unknown discards any precise location in the
    update. A change to nearby/companion supplies a placeholder when neither
    the update nor the target has a precise location.
    """
    status = update.new_presence_status
    if status is None:
        status = target.presence_status if target is not None else None
        if status is None or status.in_scene or update.new_precise_location is None:
            return update
        return update.model_copy(update={"new_precise_location": None})
    if not status.in_scene:
        if update.new_precise_location is None:
            return update
        return update.model_copy(update={"new_precise_location": None})
    if update.new_precise_location and update.new_precise_location.strip():
        return update
    if target is not None and target.presence_status.in_scene and target.precise_location:
        return update
    return update.model_copy(update={"new_precise_location": PRESENCE_PLACEHOLDERS[status]})


class EntityReconciler:
    """Turns raw ``npcsAdded``/``npcsUpdated`` lists into final operations."""

    def __init__(
        self,
        collaborator: Collaborator,
        resolver: EntityResolver,
        context: RepairContext,
        *,
        turn_config: TurnConfig | None = None,
        retries: RetryConfig | None = None,
        temperature: float = DEFAULT_CORRECTION_TEMPERATURE,
    ) -> None:
        self._collaborator = collaborator
        self._resolver = resolver
        self._context = context
        self._turn = turn_config or TurnConfig()
        self._retries = retries
        self._temperature = temperature

    async def reconcile(
        self,
        raw_adds: Sequence[Any],
        raw_updates: Sequence[Any],
        prior_registry: Sequence[Entity],
    ) -> ReconcileResult:
        """Reconcile one turn's entity changes.

        Args:
            raw_adds: Raw ``npcsAdded`` items.
            raw_updates: Raw ``npcsUpdated`` items.
            prior_registry: Entities known before this turn. Not modified.

        Returns:
            ReconcileResult with additions and updates ready to apply.
        """
        result = ReconcileResult()
        for raw in raw_adds:
            entity = await self._reconcile_add(raw, result)
            if entity is not None:
                _upsert(result.added, entity)

        for raw in raw_updates:
            await self._reconcile_update(raw, prior_registry, result)

        result.added = [entity.with_presence_rules() for entity in result.added]
        log.debug(
            "entities_reconciled",
            added=len(result.added),
            updated=len(result.updated),
            dropped=len(result.dropped),
            converted=len(result.converted),
        )
        return result

    async def _fetch_details(self, name: str) -> EntityDetails | None:
        return await fetch_entity_details(
            self._collaborator,
            name=name,
            context=self._context,
            default_attitude=self._turn.default_attitude,
            retries=self._retries,
            temperature=self._temperature,
        )

    async def _reconcile_add(self, raw: Any, result: ReconcileResult) -> Entity | None:
        parsed = parse_entity_add(raw, self._turn.default_attitude)
        if parsed.entity is not None:
            return parsed.entity

        label = parsed.raw_name or FALLBACK_ENTITY_NAME
        log.warning("entity_add_invalid", name=label, errors=parsed.errors)
        details = await self._fetch_details(label)
        if details is None:
            log.warning("entity_add_dropped", name=label, reason="correction_failed")
            result.dropped.append(f"add '{label}': {'; '.join(parsed.errors)}")
            return None

        name = parsed.raw_name or " ".join(details.description.split()[:2]) or "Corrected NPC"
        try:
            entity = Entity(
                name=name,
                description=details.description,
                aliases=details.aliases,
                presence_status=details.presence_status,
                attitude_toward_player=details.attitude_toward_player,
                known_player_names=details.known_player_names,
                last_known_location=details.last_known_location,
                precise_location=details.precise_location,
            )
        except ValidationError as e:
            log.warning("entity_add_dropped", name=name, reason="still_invalid", error=str(e))
            result.dropped.append(f"add '{name}': corrected record still invalid")
            return None
        log.info("entity_add_corrected", name=name)
        return entity

    async def _reconcile_update(
        self,
        raw: Any,
        prior_registry: Sequence[Entity],
        result: ReconcileResult,
    ) -> None:
        parsed = parse_entity_update(raw)
        if parsed.update is None:
            log.warning("entity_update_dropped", errors=parsed.errors)
            result.dropped.append(f"update: {'; '.join(parsed.errors)}")
            return
        update = parsed.update

        resolution = await self._resolver.resolve(update.name, [*prior_registry, *result.added])
        if not resolution.resolved:
            await self._convert_to_add(update, result)
            return

        target_name = resolution.name
        if target_name != update.name:
            log.info("entity_update_retargeted", requested=update.name, name=target_name)
            update = update.model_copy(update={"name": target_name})

        prior = next((e for e in prior_registry if e.name == target_name), None)
        for index, entity in enumerate(result.added):
            if entity.name == target_name:
                result.added[index] = update.apply_to(entity)
                prior = prior or entity
                break
        result.updated.append(enforce_update_presence(update, prior))

    async def _convert_to_add(self, update: EntityUpdate, result: ReconcileResult) -> None:
        name = update.name
        log.warning(
            "entity_update_converted_to_add",
            name=name,
            reason="entity_resolution_failed",
        )
        aliases = list(update.new_aliases or [])
        if update.add_alias:
            aliases.append(update.add_alias)
        description = update.new_description or placeholder_description(name)
        values: dict[str, Any] = {
            "name": name,
            "description": description,
            "aliases": aliases,
            "presence_status": update.new_presence_status or PresenceStatus.UNKNOWN,
            "attitude_toward_player": update.new_attitude_toward_player or self._turn.default_attitude,
            "known_player_names": list(update.new_known_player_names or []),
            "last_known_location": update.new_last_known_location,
            "precise_location": update.new_precise_location,
            "dialogue_memory": [update.add_dialogue_memory] if update.add_dialogue_memory else [],
        }

        if description == placeholder_description(name):
            details = await self._fetch_details(name)
            if details is not None:
                values.update(
                    description=details.description,
                    aliases=[*aliases, *details.aliases],
                    presence_status=details.presence_status,
                    last_known_location=details.last_known_location,
                    precise_location=details.precise_location,
                    known_player_names=[*values["known_player_names"], *details.known_player_names],
                )
                if update.new_attitude_toward_player is None:
                    values["attitude_toward_player"] = details.attitude_toward_player

        _upsert(result.added, Entity(**values).with_presence_rules())
        result.converted.append(name)
