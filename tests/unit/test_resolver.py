"""Tests for entity name resolution."""

from __future__ import annotations

import pytest

from worldweaver.config import RetryConfig
from worldweaver.corrections.base import RepairContext
from worldweaver.entities.resolver import EntityResolver, MatchMethod, match_locally
from worldweaver.models.entities import Entity


@pytest.fixture
def registry() -> list[Entity]:
    return [
        Entity(name="Elrik", description="The village blacksmith.", aliases=["Smith"]),
        Entity(name="Mara", description="A smuggler."),
    ]


class TestMatchLocally:
    """Resolution without collaborator calls."""

    def test_exact_name(self, registry: list[Entity]) -> None:
        resolution = match_locally("Elrik", registry)

        assert resolution.name == "Elrik"
        assert resolution.method == MatchMethod.EXACT

    @pytest.mark.parametrize("identifier", ["smith", "elrik", "  SMITH "])
    def test_alias_and_case_insensitive(self, registry: list[Entity], identifier: str) -> None:
        resolution = match_locally(identifier, registry)

        assert resolution.name == "Elrik"
        assert resolution.method == MatchMethod.ALIAS

    def test_extra_names_count_as_known(self, registry: list[Entity]) -> None:
        assert match_locally("Tom", registry, ["Tom"]).method == MatchMethod.EXACT
        assert match_locally("tom", registry, ["Tom"]).name == "Tom"

    def test_unknown(self, registry: list[Entity]) -> None:
        resolution = match_locally("Elric", registry)

        assert not resolution.resolved
        assert resolution.method == MatchMethod.UNRESOLVED


class TestEntityResolver:
    """Resolution with corrective fallback."""

    @pytest.mark.asyncio
    async def test_local_match_makes_no_call(
        self, registry: list[Entity], scripted_collaborator, fast_retries: RetryConfig
    ) -> None:
        collaborator = scripted_collaborator()
        resolver = EntityResolver(collaborator, RepairContext(), retries=fast_retries)

        resolution = await resolver.resolve("Smith", registry)

        assert resolution.name == "Elrik"
        collaborator.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_misspelling_is_corrected(
        self, registry: list[Entity], scripted_collaborator, fast_retries: RetryConfig
    ) -> None:
        collaborator = scripted_collaborator('"Elrik"')
        resolver = EntityResolver(collaborator, RepairContext(), retries=fast_retries)

        resolution = await resolver.resolve("Elric", registry)

        assert resolution.name == "Elrik"
        assert resolution.method == MatchMethod.CORRECTED
        prompt = collaborator.complete.await_args.args[0]
        assert '"Elrik", "Mara"' in prompt

    @pytest.mark.asyncio
    async def test_answer_outside_registry_is_retried_then_rejected(
        self, registry: list[Entity], scripted_collaborator, fast_retries: RetryConfig
    ) -> None:
        collaborator = scripted_collaborator("Bob", "Elric", "")
        resolver = EntityResolver(collaborator, RepairContext(), retries=fast_retries)

        resolution = await resolver.resolve("Elric", registry)

        assert not resolution.resolved
        assert collaborator.complete.await_count == 3

    @pytest.mark.asyncio
    async def test_empty_registry_makes_no_call(
        self, scripted_collaborator, fast_retries: RetryConfig
    ) -> None:
        collaborator = scripted_collaborator()
        resolver = EntityResolver(collaborator, RepairContext(), retries=fast_retries)

        resolution = await resolver.resolve("Anyone", [])

        assert not resolution.resolved
        collaborator.complete.assert_not_awaited()
