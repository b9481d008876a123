"""Unit tests for TargetResolver."""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from warmpath.core.exceptions import GraphStoreError
from warmpath.schemas.contact import Provenance
from warmpath.schemas.graph import NodeLabel, NodeProperties, RelationshipProperties
from warmpath.services.resolution.target_resolver import TargetResolver


SOURCE = Provenance(type="csv")


@pytest_asyncio.fixture
async def populated_store(memory_store):
    """Seed Alice who knows Jane Doe at Acme Capital."""
    await memory_store.create_or_update_node(
        "person_alice_chen",
        [NodeLabel.PERSON],
        NodeProperties(name="Alice Chen", source=SOURCE, is_seed=True),
    )
    await memory_store.create_or_update_node(
        "person_jane_doe",
        [NodeLabel.PERSON],
        NodeProperties(name="Jane Doe", source=SOURCE, firm="Acme Capital"),
    )
    await memory_store.create_or_update_node(
        "firm_acme_capital",
        [NodeLabel.FIRM],
        NodeProperties(name="Acme Capital", source=SOURCE),
    )
    await memory_store.create_or_update_relationship(
        "person_alice_chen",
        "person_jane_doe",
        "KNOWS",
        RelationshipProperties(source=SOURCE, strength=0.5),
    )
    return memory_store


class TestResolveTarget:

    @pytest.mark.asyncio
    async def test_person_match_with_paths(self, populated_store, entity_resolver):
        """Test that a person query matches and returns connection paths."""
        resolver = TargetResolver(populated_store, entity_resolver)

        result = await resolver.resolve_target("Jane Doe")

        assert result.found
        assert result.match.node_id == "person_jane_doe"
        assert result.match.label == "Person"
        assert result.match.similarity == 1.0
        assert len(result.connection_paths) == 1
        assert result.connection_paths[0].signature == ("person_alice_chen", "KNOWS", "person_jane_doe")

    @pytest.mark.asyncio
    async def test_firm_match_when_no_person(self, populated_store, entity_resolver):
        """Test that firms are tried after people."""
        resolver = TargetResolver(populated_store, entity_resolver)

        result = await resolver.resolve_target("Acme Capital", find_paths=False)

        assert result.match.node_id == "firm_acme_capital"
        assert result.match.label == "Firm"
        assert result.connection_paths is None

    @pytest.mark.asyncio
    async def test_person_preferred_over_firm(self, populated_store, entity_resolver):
        """Test that a name present as both person and firm resolves to the person."""
        await populated_store.create_or_update_node(
            "firm_jane_doe", [NodeLabel.FIRM], NodeProperties(name="Jane Doe", source=SOURCE)
        )
        resolver = TargetResolver(populated_store, entity_resolver)

        result = await resolver.resolve_target("Jane Doe", find_paths=False)

        assert result.match.node_id == "person_jane_doe"

    @pytest.mark.asyncio
    async def test_best_candidate_wins(self, populated_store, entity_resolver):
        """Test that the most similar candidate is chosen, not the first."""
        await populated_store.create_or_update_node(
            "person_jane_doerr", [NodeLabel.PERSON], NodeProperties(name="Jane Doerr", source=SOURCE)
        )
        resolver = TargetResolver(populated_store, entity_resolver)

        match = await resolver.match_person("Jane Doe")

        assert match.node_id == "person_jane_doe"

    @pytest.mark.asyncio
    async def test_substring_below_threshold_is_rejected(self, populated_store, entity_resolver):
        """Test that a contained but dissimilar name is not a match."""
        resolver = TargetResolver(populated_store, entity_resolver)

        strict = await resolver.resolve_target("Jane", find_paths=False)
        loose = await resolver.resolve_target("Jane", find_paths=False, min_similarity=0.5)

        assert not strict.found
        assert loose.match.node_id == "person_jane_doe"

    @pytest.mark.asyncio
    async def test_no_match(self, populated_store, entity_resolver):
        resolver = TargetResolver(populated_store, entity_resolver)

        result = await resolver.resolve_target("Zed Unknown")

        assert not result.found
        assert result.connection_paths is None
        assert "No match found in graph" in result.notes

    @pytest.mark.parametrize("query", ["", "   "])
    @pytest.mark.asyncio
    async def test_empty_query(self, memory_store, entity_resolver, query):
        resolver = TargetResolver(memory_store, entity_resolver)

        result = await resolver.resolve_target(query)

        assert not result.found
        assert result.notes == ["Empty target query"]

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, entity_resolver):
        """Test that store failures are not turned into a silent miss."""
        store = MagicMock()
        store.find_nodes_by_name = AsyncMock(side_effect=GraphStoreError("query failed"))
        resolver = TargetResolver(store, entity_resolver)

        with pytest.raises(GraphStoreError):
            await resolver.resolve_target("Jane Doe")
