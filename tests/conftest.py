"""Pytest configuration and shared fixtures."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from warmpath.schemas.contact import Contact, Provenance
from warmpath.schemas.graph import (
    GraphNode,
    GraphRelationship,
    NodeLabel,
    NodeProperties,
    RelationshipProperties,
)
from warmpath.services.graph.graph_store import InMemoryGraphStore
from warmpath.services.resolution.entity_resolver import EntityResolver


@pytest.fixture
def csv_source() -> Provenance:
    """Provenance of a CSV import.

    Returns:
        Provenance: CSV provenance with a filename
    """
    return Provenance(type="csv", filename="contacts.csv")


@pytest.fixture
def seed_source() -> Provenance:
    """Provenance whose type marks contacts as seed members.

    Returns:
        Provenance: Seed provenance
    """
    return Provenance(type="seed", source_name="Team roster")


@pytest.fixture
def entity_resolver() -> EntityResolver:
    """Fresh resolver with its own cache.

    Returns:
        EntityResolver: Resolver with default thresholds
    """
    return EntityResolver(cache_size=100, min_similarity=0.85)


@pytest.fixture
def memory_store() -> InMemoryGraphStore:
    """Empty in-memory graph store.

    Returns:
        InMemoryGraphStore: Store instance
    """
    return InMemoryGraphStore()


@pytest.fixture
def mock_neo4j_client() -> MagicMock:
    """Neo4j client double whose ``run_query`` is awaitable.

    Returns:
        MagicMock: Client with an AsyncMock ``run_query``
    """
    client = MagicMock()
    client.run_query = AsyncMock(return_value=[])
    return client


@pytest.fixture
def make_contact(csv_source):
    """Factory for contacts with CSV provenance unless overridden."""

    def _make(**fields) -> Contact:
        fields.setdefault("source", csv_source)
        return Contact(**fields)

    return _make


@pytest.fixture
def make_node(csv_source):
    """Factory for graph nodes."""

    def _make(node_id: str, name: str, label: NodeLabel = NodeLabel.PERSON, **properties) -> GraphNode:
        return GraphNode(
            id=node_id,
            labels={label},
            properties=NodeProperties(name=name, source=csv_source, **properties),
        )

    return _make


@pytest.fixture
def make_relationship(csv_source):
    """Factory for graph relationships."""

    def _make(from_id: str, to_id: str, rel_type: str, **properties) -> GraphRelationship:
        return GraphRelationship(
            id=f"{from_id}_{to_id}_{rel_type}",
            type=rel_type,
            from_id=from_id,
            to_id=to_id,
            properties=RelationshipProperties(source=csv_source, **properties),
        )

    return _make
