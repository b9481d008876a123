"""Unit tests for the Neo4j and in-memory graph stores."""

import pytest
from neo4j.exceptions import ServiceUnavailable

from warmpath.core.exceptions import GraphStoreError, GraphStoreUnavailableError
from warmpath.schemas.contact import Provenance
from warmpath.schemas.graph import NodeLabel, NodeProperties, RelationshipProperties
from warmpath.services.graph.graph_store import InMemoryGraphStore, Neo4jGraphStore


SOURCE = Provenance(type="csv")

JANE_RECORD = {
    "id": "person_jane_doe",
    "labels": ["Person"],
    "properties": {"id": "person_jane_doe", "name": "Jane Doe", "source_type": "csv", "tier": "A"},
}


class TestNeo4jGraphStore:
    """Cypher generation and error mapping against a mocked client."""

    @pytest.fixture
    def store(self, mock_neo4j_client):
        return Neo4jGraphStore(mock_neo4j_client)

    @pytest.mark.asyncio
    async def test_merge_node_query(self, store, mock_neo4j_client):
        """Test that nodes are merged by id with sorted labels and flat properties."""
        mock_neo4j_client.run_query.return_value = [JANE_RECORD]

        node = await store.create_or_update_node(
            "person_jane_doe",
            [NodeLabel.PERSON],
            NodeProperties(name="Jane Doe", source=SOURCE, is_seed=True),
        )

        query, parameters = mock_neo4j_client.run_query.call_args[0]
        assert "MERGE (n:Person {id: $id})" in query
        assert "SET n += $properties" in query
        assert parameters == {
            "id": "person_jane_doe",
            "properties": {"name": "Jane Doe", "is_seed": True, "source_type": "csv"},
        }
        assert node.id == "person_jane_doe"
        assert node.name == "Jane Doe"
        assert node.properties.extra == {"tier": "A"}

    @pytest.mark.asyncio
    async def test_merge_node_multiple_labels(self, store, mock_neo4j_client):
        mock_neo4j_client.run_query.return_value = [JANE_RECORD]

        await store.create_or_update_node(
            "person_jane_doe", [NodeLabel.PERSON, NodeLabel.FIRM], NodeProperties(name="Jane Doe", source=SOURCE)
        )

        assert "MERGE (n:Firm:Person {id: $id})" in mock_neo4j_client.run_query.call_args[0][0]

    @pytest.mark.asyncio
    async def test_merge_node_without_result(self, store):
        with pytest.raises(GraphStoreError):
            await store.create_or_update_node(
                "person_jane_doe", [NodeLabel.PERSON], NodeProperties(name="Jane Doe", source=SOURCE)
            )

    @pytest.mark.asyncio
    async def test_merge_relationship_query(self, store, mock_neo4j_client):
        """Test that relationships are merged under their deterministic id."""
        mock_neo4j_client.run_query.return_value = [
            {
                "id": "person_a_person_b_KNOWS",
                "type": "KNOWS",
                "from_id": "person_a",
                "to_id": "person_b",
                "properties": {"strength": 0.5, "source_type": "csv"},
            }
        ]

        relationship = await store.create_or_update_relationship(
            "person_a", "person_b", "KNOWS", RelationshipProperties(source=SOURCE, strength=0.5)
        )

        query, parameters = mock_neo4j_client.run_query.call_args[0]
        assert "MERGE (a)-[r:KNOWS {id: $id}]->(b)" in query
        assert parameters["id"] == "person_a_person_b_KNOWS"
        assert parameters["properties"] == {"strength": 0.5, "source_type": "csv"}
        assert relationship.properties.strength == 0.5
        assert relationship.properties.source.type == "csv"

    @pytest.mark.asyncio
    async def test_missing_endpoint(self, store):
        """Test that an empty merge result means an endpoint does not exist."""
        with pytest.raises(GraphStoreError, match="not found"):
            await store.create_or_update_relationship(
                "person_a", "person_b", "KNOWS", RelationshipProperties(source=SOURCE)
            )

    @pytest.mark.asyncio
    async def test_unsafe_relationship_type_is_rejected(self, store, mock_neo4j_client):
        """Test that identifiers formatted into Cypher are validated first."""
        with pytest.raises(GraphStoreError):
            await store.create_or_update_relationship(
                "person_a", "person_b", "KNOWS]->() DETACH DELETE a //", RelationshipProperties(source=SOURCE)
            )

        mock_neo4j_client.run_query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_service_unavailable(self, store, mock_neo4j_client):
        """Test that connection loss maps to the unavailable error."""
        mock_neo4j_client.run_query.side_effect = ServiceUnavailable("connection refused")

        with pytest.raises(GraphStoreUnavailableError):
            await store.find_node_by_property("Person", "name", "Jane Doe")

    @pytest.mark.asyncio
    async def test_query_failure(self, store, mock_neo4j_client):
        error = RuntimeError("syntax error")
        mock_neo4j_client.run_query.side_effect = error

        with pytest.raises(GraphStoreError) as exc_info:
            await store.find_nodes_by_name("Person", "Jane")

        assert not isinstance(exc_info.value, GraphStoreUnavailableError)
        assert exc_info.value.original_error is error

    @pytest.mark.asyncio
    async def test_find_node_by_property_miss(self, store, mock_neo4j_client):
        assert await store.find_node_by_property("Person", "linkedin_url", "https://x") is None
        assert mock_neo4j_client.run_query.call_args[0][1] == {
            "property": "linkedin_url",
            "value": "https://x",
        }

    @pytest.mark.asyncio
    async def test_shortest_paths(self, store, mock_neo4j_client):
        """Test the shortest-path query shape and record parsing."""
        mock_neo4j_client.run_query.return_value = [
            {
                "nodes": [
                    {"id": "person_a", "labels": ["Person"], "properties": {"name": "A", "is_seed": True}},
                    JANE_RECORD,
                ],
                "relationships": [
                    {
                        "id": "person_a_person_jane_doe_KNOWS",
                        "type": "KNOWS",
                        "from_id": "person_a",
                        "to_id": "person_jane_doe",
                        "properties": {"source_type": "csv"},
                    }
                ],
                "path_length": 1,
            },
            {"nodes": [{"labels": ["Person"]}], "relationships": []},
        ]

        paths = await store.find_shortest_paths("person_jane_doe", max_hops=4, limit=3)

        query, parameters = mock_neo4j_client.run_query.call_args[0]
        assert "allShortestPaths((seed)-[*1..4]-(target))" in query
        assert "MATCH (seed:Person {is_seed: true})" in query
        assert parameters == {"target_id": "person_jane_doe", "limit": 3}
        assert len(paths) == 1
        assert [node.id for node in paths[0].nodes] == ["person_a", "person_jane_doe"]
        assert paths[0].nodes[0].properties.is_seed is True

    @pytest.mark.asyncio
    async def test_all_paths_query(self, store, mock_neo4j_client):
        await store.find_all_paths("person_jane_doe", max_hops=3, limit=5)

        query = mock_neo4j_client.run_query.call_args[0][0]
        assert "(seed)-[*1..3]-(target)" in query
        assert "allShortestPaths" not in query


async def _add_person(store, node_id, name, **properties):
    return await store.create_or_update_node(
        node_id, [NodeLabel.PERSON], NodeProperties(name=name, source=SOURCE, **properties)
    )


async def _knows(store, from_id, to_id):
    return await store.create_or_update_relationship(
        from_id, to_id, "KNOWS", RelationshipProperties(source=SOURCE, strength=0.5)
    )


class TestInMemoryGraphStore:

    @pytest.mark.asyncio
    async def test_node_merge_keeps_existing_properties(self, memory_store):
        """Test that merging overwrites given properties and keeps the rest."""
        await _add_person(memory_store, "person_jane_doe", "Jane Doe", email="jane@acme.com", is_seed=True)
        node = await memory_store.create_or_update_node(
            "person_jane_doe",
            [NodeLabel.FIRM],
            NodeProperties(name="Jane Doe", source=SOURCE, role="Partner"),
        )

        assert node.labels == {NodeLabel.PERSON, NodeLabel.FIRM}
        assert node.properties.email == "jane@acme.com"
        assert node.properties.role == "Partner"
        assert node.properties.is_seed is True
        assert len(memory_store.nodes) == 1

    @pytest.mark.asyncio
    async def test_relationship_merge(self, memory_store):
        await _add_person(memory_store, "person_a", "A")
        await _add_person(memory_store, "person_b", "B")

        await _knows(memory_store, "person_a", "person_b")
        merged = await memory_store.create_or_update_relationship(
            "person_a", "person_b", "KNOWS", RelationshipProperties(source=SOURCE, last_seen="2024")
        )

        assert merged.id == "person_a_person_b_KNOWS"
        assert merged.properties.strength == 0.5
        assert merged.properties.last_seen == "2024"
        assert len(memory_store.relationships) == 1

    @pytest.mark.asyncio
    async def test_relationship_requires_endpoints(self, memory_store):
        await _add_person(memory_store, "person_a", "A")

        with pytest.raises(GraphStoreError):
            await _knows(memory_store, "person_a", "person_missing")

    @pytest.mark.asyncio
    async def test_find_nodes_by_name(self, memory_store):
        await _add_person(memory_store, "person_jane_doe", "Jane Doe")
        await _add_person(memory_store, "person_janet_roe", "Janet Roe")
        await memory_store.create_or_update_node(
            "firm_jane_street", [NodeLabel.FIRM], NodeProperties(name="Jane Street", source=SOURCE)
        )

        people = await memory_store.find_nodes_by_name("Person", "JANE")
        limited = await memory_store.find_nodes_by_name("Person", "jane", limit=1)

        assert {node.id for node in people} == {"person_jane_doe", "person_janet_roe"}
        assert len(limited) == 1

    @pytest.mark.asyncio
    async def test_shortest_and_all_paths(self, memory_store):
        """Test that shortest paths exclude longer routes that all paths include."""
        await _add_person(memory_store, "person_seed", "Seed", is_seed=True)
        for node_id in ("person_b", "person_c", "person_d", "person_target"):
            await _add_person(memory_store, node_id, node_id)
        await _knows(memory_store, "person_seed", "person_b")
        # Stored against traversal direction; paths ignore direction
        await _knows(memory_store, "person_target", "person_b")
        await _knows(memory_store, "person_seed", "person_c")
        await _knows(memory_store, "person_c", "person_d")
        await _knows(memory_store, "person_d", "person_target")

        shortest = await memory_store.find_shortest_paths("person_target", max_hops=4, limit=10)
        every = await memory_store.find_all_paths("person_target", max_hops=4, limit=10)
        bounded = await memory_store.find_all_paths("person_target", max_hops=2, limit=10)

        assert [[node.id for node in path.nodes] for path in shortest] == [
            ["person_seed", "person_b", "person_target"]
        ]
        assert [len(path.relationships) for path in every] == [2, 3]
        assert len(bounded) == 1

    @pytest.mark.asyncio
    async def test_no_paths_for_unknown_target(self, memory_store):
        await _add_person(memory_store, "person_seed", "Seed", is_seed=True)

        assert await memory_store.find_shortest_paths("person_missing", 4, 3) == []
        assert await memory_store.find_all_paths("person_seed", 4, 3) == []
