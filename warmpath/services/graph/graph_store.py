"""
Graph store adapters.

``GraphStore`` is the interface the constructor, path finder and target
resolver depend on. ``Neo4jGraphStore`` runs Cypher through the Neo4j client;
``InMemoryGraphStore`` keeps an id-keyed adjacency map for dry runs and tests.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterable, Optional

from neo4j.exceptions import ServiceUnavailable, SessionExpired

from warmpath.core.exceptions import GraphStoreError, GraphStoreUnavailableError
from warmpath.core.neo4j_client import Neo4jClientManager
from warmpath.schemas.graph import (
    GraphNode,
    GraphRelationship,
    NodeLabel,
    NodeProperties,
    RelationshipProperties,
    StorePath,
)
from warmpath.services.graph.constants import (
    ALL_PATHS_QUERY_TEMPLATE,
    FIND_NODE_BY_PROPERTY_QUERY_TEMPLATE,
    FIND_NODES_BY_NAME_QUERY_TEMPLATE,
    MERGE_NODE_QUERY_TEMPLATE,
    MERGE_RELATIONSHIP_QUERY_TEMPLATE,
    SHORTEST_PATHS_QUERY_TEMPLATE,
)
from warmpath.utils.canonical_key import relationship_id_for
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)

_IDENTIFIER_CHARS = set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_")


def _safe_identifier(value: str) -> str:
    """Guard values formatted into Cypher (labels, relationship types, property names)."""
    if not value or not set(value) <= _IDENTIFIER_CHARS:
        raise GraphStoreError(f"Invalid graph identifier: {value!r}")
    return value


def _label_values(labels: Iterable[NodeLabel | str]) -> list[str]:
    return sorted(label.value if isinstance(label, NodeLabel) else str(label) for label in labels)


def _type_value(rel_type: Any) -> str:
    """Plain string of a relationship type, whether given as enum or str."""
    return rel_type.value if isinstance(rel_type, Enum) else str(rel_type)


class GraphStore(ABC):
    """Asynchronous graph store used by the warm-path engine."""

    @abstractmethod
    async def create_or_update_node(
        self,
        node_id: str,
        labels: Iterable[NodeLabel | str],
        properties: NodeProperties,
    ) -> GraphNode:
        """Merge a node by id, adding labels and overwriting the given properties."""

    @abstractmethod
    async def create_or_update_relationship(
        self,
        from_id: str,
        to_id: str,
        rel_type: str,
        properties: RelationshipProperties,
    ) -> GraphRelationship:
        """Merge a relationship keyed by ``<from>_<to>_<TYPE>``. Both endpoints must exist."""

    @abstractmethod
    async def find_node_by_property(self, label: str, property_name: str, value: Any) -> Optional[GraphNode]:
        """First node with ``property_name == value``, or None when not found."""

    @abstractmethod
    async def find_nodes_by_name(self, label: str, name: str, limit: int = 10) -> list[GraphNode]:
        """Nodes whose name contains ``name`` case-insensitively."""

    @abstractmethod
    async def find_shortest_paths(self, target_id: str, max_hops: int, limit: int) -> list[StorePath]:
        """Shortest paths from any seed person to the target, shortest first."""

    @abstractmethod
    async def find_all_paths(self, target_id: str, max_hops: int, limit: int) -> list[StorePath]:
        """Any simple paths from a seed person to the target, shortest first."""


class Neo4jGraphStore(GraphStore):
    """Graph store backed by Neo4j."""

    def __init__(self, neo4j_client: Any = Neo4jClientManager):
        """Initialize with Neo4j client (the client manager class or a compatible object)."""
        self.neo4j_client = neo4j_client

    async def _run(self, query: str, parameters: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            return await self.neo4j_client.run_query(query, parameters)
        except (ServiceUnavailable, SessionExpired) as e:
            raise GraphStoreUnavailableError("Neo4j is unavailable", original_error=e) from e
        except GraphStoreError:
            raise
        except Exception as e:
            raise GraphStoreError(f"Neo4j query failed: {e}", original_error=e) from e

    async def create_or_update_node(
        self,
        node_id: str,
        labels: Iterable[NodeLabel | str],
        properties: NodeProperties,
    ) -> GraphNode:
        label_values = [_safe_identifier(label) for label in _label_values(labels)]
        if not label_values:
            raise GraphStoreError(f"Node {node_id} needs at least one label")

        query = MERGE_NODE_QUERY_TEMPLATE.format(labels=":".join(label_values))
        records = await self._run(query, {"id": node_id, "properties": properties.to_store()})
        if not records:
            raise GraphStoreError(f"Merge returned no node for {node_id}")
        return GraphNode.from_neo4j(records[0])

    async def create_or_update_relationship(
        self,
        from_id: str,
        to_id: str,
        rel_type: str,
        properties: RelationshipProperties,
    ) -> GraphRelationship:
        rel_type = _safe_identifier(_type_value(rel_type))
        rel_id = relationship_id_for(from_id, to_id, rel_type)
        query = MERGE_RELATIONSHIP_QUERY_TEMPLATE.format(rel_type=rel_type)
        records = await self._run(
            query,
            {
                "id": rel_id,
                "from_id": from_id,
                "to_id": to_id,
                "properties": properties.to_store(),
            },
        )
        if not records:
            raise GraphStoreError(f"Cannot create {rel_type}: endpoint {from_id} or {to_id} not found")
        return GraphRelationship.from_neo4j(records[0])

    async def find_node_by_property(self, label: str, property_name: str, value: Any) -> Optional[GraphNode]:
        query = FIND_NODE_BY_PROPERTY_QUERY_TEMPLATE.format(label=_safe_identifier(label))
        records = await self._run(query, {"property": property_name, "value": value})
        return GraphNode.from_neo4j(records[0]) if records else None

    async def find_nodes_by_name(self, label: str, name: str, limit: int = 10) -> list[GraphNode]:
        query = FIND_NODES_BY_NAME_QUERY_TEMPLATE.format(label=_safe_identifier(label))
        records = await self._run(query, {"name": name, "limit": limit})
        return [GraphNode.from_neo4j(record) for record in records]

    async def find_shortest_paths(self, target_id: str, max_hops: int, limit: int) -> list[StorePath]:
        query = SHORTEST_PATHS_QUERY_TEMPLATE.format(max_hops=int(max_hops))
        records = await self._run(query, {"target_id": target_id, "limit": limit})
        return self._to_paths(records)

    async def find_all_paths(self, target_id: str, max_hops: int, limit: int) -> list[StorePath]:
        query = ALL_PATHS_QUERY_TEMPLATE.format(max_hops=int(max_hops))
        records = await self._run(query, {"target_id": target_id, "limit": limit})
        return self._to_paths(records)

    @staticmethod
    def _to_paths(records: list[dict[str, Any]]) -> list[StorePath]:
        paths = []
        for record in records:
            try:
                paths.append(StorePath.from_neo4j(record))
            except Exception as e:
                LOGGER.error(f"Failed to parse path from record: {e}")
        return paths


class InMemoryGraphStore(GraphStore):
    """Graph store holding nodes and relationships in id-keyed maps.

    Traversal treats relationships as undirected, like the Neo4j queries do.
    """

    def __init__(self):
        self.nodes: dict[str, GraphNode] = {}
        self.relationships: dict[str, GraphRelationship] = {}
        self._adjacency: dict[str, list[str]] = {}

    async def create_or_update_node(
        self,
        node_id: str,
        labels: Iterable[NodeLabel | str],
        properties: NodeProperties,
    ) -> GraphNode:
        new_labels = {NodeLabel(label) for label in _label_values(labels)}
        if not new_labels:
            raise GraphStoreError(f"Node {node_id} needs at least one label")

        existing = self.nodes.get(node_id)
        if existing:
            merged = {**existing.properties.to_store(), **properties.to_store()}
            node = GraphNode(
                id=node_id,
                labels=existing.labels | new_labels,
                properties=NodeProperties.from_store(merged),
            )
        else:
            node = GraphNode(id=node_id, labels=new_labels, properties=properties)
            self._adjacency.setdefault(node_id, [])
        self.nodes[node_id] = node
        return node

    async def create_or_update_relationship(
        self,
        from_id: str,
        to_id: str,
        rel_type: str,
        properties: RelationshipProperties,
    ) -> GraphRelationship:
        if from_id not in self.nodes or to_id not in self.nodes:
            raise GraphStoreError(f"Cannot create {rel_type}: endpoint {from_id} or {to_id} not found")

        rel_type = _type_value(rel_type)
        rel_id = relationship_id_for(from_id, to_id, rel_type)
        existing = self.relationships.get(rel_id)
        if existing:
            merged = {**existing.properties.to_store(), **properties.to_store()}
            properties = RelationshipProperties.from_store(merged)
        else:
            self._adjacency[from_id].append(rel_id)
            if to_id != from_id:
                self._adjacency[to_id].append(rel_id)

        relationship = GraphRelationship(
            id=rel_id, type=rel_type, from_id=from_id, to_id=to_id, properties=properties
        )
        self.relationships[rel_id] = relationship
        return relationship

    async def find_node_by_property(self, label: str, property_name: str, value: Any) -> Optional[GraphNode]:
        for node in self.nodes.values():
            if NodeLabel(label) not in node.labels:
                continue
            if node.properties.to_store().get(property_name) == value:
                return node
        return None

    async def find_nodes_by_name(self, label: str, name: str, limit: int = 10) -> list[GraphNode]:
        needle = name.lower()
        matches = [
            node
            for node in self.nodes.values()
            if NodeLabel(label) in node.labels and needle in node.name.lower()
        ]
        return matches[:limit]

    def _seed_ids(self, target_id: str) -> list[str]:
        return [
            node.id
            for node in self.nodes.values()
            if node.properties.is_seed and NodeLabel.PERSON in node.labels and node.id != target_id
        ]

    def _simple_paths(self, start_id: str, target_id: str, max_hops: int) -> list[tuple[list[str], list[str]]]:
        """Depth-first enumeration of simple paths, at most ``max_hops`` relationships long."""
        found: list[tuple[list[str], list[str]]] = []
        stack: list[tuple[str, list[str], list[str]]] = [(start_id, [start_id], [])]

        while stack:
            current, node_ids, rel_ids = stack.pop()
            if current == target_id:
                found.append((node_ids, rel_ids))
                continue
            if len(rel_ids) >= max_hops:
                continue
            # Reversed so the first adjacency entry is explored first
            for rel_id in reversed(self._adjacency.get(current, [])):
                rel = self.relationships[rel_id]
                neighbour = rel.to_id if rel.from_id == current else rel.from_id
                if neighbour in node_ids:
                    continue
                stack.append((neighbour, node_ids + [neighbour], rel_ids + [rel_id]))
        return found

    def _materialize(self, node_ids: list[str], rel_ids: list[str]) -> StorePath:
        return StorePath(
            nodes=[self.nodes[node_id] for node_id in node_ids],
            relationships=[self.relationships[rel_id] for rel_id in rel_ids],
        )

    async def find_shortest_paths(self, target_id: str, max_hops: int, limit: int) -> list[StorePath]:
        if target_id not in self.nodes:
            return []
        candidates = []
        for seed_id in self._seed_ids(target_id):
            paths = self._simple_paths(seed_id, target_id, max_hops)
            if not paths:
                continue
            shortest = min(len(rel_ids) for _, rel_ids in paths)
            candidates.extend(path for path in paths if len(path[1]) == shortest)
        candidates.sort(key=lambda path: len(path[1]))
        return [self._materialize(*path) for path in candidates[:limit]]

    async def find_all_paths(self, target_id: str, max_hops: int, limit: int) -> list[StorePath]:
        if target_id not in self.nodes:
            return []
        candidates = []
        for seed_id in self._seed_ids(target_id):
            candidates.extend(self._simple_paths(seed_id, target_id, max_hops))
        candidates.sort(key=lambda path: len(path[1]))
        return [self._materialize(*path) for path in candidates[:limit]]
