"""Graph construction and graph store adapters."""

from warmpath.services.graph.graph_constructor import GraphConstructor, parse_connection_text
from warmpath.services.graph.graph_store import GraphStore, InMemoryGraphStore, Neo4jGraphStore

__all__ = [
    "GraphConstructor",
    "GraphStore",
    "InMemoryGraphStore",
    "Neo4jGraphStore",
    "parse_connection_text",
]
