"""
Path Finder

Discovers warm-introduction paths from seed people to a target node. Shortest
paths are tried first; when none exist within the hop bound, any simple path
is accepted. Each path is scored and scores are normalized across the result
set so the best path of a query always has a normalized score of 1.
"""

from typing import Optional

from warmpath.core.config import settings
from warmpath.core.exceptions import PathFindingError
from warmpath.schemas.graph import GraphNode, GraphRelationship, RelationshipType, StorePath
from warmpath.schemas.path import ScoredPath
from warmpath.services.graph.graph_store import GraphStore
from warmpath.services.query.path_scorer import PathScorer, default_weights
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)


# Mutual-connection counts on a KNOWS hop that mark a strong or warm introduction
STRONG_MUTUAL_COUNT = 100
WARM_MUTUAL_COUNT = 30


def to_path_elements(store_path: StorePath) -> list[GraphNode | GraphRelationship]:
    """Interleave a store path into ``[node, relationship, node, ...]`` traversal order."""
    elements: list[GraphNode | GraphRelationship] = []
    for index, node in enumerate(store_path.nodes):
        elements.append(node)
        if index < len(store_path.relationships):
            elements.append(store_path.relationships[index])
    return elements


def normalize_scores(paths: list[ScoredPath]) -> list[ScoredPath]:
    """
    Min/max rescale of raw scores into [0, 1]. All-equal scores normalize to 1.

    The raw score bounds of the set are recorded in each path's metadata.
    """
    if not paths:
        return paths

    scores = [path.score for path in paths]
    min_score = min(scores)
    max_score = max(scores)
    score_range = max_score - min_score

    normalized = []
    for path in paths:
        metadata = path.metadata.model_copy(update={"min_score": min_score, "max_score": max_score})
        value = (path.score - min_score) / score_range if score_range > 0 else 1.0
        normalized.append(path.model_copy(update={"normalized_score": value, "metadata": metadata}))
    return normalized


def recommend_action(path: ScoredPath) -> str:
    """Suggested next step, phrased from the first hop of the path."""
    nodes = path.nodes
    if len(nodes) < 2:
        return "No clear path found"

    source, contact, target = nodes[0], nodes[1], nodes[-1]
    first_hop = path.relationships[0]
    properties = first_hop.properties

    if first_hop.type == RelationshipType.KNOWS.value:
        mutuals = properties.mutual_count or 0
        lines = [f"Connection path through {contact.name}:"]
        if mutuals >= STRONG_MUTUAL_COUNT:
            lines.append(f"Strong connection opportunity: {mutuals} mutual connections")
        elif mutuals >= WARM_MUTUAL_COUNT:
            lines.append(f"Warm connection: {mutuals} shared connections")
        else:
            lines.append(f"Possible connection: {mutuals} mutual connections")
        lines.append(f"- Connection type: {properties.direction or 'unknown'}")
        if properties.last_seen:
            lines.append(f"- Last seen: {properties.last_seen}")
        if properties.notes:
            lines.append(f"- Notes: {properties.notes}")
        return "\n".join(lines)

    if first_hop.type == RelationshipType.CONNECTED_VIA_MUTUAL.value:
        if contact.id == target.id:
            return f"Ask {source.name} to introduce you to {target.name} as a mutual connection"
        return f"Ask {contact.name} to introduce you to {target.name} as a mutual connection"

    if first_hop.type in (RelationshipType.WORKED_AT.value, RelationshipType.ATTENDED_SCHOOL.value):
        role = properties.role or properties.degree
        via = f"{role} at {contact.name}" if role else contact.name
        if properties.is_current:
            via += " (current)"
        return f"Ask {source.name} to introduce you to {target.name} via {via}"

    return "Consider reaching out through mutual connections"


def rank_paths(paths: list[ScoredPath]) -> list[ScoredPath]:
    """Highest score first. Stable for ties."""
    return sorted(paths, key=lambda path: path.score, reverse=True)


class PathFinder:
    """Finds and scores paths between seed people and a target."""

    def __init__(
        self,
        graph_store: GraphStore,
        scorer: Optional[PathScorer] = None,
        max_hops: Optional[int] = None,
        limit: Optional[int] = None,
    ):
        self.graph_store = graph_store
        self.max_hops = max_hops if max_hops is not None else settings.paths.max_hops
        self.limit = limit if limit is not None else settings.paths.limit
        if self.max_hops < 1:
            raise PathFindingError(f"max_hops must be at least 1, got {self.max_hops}")
        if self.limit < 1:
            raise PathFindingError(f"limit must be at least 1, got {self.limit}")
        # Length credit is measured against the same hop bound the search uses
        self.scorer = scorer or PathScorer(default_weights().model_copy(update={"max_hops": self.max_hops}))

    async def find_paths(
        self,
        target_id: str,
        limit: Optional[int] = None,
        debug: bool = False,
    ) -> list[ScoredPath]:
        """
        Find scored paths to ``target_id``.

        Args:
            target_id: Deterministic id of the target node
            limit: Maximum paths to return (defaults to the finder's limit)
            debug: Log query and scoring decisions

        Returns:
            Scored paths in store order (shortest first), with normalized scores

        Raises:
            PathFindingError: No target id was given, or the limit is below 1
            GraphStoreError: Propagated from the graph store
        """
        if not target_id:
            raise PathFindingError("A target node id is required")
        limit = limit if limit is not None else self.limit
        if limit < 1:
            raise PathFindingError(f"limit must be at least 1, got {limit}")

        store_paths = await self.graph_store.find_shortest_paths(target_id, self.max_hops, limit)
        if debug:
            LOGGER.info(
                f"Found {len(store_paths)} shortest paths",
                extra={"target_id": target_id, "max_hops": self.max_hops},
            )

        if not store_paths:
            if debug:
                LOGGER.info("No shortest paths found, trying alternative paths", extra={"target_id": target_id})
            store_paths = await self.graph_store.find_all_paths(target_id, self.max_hops, limit)
            if debug:
                LOGGER.info(f"Found {len(store_paths)} alternative paths", extra={"target_id": target_id})

        scored: list[ScoredPath] = []
        seen: set[tuple] = set()
        for store_path in store_paths:
            scored_path = self.scorer.score_path(to_path_elements(store_path))
            if scored_path.signature in seen:
                continue
            seen.add(scored_path.signature)
            scored.append(scored_path.model_copy(update={"recommended_action": recommend_action(scored_path)}))

        results = normalize_scores(scored)
        LOGGER.info(
            "Path search completed",
            extra={
                "target_id": target_id,
                "paths": len(results),
                "duplicates_dropped": len(store_paths) - len(results),
            },
        )
        if debug:
            for path in results:
                LOGGER.info(
                    f"Path score {path.score:.3f} (normalized {path.normalized_score:.3f})",
                    extra={"signature": " ".join(path.signature)},
                )
        return results

    def normalize_scores(self, paths: list[ScoredPath]) -> list[ScoredPath]:
        return normalize_scores(paths)

    def rank_paths(self, paths: list[ScoredPath]) -> list[ScoredPath]:
        return rank_paths(paths)
