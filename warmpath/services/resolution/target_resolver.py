"""
Target Resolver

Matches a free-text target (a person or firm name) against nodes already in
the graph and, optionally, looks up warm-introduction paths to the match.
People are tried before firms. External enrichment on a miss is not done here.
"""

from typing import Optional

from warmpath.core.config import settings
from warmpath.schemas.graph import NodeLabel
from warmpath.schemas.path import ResolvedTarget, TargetMatch
from warmpath.services.graph.graph_store import GraphStore
from warmpath.services.query.path_finder import PathFinder
from warmpath.services.resolution.entity_resolver import EntityResolver
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)

CANDIDATE_LIMIT = 10


class TargetResolver:
    """Resolves target queries to graph nodes."""

    def __init__(
        self,
        graph_store: GraphStore,
        entity_resolver: EntityResolver,
        path_finder: Optional[PathFinder] = None,
        min_similarity: Optional[float] = None,
    ):
        self.graph_store = graph_store
        self.entity_resolver = entity_resolver
        self.path_finder = path_finder or PathFinder(graph_store)
        self.min_similarity = (
            min_similarity if min_similarity is not None else settings.resolution.min_similarity
        )

    async def resolve_target(
        self,
        query: str,
        find_paths: bool = True,
        min_similarity: Optional[float] = None,
        debug: bool = False,
    ) -> ResolvedTarget:
        """
        Resolve ``query`` to a Person or Firm node.

        Args:
            query: Free-text target name
            find_paths: Run the path finder against the matched node
            min_similarity: Override for the match threshold
            debug: Log candidate decisions

        Returns:
            ResolvedTarget; ``match`` is None when nothing in the graph is close enough

        Raises:
            GraphStoreError: Propagated from the graph store
        """
        threshold = self.min_similarity if min_similarity is None else min_similarity
        result = ResolvedTarget(query=query)

        if not query or not query.strip():
            result.notes.append("Empty target query")
            return result

        match = await self.match_person(query, threshold, debug)
        if match is None:
            match = await self.match_firm(query, threshold, debug)

        if match is None:
            result.notes.append("No match found in graph")
            LOGGER.info("Target not found in graph", extra={"query": query})
            return result

        result.match = match
        result.notes.append(f"Matched {match.label} {match.name} ({match.similarity:.2f})")
        LOGGER.info(
            f"Resolved target \"{query}\" to {match.node_id}",
            extra={"label": match.label, "similarity": match.similarity},
        )

        if find_paths:
            result.connection_paths = await self.path_finder.find_paths(match.node_id, debug=debug)
            result.notes.append(f"Found {len(result.connection_paths)} connection paths")
        return result

    async def match_person(
        self, query: str, min_similarity: Optional[float] = None, debug: bool = False
    ) -> Optional[TargetMatch]:
        return await self._match(NodeLabel.PERSON, query, min_similarity, debug)

    async def match_firm(
        self, query: str, min_similarity: Optional[float] = None, debug: bool = False
    ) -> Optional[TargetMatch]:
        return await self._match(NodeLabel.FIRM, query, min_similarity, debug)

    async def _match(
        self,
        label: NodeLabel,
        query: str,
        min_similarity: Optional[float],
        debug: bool,
    ) -> Optional[TargetMatch]:
        threshold = self.min_similarity if min_similarity is None else min_similarity
        resolved_name = self.entity_resolver.resolve(query.strip())

        candidates = await self.graph_store.find_nodes_by_name(label.value, resolved_name, CANDIDATE_LIMIT)
        best: Optional[TargetMatch] = None
        for node in candidates:
            similarity = self.entity_resolver.compare(resolved_name, node.name)
            if debug:
                LOGGER.info(
                    f"Candidate {node.id} similarity {similarity:.2f}",
                    extra={"query": query, "label": label.value},
                )
            if similarity < threshold:
                continue
            if best is None or similarity > best.similarity:
                best = TargetMatch(
                    node_id=node.id,
                    name=node.name,
                    label=label.value,
                    similarity=similarity,
                )
        return best
