"""Path Scorer for warm-introduction paths.

Implements the path-level scoring formula:
Score = w_len * PathLength + w_type * ConnectionType
        + w_strength * ConnectionStrength + w_mutual * MutualTies

and a segment-level alternative that multiplies relationship-type weights by
node and source confidence.
"""

import re
from datetime import datetime
from typing import Optional, Sequence

from warmpath.core.config import settings
from warmpath.core.exceptions import ValidationError
from warmpath.schemas.graph import GraphNode, GraphRelationship, RelationshipType
from warmpath.schemas.path import (
    PathMetadata,
    ScoredPath,
    ScoringWeights,
    SegmentScore,
    SegmentScoredPath,
)
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)


# Base weight of each relationship type for segment scoring
RELATIONSHIP_WEIGHTS: dict[str, float] = {
    RelationshipType.WORKED_AT.value: 1.0,
    RelationshipType.FOUNDED.value: 0.95,
    RelationshipType.BOARD_MEMBER.value: 0.9,
    RelationshipType.KNOWS.value: 0.85,
    RelationshipType.INVESTED_IN.value: 0.8,
    RelationshipType.ATTENDED_SCHOOL.value: 0.7,
}
DEFAULT_RELATIONSHIP_WEIGHT = 0.5

MUTUAL_TYPE_BOOST = 0.2
MUTUAL_STRENGTH_BOOST = 0.3
MUTUAL_TIES_BOOST = 0.2
MUTUAL_TIES_SATURATION = 3

CURRENT_POSITION_BOOST = 1.2
RECENT_END_BOOST = 1.1
RECENT_END_YEARS = 2

_YEAR = re.compile(r"\b(\d{4})\b")


def default_weights() -> ScoringWeights:
    """Scoring weights from application settings."""
    return ScoringWeights(
        path_length=settings.scoring.path_length_weight,
        connection_type=settings.scoring.connection_type_weight,
        connection_strength=settings.scoring.connection_strength_weight,
        mutual_ties=settings.scoring.mutual_ties_weight,
        max_hops=settings.paths.max_hops,
    )


class PathScorer:
    """Scores alternating node/relationship sequences."""

    def __init__(self, weights: Optional[ScoringWeights] = None, current_year: Optional[int] = None):
        self.weights = weights or default_weights()
        total = (
            self.weights.path_length
            + self.weights.connection_type
            + self.weights.connection_strength
            + self.weights.mutual_ties
        )
        if total <= 0:
            raise ValidationError("At least one scoring weight must be positive")
        self._current_year = current_year

    @property
    def current_year(self) -> int:
        return self._current_year or datetime.now().year

    def score_path(self, path: Sequence[GraphNode | GraphRelationship]) -> ScoredPath:
        """Score a path with the four weighted factors.

        An empty path scores exactly 0 with empty metadata. ``normalized_score``
        is left at 0; the path finder fills it in across a result set.
        """
        if not path:
            return ScoredPath()

        nodes = [element for element in path if isinstance(element, GraphNode)]
        relationships = [element for element in path if isinstance(element, GraphRelationship)]
        hops = len(relationships)

        path_length_score = max(0.0, 1.0 - hops / self.weights.max_hops)
        connection_type_score = self._connection_type_score(relationships)
        connection_strength_score = self._connection_strength_score(relationships)
        ties = self._mutual_ties(nodes)
        mutual_ties_score = self._mutual_ties_score(nodes, ties)

        score = (
            self.weights.path_length * path_length_score
            + self.weights.connection_type * connection_type_score
            + self.weights.connection_strength * connection_strength_score
            + self.weights.mutual_ties * mutual_ties_score
        )

        return ScoredPath(
            path=list(path),
            score=score,
            metadata=PathMetadata(
                path_length=hops,
                connection_types=[relationship.type for relationship in relationships],
                mutual_ties=ties,
            ),
        )

    @staticmethod
    def _connection_type_score(relationships: list[GraphRelationship]) -> float:
        if not relationships:
            return 0.0
        # Direct connections score higher
        score = 1.0 if len(relationships) == 1 else 0.5
        if any(rel.type == RelationshipType.CONNECTED_VIA_MUTUAL.value for rel in relationships):
            score += MUTUAL_TYPE_BOOST
        return min(score, 1.0)

    @staticmethod
    def _connection_strength_score(relationships: list[GraphRelationship]) -> float:
        if not relationships:
            return 0.0
        strengths = []
        for rel in relationships:
            properties = rel.properties
            if properties.strength is not None:
                strength = properties.strength
            elif properties.weight is not None:
                strength = properties.weight
            else:
                strength = 0.0
            if rel.type == RelationshipType.CONNECTED_VIA_MUTUAL.value:
                strength += MUTUAL_STRENGTH_BOOST
            strengths.append(min(strength, 1.0))
        return sum(strengths) / len(strengths)

    @staticmethod
    def _mutual_ties(nodes: list[GraphNode]) -> list[str]:
        """Shared target firm names and ``mutual_<name>`` entries of the non-target nodes."""
        if len(nodes) < 2:
            return []
        target_firm = nodes[-1].properties.firm
        ties: list[str] = []
        for node in nodes[:-1]:
            if target_firm and node.properties.firm == target_firm:
                ties.append(target_firm)
            if node.properties.is_mutual_connection:
                ties.append(f"mutual_{node.properties.name}")
        return ties

    @staticmethod
    def _mutual_ties_score(nodes: list[GraphNode], ties: list[str]) -> float:
        score = min(len(ties) / MUTUAL_TIES_SATURATION, 1.0)
        if any(node.properties.is_mutual_connection for node in nodes):
            score += MUTUAL_TIES_BOOST
        return min(score, 1.0)

    def score_segment(
        self,
        node: GraphNode,
        relationship: GraphRelationship,
        next_node: Optional[GraphNode] = None,
    ) -> SegmentScore:
        """Score one node -> relationship -> node step.

        Type weight times node confidence and source confidence, boosted for
        current positions and for relationships that ended recently.
        """
        score = 1.0
        notes: list[str] = []

        if node.properties.confidence:
            score *= node.properties.confidence
            notes.append(f"Node confidence: {node.properties.confidence}")

        type_weight = RELATIONSHIP_WEIGHTS.get(relationship.type, DEFAULT_RELATIONSHIP_WEIGHT)
        score *= type_weight
        notes.append(f"Relationship type {relationship.type}: {type_weight}")

        properties = relationship.properties
        if properties.is_current:
            score *= CURRENT_POSITION_BOOST
            notes.append(f"Current position boost: {CURRENT_POSITION_BOOST}x")

        end_year = self._end_year(relationship)
        if end_year is not None and self.current_year - end_year <= RECENT_END_YEARS:
            score *= RECENT_END_BOOST
            notes.append(f"Recent end date boost: {RECENT_END_BOOST}x")

        if properties.source_confidence:
            score *= properties.source_confidence
            notes.append(f"Source confidence: {properties.source_confidence}")

        return SegmentScore(
            from_id=node.id,
            to_id=next_node.id if next_node else relationship.to_id,
            relationship_type=relationship.type,
            score=score,
            notes=notes,
        )

    @staticmethod
    def _end_year(relationship: GraphRelationship) -> Optional[int]:
        properties = relationship.properties
        if properties.end_date:
            match = _YEAR.search(properties.end_date)
            if match:
                return int(match.group(1))
        return properties.graduation_year

    def score_path_segments(self, path: Sequence[GraphNode | GraphRelationship]) -> SegmentScoredPath:
        """Average segment score of a path, with its strongest link and source types."""
        segments: list[SegmentScore] = []
        source_types: list[str] = []
        notes: list[str] = []
        strongest: Optional[SegmentScore] = None
        names: dict[str, str] = {}

        for index in range(0, len(path) - 1, 2):
            node = path[index]
            relationship = path[index + 1]
            next_node = path[index + 2] if index + 2 < len(path) else None
            if not isinstance(node, GraphNode) or not isinstance(relationship, GraphRelationship):
                LOGGER.warning("Skipping malformed path segment", extra={"index": index})
                continue

            segment = self.score_segment(node, relationship, next_node)
            segments.append(segment)
            notes.extend(segment.notes)
            names[node.id] = node.name
            if next_node is not None:
                names[next_node.id] = next_node.name

            source_type = relationship.properties.source.type
            if source_type and source_type not in source_types:
                source_types.append(source_type)

            if strongest is None or segment.score > strongest.score:
                strongest = segment

        if strongest is not None:
            notes.append(
                f"Strongest link: {names.get(strongest.from_id, strongest.from_id)} -> "
                f"{strongest.relationship_type} -> {names.get(strongest.to_id, strongest.to_id)}"
            )

        average = sum(segment.score for segment in segments) / len(segments) if segments else 0.0
        return SegmentScoredPath(
            score=average,
            segments=segments,
            strongest_link=strongest,
            source_types=source_types,
            notes=notes,
        )
