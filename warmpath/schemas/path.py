"""Scored warm-introduction paths."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from warmpath.schemas.graph import GraphNode, GraphRelationship, PathElement


class ScoringWeights(BaseModel):
    """Weights of the four path-level factors and the hop bound used for length scoring."""

    path_length: float = Field(default=0.4, ge=0.0)
    connection_type: float = Field(default=0.3, ge=0.0)
    connection_strength: float = Field(default=0.2, ge=0.0)
    mutual_ties: float = Field(default=0.1, ge=0.0)
    max_hops: int = Field(default=4, gt=0)


class PathMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    path_length: int = 0
    connection_types: list[str] = Field(default_factory=list)
    mutual_ties: list[str] = Field(
        default_factory=list,
        description="Shared target firm names and mutual_<name> entries for mutual-connection nodes",
    )
    min_score: Optional[float] = Field(default=None, description="Lowest raw score in the result set")
    max_score: Optional[float] = Field(default=None, description="Highest raw score in the result set")


class ScoredPath(BaseModel):
    """Alternating node/relationship sequence with its raw and normalized score."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    path: list[PathElement] = Field(default_factory=list)
    score: float = 0.0
    normalized_score: float = 0.0
    metadata: PathMetadata = Field(default_factory=PathMetadata)
    recommended_action: Optional[str] = None

    @model_validator(mode="after")
    def _check_alternation(self) -> "ScoredPath":
        for index, element in enumerate(self.path):
            expected = GraphNode if index % 2 == 0 else GraphRelationship
            if not isinstance(element, expected):
                raise ValueError("path must alternate node, relationship, node")
        if self.path and not isinstance(self.path[-1], GraphNode):
            raise ValueError("path must end with a node")
        return self

    @property
    def nodes(self) -> list[GraphNode]:
        return [element for element in self.path if isinstance(element, GraphNode)]

    @property
    def relationships(self) -> list[GraphRelationship]:
        return [element for element in self.path if isinstance(element, GraphRelationship)]

    @property
    def signature(self) -> tuple:
        """Node ids and relationship types; two paths with the same signature are duplicates."""
        return tuple(
            element.id if isinstance(element, GraphNode) else element.type
            for element in self.path
        )

    def to_response(self) -> dict:
        """JSON form ``{path, score, normalizedScore, metadata, recommendedAction}``."""
        return self.model_dump(mode="json", by_alias=True)


class SegmentScore(BaseModel):
    """Score of one node -> relationship -> node segment."""

    from_id: str
    to_id: str
    relationship_type: str
    score: float
    notes: list[str] = Field(default_factory=list)


class SegmentScoredPath(BaseModel):
    """Segment-level scoring of a path: average strength plus its strongest link."""

    score: float = 0.0
    segments: list[SegmentScore] = Field(default_factory=list)
    strongest_link: Optional[SegmentScore] = None
    source_types: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class TargetMatch(BaseModel):
    """A graph node matched to a free-text target query."""

    node_id: str
    name: str
    label: str
    similarity: float = Field(ge=0.0, le=1.0)


class ResolvedTarget(BaseModel):
    """Outcome of resolving a target query, with connection paths when requested."""

    query: str
    match: Optional[TargetMatch] = None
    connection_paths: Optional[list[ScoredPath]] = None
    notes: list[str] = Field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.match is not None
