from .contact import (
    Contact,
    ErrorKind,
    ImportSummary,
    NormalizationResult,
    PersonalConnection,
    Provenance,
    RowError,
    SourceType,
)
from .graph import (
    GraphConstructionResult,
    GraphNode,
    GraphRelationship,
    NodeLabel,
    NodeProperties,
    RelationshipProperties,
    RelationshipType,
    StorePath,
)
from .path import ResolvedTarget, ScoredPath, ScoringWeights, SegmentScoredPath

__all__ = [
    "Contact",
    "ErrorKind",
    "GraphConstructionResult",
    "GraphNode",
    "GraphRelationship",
    "ImportSummary",
    "NodeLabel",
    "NodeProperties",
    "NormalizationResult",
    "PersonalConnection",
    "Provenance",
    "RelationshipProperties",
    "RelationshipType",
    "ResolvedTarget",
    "RowError",
    "ScoredPath",
    "ScoringWeights",
    "SegmentScoredPath",
    "SourceType",
    "StorePath",
]
