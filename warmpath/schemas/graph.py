"""Graph nodes, relationships and construction results."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from warmpath.schemas.contact import ErrorKind, Provenance


class NodeLabel(str, Enum):
    PERSON = "Person"
    FIRM = "Firm"
    SCHOOL = "School"


class RelationshipType(str, Enum):
    WORKED_AT = "WORKED_AT"
    ATTENDED_SCHOOL = "ATTENDED_SCHOOL"
    KNOWS = "KNOWS"
    CONNECTED_VIA_MUTUAL = "CONNECTED_VIA_MUTUAL"
    # Written by other tooling; only read by the scorer
    FOUNDED = "FOUNDED"
    BOARD_MEMBER = "BOARD_MEMBER"
    INVESTED_IN = "INVESTED_IN"


_SOURCE_KEYS = {
    "source_type": "type",
    "source_filename": "filename",
    "source_name": "source_name",
    "source_imported_at": "imported_at",
}


def _flatten_source(source: Provenance) -> dict[str, Any]:
    """Neo4j properties cannot hold maps, so provenance is stored as prefixed scalars."""
    flat = {}
    for store_key, attr in _SOURCE_KEYS.items():
        value = getattr(source, attr)
        if value is None:
            continue
        flat[store_key] = value.isoformat() if isinstance(value, datetime) else value
    return flat


def _split_store_properties(
    properties: dict[str, Any], known_fields: set[str]
) -> tuple[dict[str, Any], dict[str, str]]:
    """Split flat store properties into known fields, provenance and ``extra``."""
    known: dict[str, Any] = {}
    extra: dict[str, str] = {}
    source: dict[str, Any] = {}

    for key, value in properties.items():
        if value is None:
            continue
        if key in _SOURCE_KEYS:
            source[_SOURCE_KEYS[key]] = value
        elif key == "source" and isinstance(value, dict):
            source.update(value)
        elif key == "source" and isinstance(value, str):
            source.setdefault("type", value)
        elif key in known_fields:
            known[key] = value
        elif key != "id":
            extra[key] = str(value)

    source.setdefault("type", "unknown")
    known["source"] = Provenance(**source)
    return known, extra


class NodeProperties(BaseModel):
    """Typed node properties plus an ``extra`` overflow for unrecognized keys."""

    name: str
    source: Provenance
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    firm: Optional[str] = None
    firm_slug: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_handle: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    headline: Optional[str] = None
    notes: Optional[str] = None
    school: Optional[str] = None
    degree: Optional[str] = None
    assets_under_management: Optional[str] = None
    is_seed: bool = False
    is_mutual_connection: bool = False
    extra: dict[str, str] = Field(default_factory=dict)

    def to_store(self) -> dict[str, Any]:
        """Flat, null-free property map suitable for a Cypher ``SET n += $props``.

        Flags are only written when set, so a later merge cannot clear them.
        """
        data = self.model_dump(exclude={"source", "extra"}, exclude_none=True)
        for flag in ("is_seed", "is_mutual_connection"):
            if not data.get(flag):
                data.pop(flag, None)
        data.update(_flatten_source(self.source))
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_store(cls, properties: dict[str, Any]) -> "NodeProperties":
        known, extra = _split_store_properties(properties, set(cls.model_fields) - {"extra", "source"})
        known.setdefault("name", str(properties.get("id", "")))
        return cls(**known, extra=extra)


class RelationshipProperties(BaseModel):
    """Typed relationship properties. ``source`` is always present."""

    source: Provenance
    strength: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    weight: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    source_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    mutual_count: Optional[int] = Field(default=None, ge=0)
    direction: Optional[str] = None
    last_seen: Optional[str] = None
    notes: Optional[str] = None
    via: Optional[str] = None
    role: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_current: Optional[bool] = None
    degree: Optional[str] = None
    graduation_year: Optional[int] = None
    extra: dict[str, str] = Field(default_factory=dict)

    def to_store(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"source", "extra"}, exclude_none=True)
        data.update(_flatten_source(self.source))
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_store(cls, properties: dict[str, Any]) -> "RelationshipProperties":
        known, extra = _split_store_properties(properties, set(cls.model_fields) - {"extra", "source"})
        return cls(**known, extra=extra)


class GraphNode(BaseModel):
    """A Person, Firm or School node."""

    element: Literal["node"] = "node"
    id: str = Field(description="Deterministic id, e.g. firm_acme_capital")
    labels: set[NodeLabel]
    properties: NodeProperties

    @property
    def name(self) -> str:
        return self.properties.name

    @property
    def primary_label(self) -> Optional[NodeLabel]:
        for label in NodeLabel:
            if label in self.labels:
                return label
        return None

    @classmethod
    def from_neo4j(cls, record: dict[str, Any]) -> "GraphNode":
        """Construct from a ``{"id", "labels", "properties"}`` query record."""
        properties = dict(record.get("properties") or {})
        labels = {NodeLabel(label) for label in record.get("labels", []) if label in NodeLabel._value2member_map_}
        return cls(
            id=record.get("id") or properties.get("id"),
            labels=labels,
            properties=NodeProperties.from_store(properties),
        )


class GraphRelationship(BaseModel):
    """A typed, directed edge between two node ids."""

    element: Literal["relationship"] = "relationship"
    id: str = Field(description="<from_id>_<to_id>_<TYPE>")
    type: str
    from_id: str
    to_id: str
    properties: RelationshipProperties

    @classmethod
    def from_neo4j(cls, record: dict[str, Any]) -> "GraphRelationship":
        """Construct from a ``{"id", "type", "from_id", "to_id", "properties"}`` record."""
        properties = dict(record.get("properties") or {})
        rel_type = record["type"]
        from_id = record["from_id"]
        to_id = record["to_id"]
        return cls(
            id=record.get("id") or properties.get("id") or f"{from_id}_{to_id}_{rel_type}",
            type=rel_type,
            from_id=from_id,
            to_id=to_id,
            properties=RelationshipProperties.from_store(properties),
        )


PathElement = Annotated[Union[GraphNode, GraphRelationship], Field(discriminator="element")]


class StorePath(BaseModel):
    """A materialized path as returned by a graph store, in traversal order."""

    nodes: list[GraphNode]
    relationships: list[GraphRelationship]

    @classmethod
    def from_neo4j(cls, record: dict[str, Any]) -> "StorePath":
        return cls(
            nodes=[GraphNode.from_neo4j(node) for node in record.get("nodes", [])],
            relationships=[GraphRelationship.from_neo4j(rel) for rel in record.get("relationships", [])],
        )


class JobHistory(BaseModel):
    """One employment record, from a JSON blob or an enrichment source."""

    company: str
    role: Optional[str] = None
    title: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    start_year: Optional[int] = Field(default=None, alias="startYear")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    end_year: Optional[int] = Field(default=None, alias="endYear")
    is_current: Optional[bool] = Field(default=None, alias="isCurrent")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @property
    def effective_role(self) -> Optional[str]:
        return self.role or self.title

    @property
    def start(self) -> Optional[str]:
        if self.start_date:
            return self.start_date
        return str(self.start_year) if self.start_year else None

    @property
    def end(self) -> Optional[str]:
        if self.end_date:
            return self.end_date
        return str(self.end_year) if self.end_year else None

    @property
    def current(self) -> bool:
        if self.is_current is not None:
            return self.is_current
        return self.end is None or self.end.lower() in {"present", "current", "now"}


class EducationRecord(BaseModel):
    """One education record."""

    school: Optional[str] = None
    institution: Optional[str] = None
    degree: Optional[str] = None
    graduation_year: Optional[int] = Field(default=None, alias="graduationYear")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @property
    def school_name(self) -> Optional[str]:
        return self.school or self.institution


class MutualConnection(BaseModel):
    """A mutual connection reported by the professional-network API."""

    name: str
    external_id: Optional[str] = Field(default=None, alias="id")
    headline: Optional[str] = None
    profile_url: Optional[str] = Field(default=None, alias="profileUrl")
    mutual_count: Optional[int] = Field(default=None, alias="mutualCount", ge=0)
    via_members: list[str] = Field(default_factory=list, alias="viaMembers")

    model_config = {"populate_by_name": True}


class AutomationMutualConnection(BaseModel):
    """A mutual connection discovered by browser automation on behalf of one seed member."""

    name: str
    profile_url: Optional[str] = Field(default=None, alias="profileUrl")
    title: Optional[str] = None
    discovered_by: str = Field(alias="discoveredBy")

    model_config = {"populate_by_name": True}


class EntityFailure(BaseModel):
    """A contact or connection that was skipped during construction."""

    entity: str
    kind: ErrorKind
    message: str


class PlannedMutation(BaseModel):
    """A store write that a dry run would have performed."""

    operation: Literal["merge_node", "merge_relationship"]
    target_id: str
    labels: list[str] = Field(default_factory=list)
    rel_type: Optional[str] = None
    properties: dict[str, Any] = Field(default_factory=dict)


class GraphConstructionResult(BaseModel):
    """Outcome of a construction batch."""

    nodes: list[GraphNode] = Field(default_factory=list)
    relationships: list[GraphRelationship] = Field(default_factory=list)
    failures: list[EntityFailure] = Field(default_factory=list)
    skipped: int = 0
    dry_run: bool = False
    planned: list[PlannedMutation] = Field(default_factory=list)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def relationship_count(self) -> int:
        return len(self.relationships)
