"""
Graph Constructor

Merges normalized contacts into the relationship graph: person, firm and
school nodes plus WORKED_AT, ATTENDED_SCHOOL, KNOWS and CONNECTED_VIA_MUTUAL
relationships. Node and relationship ids are deterministic, so overlapping
batches converge on the same graph.

Construction is best effort: a failure on one contact or connection is logged,
recorded on the result and skipped. Only an unreachable store aborts a batch.
"""

import json
import re
from typing import Any, Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from warmpath.core.config import GraphSettings, settings
from warmpath.core.exceptions import (
    GraphConstructionError,
    GraphStoreError,
    GraphStoreUnavailableError,
)
from warmpath.schemas.contact import Contact, ErrorKind, PersonalConnection, Provenance, SourceType
from warmpath.schemas.graph import (
    AutomationMutualConnection,
    EducationRecord,
    EntityFailure,
    GraphConstructionResult,
    GraphNode,
    GraphRelationship,
    JobHistory,
    MutualConnection,
    NodeLabel,
    NodeProperties,
    PlannedMutation,
    RelationshipProperties,
    RelationshipType,
)
from warmpath.services.graph.graph_store import GraphStore
from warmpath.services.resolution.entity_resolver import EntityResolver
from warmpath.utils.canonical_key import node_id_for, relationship_id_for, slugify_entity_id
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)

_WITH_NAME = re.compile(r"with\s+([^,;.]+)", re.IGNORECASE)
_MUTUAL_COUNT = re.compile(r"(\d+)\s+mutual\s+connections?", re.IGNORECASE)
_LAST_SEEN = re.compile(r"last\s+seen\s+([^,;]+)", re.IGNORECASE)
_DIRECTION = re.compile(r"\b(incoming|outgoing|mutual)\b", re.IGNORECASE)


def parse_connection_text(text: str) -> Optional[PersonalConnection]:
    """Pull a connection out of free text such as
    ``"Connected with Jane Doe, 12 mutual connections, last seen March 2023"``.

    Returns None when no ``with <name>`` target is present.
    """
    name_match = _WITH_NAME.search(text)
    if not name_match or not name_match.group(1).strip():
        return None

    mutual = _MUTUAL_COUNT.search(text)
    last_seen = _LAST_SEEN.search(text)
    direction = _DIRECTION.search(text)
    return PersonalConnection(
        name=name_match.group(1).strip(),
        mutual_connections=int(mutual.group(1)) if mutual else None,
        last_seen=last_seen.group(1).strip() if last_seen else None,
        direction=direction.group(1).lower() if direction else None,
        notes=text,
    )


class _BatchState:
    """Bookkeeping for one construction call."""

    def __init__(self, dry_run: bool, debug: bool):
        self.dry_run = dry_run
        self.debug = debug
        self.person_nodes: dict[str, GraphNode] = {}
        self.nodes: dict[str, GraphNode] = {}
        self.relationships: dict[str, GraphRelationship] = {}
        self.result = GraphConstructionResult(dry_run=dry_run)

    def fail(self, entity: str, kind: ErrorKind, error: Exception | str) -> None:
        message = str(error)
        LOGGER.error(
            f"Skipping {entity}: {message}",
            extra={"entity": entity, "kind": kind.value},
        )
        self.result.failures.append(EntityFailure(entity=entity, kind=kind, message=message))

    def finish(self) -> GraphConstructionResult:
        self.result.nodes = list(self.nodes.values())
        self.result.relationships = list(self.relationships.values())
        return self.result


class GraphConstructor:
    """Builds the warm-introduction graph from contacts and mutual-connection data."""

    def __init__(
        self,
        graph_store: GraphStore,
        entity_resolver: EntityResolver,
        graph_settings: Optional[GraphSettings] = None,
        min_similarity: Optional[float] = None,
    ):
        self.graph_store = graph_store
        self.entity_resolver = entity_resolver
        self.settings = graph_settings or settings.graph
        self.min_similarity = (
            min_similarity if min_similarity is not None else settings.resolution.min_similarity
        )

    async def construct_graph(
        self,
        contacts: Sequence[Contact],
        job_histories: Optional[Mapping[str, Sequence[JobHistory | Mapping[str, Any]]]] = None,
        min_similarity: Optional[float] = None,
        debug: bool = False,
        dry_run: bool = False,
    ) -> GraphConstructionResult:
        """
        Merge a batch of contacts into the graph, sequentially.

        Args:
            contacts: Normalized contacts
            job_histories: Extra employment records keyed by person name
            min_similarity: Threshold for matching job-history keys to contact names
            debug: Log every node and relationship decision
            dry_run: Plan mutations without touching the store

        Returns:
            GraphConstructionResult with merged (or planned) nodes, relationships
            and per-entity failures

        Raises:
            GraphStoreUnavailableError: The store could not be reached
        """
        state = _BatchState(dry_run=dry_run, debug=debug)
        threshold = self.min_similarity if min_similarity is None else min_similarity

        LOGGER.info(
            f"Constructing graph with {len(contacts)} contacts",
            extra={
                "job_history_people": len(job_histories or {}),
                "dry_run": dry_run,
            },
        )

        for contact in contacts:
            label = contact.name or contact.firm or str(contact.id)
            try:
                person = await self._merge_contact(state, contact)
            except GraphStoreUnavailableError:
                raise
            except (GraphStoreError, GraphConstructionError, PydanticValidationError, ValueError) as e:
                state.fail(label, ErrorKind.STORE_FAILURE, e)
                continue
            if person is None:
                continue

            await self._process_firm(state, contact, person)
            await self._process_personal_connections(state, contact, person)
            jobs = self._jobs_for(state, contact, person, job_histories, threshold)
            await self._process_job_history(state, contact, person, jobs)
            await self._process_education(state, contact, person)

        result = state.finish()
        LOGGER.info(
            "Graph construction finished",
            extra={
                "nodes": result.node_count,
                "relationships": result.relationship_count,
                "skipped": result.skipped,
                "failures": len(result.failures),
                "dry_run": dry_run,
            },
        )
        return result

    async def add_mutual_connections(
        self,
        target_profile_url: str,
        mutuals: Iterable[MutualConnection],
        debug: bool = False,
    ) -> GraphConstructionResult:
        """Ingest mutual connections reported by the professional-network API."""
        entries = [
            (mutual.name, mutual.profile_url, mutual.headline, mutual.via_members, mutual.mutual_count)
            for mutual in mutuals
        ]
        return await self._ingest_mutuals(
            target_profile_url,
            entries,
            Provenance(type=SourceType.LINKEDIN_API.value, source_name="LinkedIn"),
            self.settings.api_mutual_weight,
            debug,
        )

    async def add_automation_mutual_connections(
        self,
        target_profile_url: str,
        mutuals: Iterable[AutomationMutualConnection],
        debug: bool = False,
    ) -> GraphConstructionResult:
        """Ingest mutual connections found by browser automation. Weighted lower than API data."""
        entries = [
            (mutual.name, mutual.profile_url, mutual.title, [mutual.discovered_by], None)
            for mutual in mutuals
        ]
        return await self._ingest_mutuals(
            target_profile_url,
            entries,
            Provenance(type=SourceType.LINKEDIN_AUTOMATION.value, source_name="Browser automation"),
            self.settings.automation_mutual_weight,
            debug,
        )

    # Store access

    async def _merge_node(
        self,
        state: _BatchState,
        label: NodeLabel,
        name: str,
        properties: NodeProperties,
    ) -> GraphNode:
        if not slugify_entity_id(name):
            raise GraphConstructionError(f"Cannot derive a {label.value} id from {name!r}")
        node_id = node_id_for(label.value, name)
        if state.dry_run:
            node = GraphNode(id=node_id, labels={label}, properties=properties)
            existing = state.nodes.get(node_id)
            if existing:
                node = GraphNode(
                    id=node_id,
                    labels=existing.labels | node.labels,
                    properties=NodeProperties.from_store(
                        {**existing.properties.to_store(), **properties.to_store()}
                    ),
                )
            state.result.planned.append(
                PlannedMutation(
                    operation="merge_node",
                    target_id=node_id,
                    labels=[label.value],
                    properties=properties.to_store(),
                )
            )
        else:
            node = await self.graph_store.create_or_update_node(node_id, [label], properties)

        state.nodes[node.id] = node
        if state.debug:
            LOGGER.info(f"Merged node {node.id}", extra={"labels": [label.value for label in node.labels]})
        return node

    async def _merge_relationship(
        self,
        state: _BatchState,
        from_id: str,
        to_id: str,
        rel_type: RelationshipType,
        properties: RelationshipProperties,
    ) -> Optional[GraphRelationship]:
        rel_id = relationship_id_for(from_id, to_id, rel_type.value)
        if rel_id in state.relationships:
            state.result.skipped += 1
            if state.debug:
                LOGGER.info(f"Skipped existing relationship {rel_id}")
            return state.relationships[rel_id]

        if state.dry_run:
            relationship = GraphRelationship(
                id=rel_id, type=rel_type.value, from_id=from_id, to_id=to_id, properties=properties
            )
            state.result.planned.append(
                PlannedMutation(
                    operation="merge_relationship",
                    target_id=rel_id,
                    rel_type=rel_type.value,
                    properties=properties.to_store(),
                )
            )
        else:
            relationship = await self.graph_store.create_or_update_relationship(
                from_id, to_id, rel_type.value, properties
            )

        state.relationships[relationship.id] = relationship
        if state.debug:
            LOGGER.info(f"Merged relationship {relationship.id}")
        return relationship

    # Per-contact steps

    async def _merge_contact(self, state: _BatchState, contact: Contact) -> Optional[GraphNode]:
        if not contact.name:
            state.fail(str(contact.id), ErrorKind.MISSING_REQUIRED_FIELD, "Contact has no name")
            return None

        resolution = self.entity_resolver.resolve_with_details(contact.name)
        person_key = resolution.resolved_name.lower()

        existing = state.person_nodes.get(person_key)
        if existing:
            state.result.skipped += 1
            if state.debug:
                LOGGER.info(f"Reusing node {existing.id} for {contact.name}")
            return existing

        properties = NodeProperties(
            name=resolution.resolved_name,
            source=contact.source,
            confidence=resolution.confidence,
            firm=self._resolve_optional(contact.firm),
            firm_slug=contact.firm_slug,
            role=contact.role,
            email=contact.email,
            linkedin_url=contact.linkedin_url,
            twitter_handle=contact.twitter_handle,
            location=contact.location,
            website=contact.website,
            notes=contact.notes,
            school=contact.school,
            degree=contact.degree,
            assets_under_management=contact.assets_under_management,
            is_seed=contact.source.type == self.settings.seed_source_type,
            extra={"contact_id": str(contact.id)},
        )
        node = await self._merge_node(state, NodeLabel.PERSON, resolution.resolved_name, properties)
        state.person_nodes[person_key] = node
        return node

    def _resolve_optional(self, name: Optional[str]) -> Optional[str]:
        return self.entity_resolver.resolve(name) if name else None

    async def _process_firm(self, state: _BatchState, contact: Contact, person: GraphNode) -> None:
        if not contact.firm or contact.firm == contact.name:
            return
        firm_name = self.entity_resolver.resolve(contact.firm)
        try:
            firm = await self._merge_node(
                state,
                NodeLabel.FIRM,
                firm_name,
                NodeProperties(name=firm_name, source=contact.source, firm_slug=contact.firm_slug),
            )
            await self._merge_relationship(
                state,
                person.id,
                firm.id,
                RelationshipType.WORKED_AT,
                RelationshipProperties(
                    source=contact.source,
                    role=contact.role,
                    is_current=True,
                    source_confidence=contact.confidence.get("firm"),
                ),
            )
        except GraphStoreUnavailableError:
            raise
        except (GraphStoreError, GraphConstructionError, PydanticValidationError, ValueError) as e:
            state.fail(firm_name, ErrorKind.STORE_FAILURE, e)

    async def _process_personal_connections(
        self, state: _BatchState, contact: Contact, person: GraphNode
    ) -> None:
        raw = contact.personal_connections
        if not raw:
            return

        if isinstance(raw, str):
            parsed = parse_connection_text(raw)
            if parsed is None:
                if state.debug:
                    LOGGER.info(f"No connection target found for {contact.name}", extra={"text": raw[:100]})
                return
            connections = [parsed]
        else:
            connections = list(raw)

        for connection in connections:
            if not connection.name:
                continue
            try:
                await self._merge_connection(state, contact, person, connection)
            except GraphStoreUnavailableError:
                raise
            except (GraphStoreError, GraphConstructionError, PydanticValidationError, ValueError) as e:
                state.fail(connection.name, ErrorKind.STORE_FAILURE, e)

    async def _merge_connection(
        self,
        state: _BatchState,
        contact: Contact,
        person: GraphNode,
        connection: PersonalConnection,
    ) -> None:
        source = (
            Provenance(type=connection.source)
            if connection.source
            else contact.source
        )
        resolved = self.entity_resolver.resolve_with_details(connection.name)
        other = await self._merge_node(
            state,
            NodeLabel.PERSON,
            resolved.resolved_name,
            NodeProperties(
                name=resolved.resolved_name,
                source=source,
                confidence=resolved.confidence,
                role=connection.current_role,
                firm=connection.current_company,
            ),
        )
        if other.id == person.id:
            return
        await self._merge_relationship(
            state,
            person.id,
            other.id,
            RelationshipType.KNOWS,
            RelationshipProperties(
                source=source,
                strength=(
                    connection.strength
                    if connection.strength is not None
                    else self.settings.default_knows_strength
                ),
                mutual_count=connection.mutual_connections,
                last_seen=connection.last_seen,
                direction=connection.direction or "mutual",
                notes=connection.notes,
            ),
        )

    def _jobs_for(
        self,
        state: _BatchState,
        contact: Contact,
        person: GraphNode,
        job_histories: Optional[Mapping[str, Sequence[JobHistory | Mapping[str, Any]]]],
        threshold: float,
    ) -> list[Any]:
        """Job entries from the contact's JSON blob plus any supplied for this person."""
        entries: list[Any] = []
        if contact.job_history_raw:
            entries.extend(self._load_json_list(contact.job_history_raw, contact.name, "job history", state))

        for person_name, jobs in (job_histories or {}).items():
            if self.entity_resolver.is_match(person_name, person.name, threshold):
                entries.extend(jobs)
        return entries

    async def _process_job_history(
        self,
        state: _BatchState,
        contact: Contact,
        person: GraphNode,
        entries: list[Any],
    ) -> None:
        for entry in entries:
            try:
                job = entry if isinstance(entry, JobHistory) else JobHistory.model_validate(entry)
            except PydanticValidationError as e:
                state.fail(f"{contact.name} job entry", ErrorKind.INVALID_FIELD, e)
                continue
            if not job.company.strip():
                continue

            company = self.entity_resolver.resolve(job.company)
            try:
                firm = await self._merge_node(
                    state,
                    NodeLabel.FIRM,
                    company,
                    NodeProperties(name=company, source=contact.source),
                )
                await self._merge_relationship(
                    state,
                    person.id,
                    firm.id,
                    RelationshipType.WORKED_AT,
                    RelationshipProperties(
                        source=contact.source,
                        role=job.effective_role,
                        start_date=job.start,
                        end_date=job.end,
                        is_current=job.current,
                    ),
                )
            except GraphStoreUnavailableError:
                raise
            except (GraphStoreError, GraphConstructionError, PydanticValidationError, ValueError) as e:
                state.fail(f"{job.company} for {contact.name}", ErrorKind.STORE_FAILURE, e)

    async def _process_education(self, state: _BatchState, contact: Contact, person: GraphNode) -> None:
        records: list[Any] = []
        if contact.education_raw:
            records.extend(self._load_json_list(contact.education_raw, contact.name, "education", state))
        if contact.school:
            records.append({"school": contact.school, "degree": contact.degree})

        for record in records:
            try:
                education = record if isinstance(record, EducationRecord) else EducationRecord.model_validate(record)
            except PydanticValidationError as e:
                state.fail(f"{contact.name} education entry", ErrorKind.INVALID_FIELD, e)
                continue
            school_name = education.school_name
            if not school_name:
                continue

            try:
                school = await self._merge_node(
                    state,
                    NodeLabel.SCHOOL,
                    school_name,
                    NodeProperties(name=school_name, source=contact.source),
                )
                await self._merge_relationship(
                    state,
                    person.id,
                    school.id,
                    RelationshipType.ATTENDED_SCHOOL,
                    RelationshipProperties(
                        source=contact.source,
                        degree=education.degree,
                        graduation_year=education.graduation_year,
                    ),
                )
            except GraphStoreUnavailableError:
                raise
            except (GraphStoreError, GraphConstructionError, PydanticValidationError, ValueError) as e:
                state.fail(f"{school_name} for {contact.name}", ErrorKind.STORE_FAILURE, e)

    @staticmethod
    def _load_json_list(
        raw: str,
        owner: Optional[str],
        what: str,
        state: _BatchState,
    ) -> list[Any]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            state.fail(f"{owner} {what}", ErrorKind.MALFORMED_JSON, f"Error parsing JSON: {e}")
            return []
        if not isinstance(data, list):
            LOGGER.warning(f"Ignoring {what} for {owner}: expected a JSON list")
            return []
        return [item for item in data if isinstance(item, Mapping)]

    # Mutual connections

    async def _ingest_mutuals(
        self,
        target_profile_url: str,
        entries: list[tuple[str, Optional[str], Optional[str], list[str], Optional[int]]],
        source: Provenance,
        weight: float,
        debug: bool,
    ) -> GraphConstructionResult:
        state = _BatchState(dry_run=False, debug=debug)
        LOGGER.info(
            f"Adding {len(entries)} mutual connections to graph",
            extra={"target": target_profile_url, "source_type": source.type},
        )

        target = await self.graph_store.find_node_by_property(
            NodeLabel.PERSON.value, "linkedin_url", target_profile_url
        )
        if target is None:
            LOGGER.warning(
                "Target not found by profile URL, mutual edges to target are skipped",
                extra={"target": target_profile_url},
            )

        seeds: dict[str, Optional[GraphNode]] = {}

        for name, profile_url, headline, members, mutual_count in entries:
            try:
                resolved = self.entity_resolver.resolve(name)
                mutual = await self._merge_node(
                    state,
                    NodeLabel.PERSON,
                    resolved,
                    NodeProperties(
                        name=resolved,
                        source=source,
                        headline=headline,
                        linkedin_url=profile_url,
                        is_mutual_connection=True,
                    ),
                )
                edge_properties = RelationshipProperties(
                    source=source, weight=weight, mutual_count=mutual_count
                )

                for member in members:
                    if member not in seeds:
                        seeds[member] = await self.graph_store.find_node_by_property(
                            NodeLabel.PERSON.value, "name", member
                        )
                    seed = seeds[member]
                    if seed is None:
                        if debug:
                            LOGGER.info(f"Seed member not found: {member}")
                        continue
                    await self._merge_relationship(
                        state,
                        seed.id,
                        mutual.id,
                        RelationshipType.CONNECTED_VIA_MUTUAL,
                        edge_properties.model_copy(update={"via": member}),
                    )

                if target is not None and target.id != mutual.id:
                    await self._merge_relationship(
                        state,
                        mutual.id,
                        target.id,
                        RelationshipType.CONNECTED_VIA_MUTUAL,
                        edge_properties.model_copy(update={"via": ", ".join(members) or None}),
                    )
            except GraphStoreUnavailableError:
                raise
            except (GraphStoreError, GraphConstructionError, PydanticValidationError, ValueError) as e:
                state.fail(name, ErrorKind.STORE_FAILURE, e)

        return state.finish()
