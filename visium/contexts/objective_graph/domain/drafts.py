"""In-memory drafts produced during one ingestion call."""

from __future__ import annotations

from dataclasses import dataclass, field

from visium.contexts.objective_graph.domain.classification import (
    DEFAULT_PRIORITY,
    DEFAULT_STATUS,
    ObjectivePriority,
    ObjectiveStatus,
    RelationshipType,
)
from visium.contexts.objective_graph.domain.references import EndpointRef


@dataclass(slots=True)
class ObjectiveDraft:
    key: str
    statement: str
    context: str | None = None
    category: str | None = None
    timeframe: str | None = None
    owner: str | None = None
    status: ObjectiveStatus = DEFAULT_STATUS
    priority: ObjectivePriority = DEFAULT_PRIORITY
    confidence: float | None = None
    metrics: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    source_label: str | None = None
    source_excerpt: str | None = None


@dataclass(slots=True)
class RelationshipDraft:
    """Relationship as proposed by the model; any field may still be unusable."""

    source: EndpointRef | None
    target: EndpointRef | None
    type: RelationshipType | None
    raw_type: str | None = None
    rationale: str | None = None
    weight: float | None = None


@dataclass(frozen=True, slots=True)
class ResolvedRelationship:
    """Relationship whose endpoints and type passed resolution."""

    source: EndpointRef
    target: EndpointRef
    type: RelationshipType
    rationale: str | None = None
    weight: float | None = None
