"""
Read-model schemas.

Denormalized views handed to the routing layer. An objective carries its
outgoing relationships, and each relationship inlines the target's summary so
consumers never need a second round-trip.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from visium.contexts.objective_graph.domain.classification import (
    ObjectivePriority,
    ObjectiveStatus,
    RelationshipType,
)


class RelationTargetDTO(BaseModel):
    id: str
    text: str
    status: ObjectiveStatus
    priority: ObjectivePriority


class RelatedObjectiveDTO(BaseModel):
    """Outgoing relationship as seen from its source objective."""

    id: str  # relationship id
    type: RelationshipType
    rationale: str | None = None
    weight: float | None = None
    target: RelationTargetDTO
    created_at: datetime
    updated_at: datetime


class ObjectiveDTO(BaseModel):
    id: str
    text: str
    context: str | None = None
    category: str | None = None
    timeframe: str | None = None
    owner: str | None = None
    status: ObjectiveStatus
    priority: ObjectivePriority
    confidence: float | None = None
    metrics: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    source_label: str | None = None
    source_excerpt: str | None = None
    knowledge_entry_id: str
    created_at: datetime
    updated_at: datetime
    related: list[RelatedObjectiveDTO] = Field(default_factory=list)


class RelationshipDTO(BaseModel):
    id: str
    source_id: str
    target_id: str
    type: RelationshipType
    rationale: str | None = None
    weight: float | None = None
    created_at: datetime
    updated_at: datetime


class GraphSnapshot(BaseModel):
    objectives: list[ObjectiveDTO] = Field(default_factory=list)
    relationships: list[RelationshipDTO] = Field(default_factory=list)


class RelatedObjectiveMatch(BaseModel):
    """Keyword-overlap match returned by the relatedness helper."""

    id: str
    text: str
    score: float


class IngestResult(BaseModel):
    knowledge_entry_id: str
    title: str | None = None
    persisted_objectives: list[ObjectiveDTO] = Field(default_factory=list)
    duplicate_count: int = 0
    persisted_relationship_count: int = 0
    # Only populated when settings.report_dropped_relationships is enabled.
    dropped_relationship_count: int | None = None


class DeletedRelationship(BaseModel):
    id: str
    source_id: str
