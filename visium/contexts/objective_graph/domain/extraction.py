"""
Extraction boundary models.

Typed view of the structured result handed over by the language-model
extraction step. Optional fields are parsed leniently: a wrong type on an
optional field becomes ``None`` (or an empty list) instead of rejecting the
candidate, and a candidate that is unusable as a whole is skipped without
affecting the rest of the batch.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from visium.contexts.objective_graph.domain.classification import (
    classify_priority,
    classify_relationship_type,
    classify_status,
    clean_metrics,
    clean_tags,
    clean_text,
    coerce_unit_interval,
)
from visium.contexts.objective_graph.domain.drafts import ObjectiveDraft, RelationshipDraft
from visium.contexts.objective_graph.domain.references import parse_endpoint

logger = structlog.get_logger()

_KEY_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    return None


def _list_or_empty(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


class ExtractedObjective(BaseModel):
    """One objective candidate proposed by the model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key: str | None = None
    statement: str
    context: str | None = None
    category: str | None = None
    timeframe: str | None = None
    status: str | None = None
    priority: str | None = None
    confidence: Any = None
    owner: str | None = None
    metrics: list[Any] = Field(default_factory=list)
    tags: list[Any] = Field(default_factory=list)
    source_label: str | None = Field(default=None, alias="sourceLabel")
    source_excerpt: str | None = Field(default=None, alias="sourceExcerpt")

    @field_validator(
        "key",
        "context",
        "category",
        "timeframe",
        "status",
        "priority",
        "owner",
        "source_label",
        "source_excerpt",
        mode="before",
    )
    @classmethod
    def _lenient_text(cls, value: Any) -> str | None:
        return _optional_text(value)

    @field_validator("metrics", "tags", mode="before")
    @classmethod
    def _lenient_list(cls, value: Any) -> list[Any]:
        return _list_or_empty(value)


class ExtractedRelationship(BaseModel):
    """One relationship candidate; endpoints are batch keys or ``existing:<id>``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source: str | None = Field(default=None, alias="from")
    target: str | None = Field(default=None, alias="to")
    type: str | None = None
    rationale: str | None = None
    weight: Any = None

    @field_validator("source", "target", "type", "rationale", mode="before")
    @classmethod
    def _lenient_text(cls, value: Any) -> str | None:
        return _optional_text(value)


class GraphExtraction(BaseModel):
    title: str | None = None
    objectives: list[ExtractedObjective] = Field(default_factory=list)
    relationships: list[ExtractedRelationship] = Field(default_factory=list)


def generate_key(index: int) -> str:
    """Batch key for the index-th objective: OBJ_A .. OBJ_Z, OBJ_2A .. OBJ_2Z, ..."""
    letter = _KEY_ALPHABET[(index - 1) % len(_KEY_ALPHABET)]
    cycle = (index - 1) // len(_KEY_ALPHABET)
    return f"OBJ_{letter}" if cycle == 0 else f"OBJ_{cycle + 1}{letter}"


def ensure_unique_keys(objectives: list[ExtractedObjective]) -> None:
    """Give every objective a unique non-empty key, in place."""
    used: set[str] = set()
    for objective in objectives:
        key = (objective.key or "").strip()
        if not key or key in used:
            index = len(used) + 1
            key = generate_key(index)
            while key in used:
                index += 1
                key = generate_key(index)
        objective.key = key
        used.add(key)


def _validate_items(raw_items: Any, model: type[BaseModel], kind: str) -> list[Any]:
    items: list[Any] = []
    if not isinstance(raw_items, (list, tuple)):
        return items
    for position, raw in enumerate(raw_items):
        if isinstance(raw, model):
            items.append(raw)
            continue
        try:
            items.append(model.model_validate(raw))
        except PydanticValidationError as exc:
            logger.warning(
                "Skipping malformed extraction candidate",
                kind=kind,
                position=position,
                errors=exc.error_count(),
            )
    return items


def parse_extraction(payload: GraphExtraction | Mapping[str, Any] | None) -> GraphExtraction:
    """Validate an extraction payload candidate by candidate."""
    if isinstance(payload, GraphExtraction):
        extraction = payload
    elif isinstance(payload, Mapping):
        title = payload.get("title")
        extraction = GraphExtraction(
            title=title if isinstance(title, str) else None,
            objectives=_validate_items(payload.get("objectives"), ExtractedObjective, "objective"),
            relationships=_validate_items(payload.get("relationships"), ExtractedRelationship, "relationship"),
        )
    else:
        extraction = GraphExtraction()

    ensure_unique_keys(extraction.objectives)
    return extraction


def build_objective_drafts(
    objectives: list[ExtractedObjective],
    *,
    source_excerpt_max_length: int | None = None,
) -> list[ObjectiveDraft]:
    drafts: list[ObjectiveDraft] = []
    for objective in objectives:
        drafts.append(
            ObjectiveDraft(
                key=objective.key or "",
                statement=objective.statement,
                context=clean_text(objective.context),
                category=clean_text(objective.category),
                timeframe=clean_text(objective.timeframe),
                owner=clean_text(objective.owner),
                status=classify_status(objective.status),
                priority=classify_priority(objective.priority),
                confidence=coerce_unit_interval(objective.confidence),
                metrics=clean_metrics(objective.metrics),
                tags=clean_tags(objective.tags),
                source_label=clean_text(objective.source_label),
                source_excerpt=clean_text(objective.source_excerpt, source_excerpt_max_length),
            )
        )
    return drafts


def build_relationship_drafts(
    relationships: list[ExtractedRelationship],
    *,
    rationale_max_length: int | None = None,
) -> list[RelationshipDraft]:
    return [
        RelationshipDraft(
            source=parse_endpoint(relationship.source),
            target=parse_endpoint(relationship.target),
            type=classify_relationship_type(relationship.type),
            raw_type=relationship.type,
            rationale=clean_text(relationship.rationale, rationale_max_length),
            weight=coerce_unit_interval(relationship.weight),
        )
        for relationship in relationships
    ]
