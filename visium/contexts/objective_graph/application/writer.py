"""Graph writer (truth spine for objectives and relationships).

Everything here runs on a session owned by the caller. The caller's session
is the unit of work: if any step raises, nothing written here is committed.
Rows are flushed step by step so later statements (foreign keys, upsert
lookups) see earlier ones inside the same transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from visium.contexts.objective_graph.application.normalize import normalize_statement
from visium.contexts.objective_graph.domain.classification import RelationshipType
from visium.contexts.objective_graph.domain.drafts import ObjectiveDraft, ResolvedRelationship
from visium.contexts.objective_graph.domain.references import BatchKey, EndpointRef, PersistedId
from visium.db.models import KnowledgeEntry, Objective, ObjectiveRelationship, ObjectiveTag
from visium.kernel.ids import (
    KNOWLEDGE_ENTRY_ID_PREFIX,
    OBJECTIVE_ID_PREFIX,
    RELATIONSHIP_ID_PREFIX,
    new_prefixed_id,
)

logger = structlog.get_logger()


@dataclass(slots=True)
class WriteResult:
    entry: KnowledgeEntry
    objectives: list[Objective] = field(default_factory=list)
    relationships: list[ObjectiveRelationship] = field(default_factory=list)
    relationships_skipped: int = 0


async def find_relationship(
    session: AsyncSession,
    source_id: str,
    target_id: str,
    relationship_type: RelationshipType,
) -> ObjectiveRelationship | None:
    result = await session.execute(
        select(ObjectiveRelationship).where(
            ObjectiveRelationship.source_id == source_id,
            ObjectiveRelationship.target_id == target_id,
            ObjectiveRelationship.type == relationship_type.value,
        )
    )
    return result.scalar_one_or_none()


async def upsert_relationship(
    session: AsyncSession,
    *,
    source_id: str,
    target_id: str,
    relationship_type: RelationshipType,
    rationale: str | None,
    weight: float | None,
    now: datetime,
) -> tuple[ObjectiveRelationship, bool]:
    """Insert the (source, target, type) edge or update the existing one.

    On update only the provided rationale/weight replace the stored values.
    Returns the row and whether it was created.
    """
    if source_id == target_id:
        raise ValueError("relationship source and target must differ")

    existing = await find_relationship(session, source_id, target_id, relationship_type)
    if existing is not None:
        if rationale is not None:
            existing.rationale = rationale
        if weight is not None:
            existing.weight = weight
        existing.updated_at = now
        await session.flush()
        return existing, False

    relationship = ObjectiveRelationship(
        id=new_prefixed_id(RELATIONSHIP_ID_PREFIX),
        source_id=source_id,
        target_id=target_id,
        type=relationship_type.value,
        rationale=rationale,
        weight=weight,
        created_at=now,
        updated_at=now,
    )
    session.add(relationship)
    await session.flush()
    return relationship, True


async def existing_objective_ids(session: AsyncSession, ids: set[str]) -> set[str]:
    if not ids:
        return set()
    result = await session.execute(select(Objective.id).where(Objective.id.in_(sorted(ids))))
    return {row[0] for row in result.all()}


def _persisted_refs(relationships: list[ResolvedRelationship]) -> set[str]:
    ids: set[str] = set()
    for relationship in relationships:
        for ref in (relationship.source, relationship.target):
            if isinstance(ref, PersistedId):
                ids.add(ref.id)
    return ids


def _translate(ref: EndpointRef, id_by_key: dict[str, str], known_ids: set[str]) -> str | None:
    if isinstance(ref, BatchKey):
        return id_by_key.get(ref.key)
    if isinstance(ref, PersistedId):
        return ref.id if ref.id in known_ids else None
    return None


async def write_ingestion(
    session: AsyncSession,
    *,
    raw_text: str,
    title: str | None,
    drafts: list[ObjectiveDraft],
    relationships: list[ResolvedRelationship],
    now: datetime,
) -> WriteResult:
    """Persist one ingestion: entry, objectives, then relationship upserts."""
    entry = KnowledgeEntry(
        id=new_prefixed_id(KNOWLEDGE_ENTRY_ID_PREFIX),
        title=title,
        raw_text=raw_text,
        created_at=now,
    )
    session.add(entry)
    await session.flush()

    result = WriteResult(entry=entry)
    id_by_key: dict[str, str] = {}
    tags_by_id: dict[str, list[str]] = {}

    for position, draft in enumerate(drafts):
        statement = normalize_statement(draft.statement)
        # Strictly increasing within the batch so newest-first follows draft order.
        created_at = now + timedelta(microseconds=position)
        objective = Objective(
            id=new_prefixed_id(OBJECTIVE_ID_PREFIX),
            knowledge_entry_id=entry.id,
            text=statement.original,
            normalized_text=statement.normalized,
            context=draft.context,
            category=draft.category,
            timeframe=draft.timeframe,
            owner=draft.owner,
            status=draft.status.value,
            priority=draft.priority.value,
            confidence=draft.confidence,
            metrics=list(draft.metrics),
            source_label=draft.source_label,
            source_excerpt=draft.source_excerpt,
            created_at=created_at,
            updated_at=created_at,
        )
        session.add(objective)
        id_by_key[draft.key] = objective.id
        tags_by_id[objective.id] = list(draft.tags)
        result.objectives.append(objective)
    await session.flush()

    for objective_id, tags in tags_by_id.items():
        for tag in tags:
            session.add(ObjectiveTag(objective_id=objective_id, tag=tag))
    await session.flush()

    known_ids = await existing_objective_ids(session, _persisted_refs(relationships))
    persisted: dict[str, ObjectiveRelationship] = {}

    for relationship in relationships:
        source_id = _translate(relationship.source, id_by_key, known_ids)
        target_id = _translate(relationship.target, id_by_key, known_ids)
        if source_id is None or target_id is None or source_id == target_id:
            result.relationships_skipped += 1
            logger.debug(
                "Skipping relationship with unknown or identical endpoints",
                source_id=source_id,
                target_id=target_id,
                type=relationship.type.value,
            )
            continue

        row, _created = await upsert_relationship(
            session,
            source_id=source_id,
            target_id=target_id,
            relationship_type=relationship.type,
            rationale=relationship.rationale,
            weight=relationship.weight,
            now=now,
        )
        persisted[row.id] = row

    result.relationships = list(persisted.values())

    logger.info(
        "Ingestion written",
        entry_id=entry.id,
        objectives=len(result.objectives),
        relationships=len(result.relationships),
        relationships_skipped=result.relationships_skipped,
    )
    return result
