"""Snapshot / DTO reader.

Read-only: nothing here adds, changes or deletes rows. Lists are ordered
newest first with plain offset/limit paging; pages are not stable against
concurrent writes.
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Iterable, Sequence

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from visium.contexts.objective_graph.application.dto import (
    GraphSnapshot,
    ObjectiveDTO,
    RelatedObjectiveDTO,
    RelatedObjectiveMatch,
    RelationshipDTO,
    RelationTargetDTO,
)
from visium.contexts.objective_graph.application.normalize import jaccard, keyword_set
from visium.contexts.objective_graph.domain.classification import (
    RelationshipType,
    classify_priority,
    classify_status,
)
from visium.db.models import Objective, ObjectiveRelationship, ObjectiveTag
from visium.kernel.time import coerce_utc

_WHITESPACE_RE = re.compile(r"\s+")


def _newest_first(stmt: Select) -> Select:
    return stmt.order_by(Objective.created_at.desc(), Objective.id.desc())


def relationship_to_dto(row: ObjectiveRelationship) -> RelationshipDTO:
    return RelationshipDTO(
        id=row.id,
        source_id=row.source_id,
        target_id=row.target_id,
        type=RelationshipType(row.type),
        rationale=row.rationale,
        weight=row.weight,
        created_at=coerce_utc(row.created_at),
        updated_at=coerce_utc(row.updated_at),
    )


async def _load_tags(session: AsyncSession, ids: Sequence[str] | None) -> dict[str, list[str]]:
    stmt = select(ObjectiveTag.objective_id, ObjectiveTag.tag).order_by(ObjectiveTag.tag)
    if ids is not None:
        stmt = stmt.where(ObjectiveTag.objective_id.in_(ids))
    tags: dict[str, list[str]] = defaultdict(list)
    for objective_id, tag in (await session.execute(stmt)).all():
        tags[objective_id].append(tag)
    return tags


async def _load_outgoing(
    session: AsyncSession, ids: Sequence[str] | None
) -> list[tuple[ObjectiveRelationship, RelationTargetDTO]]:
    """Relationships leaving `ids` (all when None), each with its target summary."""
    target = aliased(Objective)
    stmt = (
        select(ObjectiveRelationship, target.id, target.text, target.status, target.priority)
        .join(target, ObjectiveRelationship.target_id == target.id)
        .order_by(ObjectiveRelationship.created_at, ObjectiveRelationship.id)
    )
    if ids is not None:
        stmt = stmt.where(ObjectiveRelationship.source_id.in_(ids))

    rows: list[tuple[ObjectiveRelationship, RelationTargetDTO]] = []
    for relationship, target_id, text, status, priority in (await session.execute(stmt)).all():
        rows.append(
            (
                relationship,
                RelationTargetDTO(
                    id=target_id,
                    text=text,
                    status=classify_status(status),
                    priority=classify_priority(priority),
                ),
            )
        )
    return rows


def _objective_to_dto(
    objective: Objective,
    tags: list[str],
    related: list[RelatedObjectiveDTO],
) -> ObjectiveDTO:
    return ObjectiveDTO(
        id=objective.id,
        text=objective.text,
        context=objective.context,
        category=objective.category,
        timeframe=objective.timeframe,
        owner=objective.owner,
        status=classify_status(objective.status),
        priority=classify_priority(objective.priority),
        confidence=objective.confidence,
        metrics=list(objective.metrics or []),
        tags=tags,
        source_label=objective.source_label,
        source_excerpt=objective.source_excerpt,
        knowledge_entry_id=objective.knowledge_entry_id,
        created_at=coerce_utc(objective.created_at),
        updated_at=coerce_utc(objective.updated_at),
        related=related,
    )


async def build_objective_dtos(
    session: AsyncSession,
    objectives: Iterable[Objective],
    *,
    scoped: bool = True,
) -> list[ObjectiveDTO]:
    """Enrich objectives with tags and outgoing relationships.

    With `scoped=False` tags and relationships are loaded for the whole graph
    instead of an IN-list of ids (used by the snapshot).
    """
    objectives = list(objectives)
    if not objectives:
        return []
    ids = [objective.id for objective in objectives] if scoped else None

    tags = await _load_tags(session, ids)
    related: dict[str, list[RelatedObjectiveDTO]] = defaultdict(list)
    for relationship, target in await _load_outgoing(session, ids):
        related[relationship.source_id].append(
            RelatedObjectiveDTO(
                id=relationship.id,
                type=RelationshipType(relationship.type),
                rationale=relationship.rationale,
                weight=relationship.weight,
                target=target,
                created_at=coerce_utc(relationship.created_at),
                updated_at=coerce_utc(relationship.updated_at),
            )
        )

    return [
        _objective_to_dto(objective, tags.get(objective.id, []), related.get(objective.id, []))
        for objective in objectives
    ]


async def get_objectives_by_ids(session: AsyncSession, ids: Sequence[str]) -> list[ObjectiveDTO]:
    """Objectives for `ids` in request order; unknown ids are left out."""
    wanted = list(dict.fromkeys(ids))
    if not wanted:
        return []
    result = await session.execute(select(Objective).where(Objective.id.in_(wanted)))
    by_id = {objective.id: objective for objective in result.scalars().all()}
    return await build_objective_dtos(session, [by_id[i] for i in wanted if i in by_id])


async def list_objectives(
    session: AsyncSession,
    *,
    limit: int,
    offset: int = 0,
    query: str | None = None,
) -> list[ObjectiveDTO]:
    stmt = select(Objective)

    needle = (query or "").strip()
    if needle:
        tag = _WHITESPACE_RE.sub(" ", needle.lower())
        stmt = stmt.where(
            or_(
                func.lower(Objective.text).contains(needle.lower(), autoescape=True),
                Objective.id.in_(select(ObjectiveTag.objective_id).where(ObjectiveTag.tag == tag)),
            )
        )

    stmt = _newest_first(stmt).offset(offset).limit(limit)
    objectives = (await session.execute(stmt)).scalars().all()
    return await build_objective_dtos(session, objectives)


async def get_graph_snapshot(session: AsyncSession) -> GraphSnapshot:
    objectives = (await session.execute(_newest_first(select(Objective)))).scalars().all()
    relationships = (
        await session.execute(
            select(ObjectiveRelationship).order_by(
                ObjectiveRelationship.created_at, ObjectiveRelationship.id
            )
        )
    ).scalars().all()

    return GraphSnapshot(
        objectives=await build_objective_dtos(session, objectives, scoped=False),
        relationships=[relationship_to_dto(row) for row in relationships],
    )


async def find_related_objectives(
    session: AsyncSession,
    text: str,
    *,
    limit: int,
    exclude_ids: Iterable[str] = (),
) -> list[RelatedObjectiveMatch]:
    """Stored objectives sharing content words with `text`, best Jaccard overlap first."""
    words = keyword_set(text)
    if not words:
        return []

    excluded = set(exclude_ids)
    rows = (await session.execute(_newest_first(select(Objective.id, Objective.text)))).all()

    scored: list[RelatedObjectiveMatch] = []
    for objective_id, objective_text in rows:
        if objective_id in excluded:
            continue
        score = jaccard(words, keyword_set(objective_text))
        if score > 0:
            scored.append(RelatedObjectiveMatch(id=objective_id, text=objective_text, score=score))

    scored.sort(key=lambda match: match.score, reverse=True)
    return scored[:limit]
