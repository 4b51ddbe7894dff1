"""Deduplication of incoming objective drafts against the batch and the store."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from visium.contexts.objective_graph.application.normalize import normalize_statement
from visium.contexts.objective_graph.domain.drafts import ObjectiveDraft
from visium.db.models import Objective

logger = structlog.get_logger()


@dataclass(slots=True)
class DedupOutcome:
    survivors: list[ObjectiveDraft] = field(default_factory=list)
    duplicate_count: int = 0


async def load_existing_normalized(session: AsyncSession, normalized: list[str]) -> set[str]:
    """One query for every stored objective matching any candidate form."""
    wanted = sorted({form for form in normalized if form})
    if not wanted:
        return set()
    result = await session.execute(
        select(Objective.normalized_text).where(Objective.normalized_text.in_(wanted))
    )
    return {row[0] for row in result.all()}


async def filter_duplicates(session: AsyncSession, drafts: list[ObjectiveDraft]) -> DedupOutcome:
    """Drop drafts that repeat a stored objective, an earlier draft, or are empty.

    Survivors keep input order and carry the trimmed statement. Every drop is
    counted as a duplicate.
    """
    normalized = [normalize_statement(draft.statement) for draft in drafts]
    seen = await load_existing_normalized(session, [item.normalized for item in normalized])

    outcome = DedupOutcome()
    for draft, statement in zip(drafts, normalized):
        if not statement.normalized or statement.normalized in seen:
            outcome.duplicate_count += 1
            logger.info(
                "Skipping duplicate objective",
                key=draft.key,
                empty=not statement.normalized,
            )
            continue
        seen.add(statement.normalized)
        draft.statement = statement.original
        outcome.survivors.append(draft)

    return outcome
