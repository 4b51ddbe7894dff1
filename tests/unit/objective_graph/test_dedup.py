from __future__ import annotations

import pytest

from visium.contexts.objective_graph.application.dedup import filter_duplicates
from visium.contexts.objective_graph.domain.drafts import ObjectiveDraft

pytestmark = pytest.mark.unit


def _drafts(*statements):
    return [ObjectiveDraft(key=f"OBJ_{i}", statement=s) for i, s in enumerate(statements, start=1)]


@pytest.mark.asyncio
async def test_first_occurrence_in_batch_wins(database):
    async with database.session() as session:
        outcome = await filter_duplicates(
            session, _drafts("Grow revenue 20% in Q3", "  Reduce churn ", "grow REVENUE 20%  in q3")
        )

    assert [d.key for d in outcome.survivors] == ["OBJ_1", "OBJ_2"]
    assert outcome.survivors[1].statement == "Reduce churn"
    assert outcome.duplicate_count == 1


@pytest.mark.asyncio
async def test_empty_statements_are_counted_as_duplicates(database):
    async with database.session() as session:
        outcome = await filter_duplicates(session, _drafts("", "   ", "Ship v2"))

    assert [d.statement for d in outcome.survivors] == ["Ship v2"]
    assert outcome.duplicate_count == 2


@pytest.mark.asyncio
async def test_stored_objectives_are_duplicates(service, database):
    await service.ingest("notes", extraction={"objectives": [{"key": "OBJ_A", "statement": "Ship v2 by Q3"}]})

    async with database.session() as session:
        outcome = await filter_duplicates(session, _drafts("ship v2 by q3", "Hire two engineers"))

    assert [d.statement for d in outcome.survivors] == ["Hire two engineers"]
    assert outcome.duplicate_count == 1


@pytest.mark.asyncio
async def test_no_drafts_is_a_no_op(database):
    async with database.session() as session:
        outcome = await filter_duplicates(session, [])

    assert outcome.survivors == []
    assert outcome.duplicate_count == 0
