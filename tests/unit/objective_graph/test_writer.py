from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from visium.contexts.objective_graph.application import writer
from visium.contexts.objective_graph.domain.classification import ObjectiveStatus, RelationshipType
from visium.contexts.objective_graph.domain.drafts import ObjectiveDraft, ResolvedRelationship
from visium.contexts.objective_graph.domain.references import BatchKey, PersistedId
from visium.db.models import KnowledgeEntry, Objective, ObjectiveRelationship, ObjectiveTag

pytestmark = pytest.mark.unit

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_write_ingestion_persists_entry_objectives_tags_and_edges(database):
    drafts = [
        ObjectiveDraft(key="OBJ_A", statement="Grow revenue", status=ObjectiveStatus.ACTIVE, tags=["revenue"]),
        ObjectiveDraft(key="OBJ_B", statement="Reduce churn", tags=["retention", "revenue"]),
    ]
    relationships = [
        ResolvedRelationship(source=BatchKey("OBJ_B"), target=BatchKey("OBJ_A"), type=RelationshipType.SUPPORTS),
    ]

    async with database.session() as session:
        result = await writer.write_ingestion(
            session, raw_text="notes", title="Plan", drafts=drafts, relationships=relationships, now=NOW
        )

    assert result.entry.title == "Plan"
    assert [o.text for o in result.objectives] == ["Grow revenue", "Reduce churn"]
    assert all(o.knowledge_entry_id == result.entry.id for o in result.objectives)
    assert result.objectives[0].normalized_text == "grow revenue"
    assert result.objectives[0].status == "ACTIVE"
    assert len(result.relationships) == 1
    assert result.relationships[0].source_id == result.objectives[1].id
    assert result.relationships[0].target_id == result.objectives[0].id

    async with database.session() as session:
        assert await _count(session, KnowledgeEntry) == 1
        assert await _count(session, Objective) == 2
        assert await _count(session, ObjectiveTag) == 3
        assert await _count(session, ObjectiveRelationship) == 1


@pytest.mark.asyncio
async def test_repeated_triple_in_one_batch_converges_on_one_row(database):
    drafts = [ObjectiveDraft(key="OBJ_A", statement="Grow revenue"), ObjectiveDraft(key="OBJ_B", statement="Reduce churn")]
    relationships = [
        ResolvedRelationship(
            source=BatchKey("OBJ_A"), target=BatchKey("OBJ_B"), type=RelationshipType.DEPENDS_ON,
            rationale="first", weight=0.2,
        ),
        ResolvedRelationship(
            source=BatchKey("OBJ_A"), target=BatchKey("OBJ_B"), type=RelationshipType.DEPENDS_ON, weight=0.9,
        ),
    ]

    async with database.session() as session:
        result = await writer.write_ingestion(
            session, raw_text="notes", title=None, drafts=drafts, relationships=relationships, now=NOW
        )

    assert len(result.relationships) == 1
    row = result.relationships[0]
    assert row.weight == 0.9
    assert row.rationale == "first"


@pytest.mark.asyncio
async def test_unknown_persisted_ids_are_skipped(database):
    async with database.session() as session:
        result = await writer.write_ingestion(
            session,
            raw_text="notes",
            title=None,
            drafts=[ObjectiveDraft(key="OBJ_A", statement="Grow revenue")],
            relationships=[
                ResolvedRelationship(
                    source=BatchKey("OBJ_A"), target=PersistedId("obj_missing"), type=RelationshipType.INFORMS
                ),
            ],
            now=NOW,
        )

    assert result.relationships == []
    assert result.relationships_skipped == 1


@pytest.mark.asyncio
async def test_upsert_updates_only_provided_fields(database):
    async with database.session() as session:
        result = await writer.write_ingestion(
            session,
            raw_text="notes",
            title=None,
            drafts=[ObjectiveDraft(key="OBJ_A", statement="Grow revenue"), ObjectiveDraft(key="OBJ_B", statement="Hire")],
            relationships=[],
            now=NOW,
        )
        a, b = (o.id for o in result.objectives)

        first, created = await writer.upsert_relationship(
            session, source_id=a, target_id=b, relationship_type=RelationshipType.SUPPORTS,
            rationale="because", weight=0.5, now=NOW,
        )
        second, created_again = await writer.upsert_relationship(
            session, source_id=a, target_id=b, relationship_type=RelationshipType.SUPPORTS,
            rationale=None, weight=0.8, now=NOW,
        )

    assert created is True
    assert created_again is False
    assert second.id == first.id
    assert second.rationale == "because"
    assert second.weight == 0.8


@pytest.mark.asyncio
async def test_upsert_rejects_self_loops(database):
    async with database.session() as session:
        with pytest.raises(ValueError):
            await writer.upsert_relationship(
                session, source_id="obj_1", target_id="obj_1", relationship_type=RelationshipType.SUPPORTS,
                rationale=None, weight=None, now=NOW,
            )


@pytest.mark.asyncio
async def test_failure_mid_write_leaves_nothing_behind(service, database, monkeypatch, sample_extraction):
    sample_extraction["relationships"].append({"from": "OBJ_A", "to": "OBJ_B", "type": "informs"})
    original = writer.upsert_relationship
    calls = {"n": 0}

    async def _fail_on_second(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("storage went away")
        return await original(*args, **kwargs)

    monkeypatch.setattr(writer, "upsert_relationship", _fail_on_second)

    with pytest.raises(RuntimeError):
        await service.ingest("Q3 planning notes", extraction=sample_extraction)

    assert calls["n"] == 2
    async with database.session() as session:
        assert await _count(session, KnowledgeEntry) == 0
        assert await _count(session, Objective) == 0
        assert await _count(session, ObjectiveTag) == 0
        assert await _count(session, ObjectiveRelationship) == 0
