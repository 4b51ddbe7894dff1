"""Objective graph service (application use-cases).

This is the surface the routing layer calls. Each public method is one unit
of work on one session of the injected `Database`:

- ingest: normalize -> dedup -> resolve -> write (atomic) -> read back DTOs
- list / fetch-by-ids / snapshot reads
- manual relationship create (upsert) / update / delete

Data-quality problems in an extraction never fail an ingestion; they are
dropped and logged. Only storage conflicts and storage failures do.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError

from visium.config import Settings, get_settings
from visium.contexts.objective_graph.application import reader
from visium.contexts.objective_graph.application.dedup import filter_duplicates
from visium.contexts.objective_graph.application.dto import (
    DeletedRelationship,
    GraphSnapshot,
    IngestResult,
    ObjectiveDTO,
    RelatedObjectiveMatch,
    RelationshipDTO,
)
from visium.contexts.objective_graph.application.resolver import resolve_relationships
from visium.contexts.objective_graph.application.writer import (
    existing_objective_ids,
    find_relationship,
    upsert_relationship,
    write_ingestion,
)
from visium.contexts.objective_graph.domain.classification import (
    RelationshipType,
    classify_relationship_type,
    clean_text,
    coerce_unit_interval,
)
from visium.contexts.objective_graph.domain.extraction import (
    GraphExtraction,
    build_objective_drafts,
    build_relationship_drafts,
    parse_extraction,
)
from visium.contexts.objective_graph.domain.references import BatchKey, PersistedId, parse_endpoint
from visium.db.client import Database
from visium.db.errors import translate_storage_errors
from visium.db.models import ObjectiveRelationship
from visium.kernel.errors import ConflictError, NotFoundError, ValidationError
from visium.kernel.time import Clock, SystemClock

logger = structlog.get_logger()

_UPDATABLE_FIELDS = {"target", "target_id", "type", "rationale", "weight"}


def _require_objective_id(value: Any, field: str) -> str:
    """Accept a plain objective id or its `existing:<id>` form."""
    ref = parse_endpoint(value)
    if isinstance(ref, PersistedId):
        return ref.id
    if isinstance(ref, BatchKey):
        return ref.key
    raise ValidationError(message=f"{field} must be a non-empty objective id", field=field)


def _require_relationship_type(value: Any) -> RelationshipType:
    relationship_type = classify_relationship_type(value)
    if relationship_type is None:
        raise ValidationError(
            message=f"Unknown relationship type: {value!r}",
            code="relationship.unknown_type",
            field="type",
        )
    return relationship_type


def _require_limit(limit: Any, maximum: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= maximum:
        raise ValidationError(message=f"limit must be between 1 and {maximum}", field="limit")


def _optional_weight(value: Any) -> float | None:
    if value is None:
        return None
    weight = coerce_unit_interval(value)
    if weight is None:
        raise ValidationError(message="weight must be a number between 0 and 1", field="weight")
    return weight


class ObjectiveGraphService:
    """Ingestion and read operations over the objective knowledge graph."""

    def __init__(
        self,
        database: Database,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ):
        self._db = database
        self._settings = settings or get_settings()
        self._clock = clock or SystemClock()

    # =========================================================================
    # Ingestion
    # =========================================================================

    async def ingest(
        self,
        raw_text: str,
        title: str | None = None,
        extraction: GraphExtraction | Mapping[str, Any] | None = None,
    ) -> IngestResult:
        """
        Persist one extraction as a single atomic unit.

        Args:
            raw_text: The free-form text the extraction was produced from
            title: Optional title; falls back to the extraction's own title
            extraction: Parsed model output (objective and relationship candidates)

        Returns:
            Persisted objectives (as DTOs), the duplicate count and the number
            of relationships created or updated
        """
        if not isinstance(raw_text, str) or not raw_text.strip():
            raise ValidationError(message="raw_text must be a non-empty string", field="raw_text")

        settings = self._settings
        parsed = parse_extraction(extraction)
        title = clean_text(title) or clean_text(parsed.title)
        objective_drafts = build_objective_drafts(
            parsed.objectives,
            source_excerpt_max_length=settings.source_excerpt_max_length,
        )
        relationship_drafts = build_relationship_drafts(
            parsed.relationships,
            rationale_max_length=settings.rationale_max_length,
        )

        logger.info(
            "Ingestion started",
            raw_text_length=len(raw_text),
            objective_candidates=len(objective_drafts),
            relationship_candidates=len(relationship_drafts),
        )

        with translate_storage_errors("ingest"):
            async with self._db.session() as session:
                dedup = await filter_duplicates(session, objective_drafts)
                resolution = resolve_relationships(dedup.survivors, relationship_drafts)
                written = await write_ingestion(
                    session,
                    raw_text=raw_text,
                    title=title,
                    drafts=dedup.survivors,
                    relationships=resolution.resolved,
                    now=self._clock.now(),
                )
                persisted = await reader.get_objectives_by_ids(
                    session, [objective.id for objective in written.objectives]
                )

        dropped = resolution.dropped_count + written.relationships_skipped
        logger.info(
            "Ingestion committed",
            entry_id=written.entry.id,
            objectives=len(persisted),
            duplicates=dedup.duplicate_count,
            relationships=len(written.relationships),
            relationships_dropped=dropped,
        )

        return IngestResult(
            knowledge_entry_id=written.entry.id,
            title=title,
            persisted_objectives=persisted,
            duplicate_count=dedup.duplicate_count,
            persisted_relationship_count=len(written.relationships),
            dropped_relationship_count=dropped if settings.report_dropped_relationships else None,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_objectives(
        self,
        limit: int | None = None,
        offset: int = 0,
        query: str | None = None,
    ) -> list[ObjectiveDTO]:
        limit = self._settings.list_default_limit if limit is None else limit
        _require_limit(limit, self._settings.list_max_limit)
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError(message="offset must be a non-negative integer", field="offset")
        if query is not None and not isinstance(query, str):
            raise ValidationError(message="query must be a string", field="query")

        with translate_storage_errors("list_objectives"):
            async with self._db.session() as session:
                return await reader.list_objectives(session, limit=limit, offset=offset, query=query)

    async def get_objectives_by_ids(self, ids: Sequence[str]) -> list[ObjectiveDTO]:
        if not isinstance(ids, (list, tuple)) or not all(isinstance(i, str) for i in ids):
            raise ValidationError(message="ids must be a list of strings", field="ids")

        with translate_storage_errors("get_objectives_by_ids"):
            async with self._db.session() as session:
                return await reader.get_objectives_by_ids(session, list(ids))

    async def get_graph_snapshot(self) -> GraphSnapshot:
        with translate_storage_errors("get_graph_snapshot"):
            async with self._db.session() as session:
                return await reader.get_graph_snapshot(session)

    async def find_related_objectives(
        self,
        text: str,
        limit: int | None = None,
        exclude_ids: Sequence[str] = (),
    ) -> list[RelatedObjectiveMatch]:
        limit = self._settings.related_limit if limit is None else limit
        if not isinstance(text, str):
            raise ValidationError(message="text must be a string", field="text")
        _require_limit(limit, self._settings.list_max_limit)

        with translate_storage_errors("find_related_objectives"):
            async with self._db.session() as session:
                return await reader.find_related_objectives(
                    session, text, limit=limit, exclude_ids=exclude_ids
                )

    # =========================================================================
    # Relationship edits
    # =========================================================================

    async def create_relationship(
        self,
        source: str,
        target: str,
        type: str | RelationshipType,
        rationale: str | None = None,
        weight: float | str | None = None,
    ) -> RelationshipDTO:
        """Create a relationship, or update the one with the same (source, target, type).

        On update only a non-None rationale or weight replaces the stored value;
        use `update_relationship` to clear either field.
        """
        source_id = _require_objective_id(source, "source")
        target_id = _require_objective_id(target, "target")
        if source_id == target_id:
            raise ValidationError(
                message="A relationship cannot connect an objective to itself",
                code="relationship.self_loop",
                field="target",
            )
        relationship_type = _require_relationship_type(type)
        cleaned_weight = _optional_weight(weight)
        cleaned_rationale = clean_text(rationale, self._settings.rationale_max_length)

        with translate_storage_errors("create_relationship"):
            async with self._db.session() as session:
                await self._require_objectives(session, {"source": source_id, "target": target_id})
                row, created = await upsert_relationship(
                    session,
                    source_id=source_id,
                    target_id=target_id,
                    relationship_type=relationship_type,
                    rationale=cleaned_rationale,
                    weight=cleaned_weight,
                    now=self._clock.now(),
                )
                dto = reader.relationship_to_dto(row)

        logger.info(
            "Relationship created" if created else "Relationship updated",
            relationship_id=dto.id,
            source_id=source_id,
            target_id=target_id,
            type=relationship_type.value,
        )
        return dto

    async def update_relationship(self, relationship_id: str, fields: Mapping[str, Any]) -> RelationshipDTO:
        """Change target, type, rationale or weight of an existing relationship."""
        unknown = sorted(set(fields) - _UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(message=f"Unknown relationship field: {unknown[0]}", field=unknown[0])

        new_target: str | None = None
        if "target" in fields or "target_id" in fields:
            new_target = _require_objective_id(fields.get("target_id", fields.get("target")), "target")
        new_type = _require_relationship_type(fields["type"]) if "type" in fields else None
        new_weight = _optional_weight(fields["weight"]) if "weight" in fields else None

        with translate_storage_errors("update_relationship"):
            async with self._db.session() as session:
                row = await self._require_relationship(session, relationship_id)

                target_id = new_target or row.target_id
                if target_id == row.source_id:
                    raise ValidationError(
                        message="A relationship cannot connect an objective to itself",
                        code="relationship.self_loop",
                        field="target",
                    )
                relationship_type = new_type or RelationshipType(row.type)

                if target_id != row.target_id:
                    await self._require_objectives(session, {"target": target_id})
                if target_id != row.target_id or relationship_type.value != row.type:
                    clash = await find_relationship(session, row.source_id, target_id, relationship_type)
                    if clash is not None and clash.id != row.id:
                        raise ConflictError(
                            message="A relationship of this type already exists between these objectives",
                            code="relationship.conflict",
                            meta={"relationship_id": clash.id},
                        )

                row.target_id = target_id
                row.type = relationship_type.value
                if "rationale" in fields:
                    row.rationale = clean_text(fields["rationale"], self._settings.rationale_max_length)
                if "weight" in fields:
                    row.weight = new_weight
                row.updated_at = self._clock.now()
                await session.flush()
                dto = reader.relationship_to_dto(row)

        logger.info("Relationship updated", relationship_id=dto.id, fields=sorted(fields))
        return dto

    async def delete_relationship(self, relationship_id: str) -> DeletedRelationship:
        with translate_storage_errors("delete_relationship"):
            async with self._db.session() as session:
                row = await self._require_relationship(session, relationship_id)
                deleted = DeletedRelationship(id=row.id, source_id=row.source_id)
                await session.delete(row)
                await session.flush()

        logger.info("Relationship deleted", relationship_id=deleted.id, source_id=deleted.source_id)
        return deleted

    # =========================================================================
    # Health
    # =========================================================================

    async def health(self) -> dict[str, str]:
        try:
            await self._db.ping()
        except (SQLAlchemyError, OSError, RuntimeError) as exc:
            logger.warning("Database health check failed", error=str(exc))
            return {"status": "error", "database": "error"}
        return {"status": "ok", "database": "connected"}

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require_relationship(self, session, relationship_id: str) -> ObjectiveRelationship:
        row = None
        if isinstance(relationship_id, str) and relationship_id.strip():
            row = await session.get(ObjectiveRelationship, relationship_id.strip())
        if row is None:
            raise NotFoundError(
                message="Relationship not found",
                code="relationship.not_found",
                meta={"relationship_id": relationship_id},
            )
        return row

    async def _require_objectives(self, session, ids_by_field: dict[str, str]) -> None:
        found = await existing_objective_ids(session, set(ids_by_field.values()))
        for field, objective_id in ids_by_field.items():
            if objective_id not in found:
                raise NotFoundError(
                    message="Objective not found",
                    code="objective.not_found",
                    meta={"field": field, "objective_id": objective_id},
                )
