"""Resolution of relationship drafts against the surviving objective drafts.

Pure: no storage access. Persisted-id endpoints are accepted as-is here and
checked against storage by the writer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from visium.contexts.objective_graph.domain.drafts import (
    ObjectiveDraft,
    RelationshipDraft,
    ResolvedRelationship,
)
from visium.contexts.objective_graph.domain.references import (
    BatchKey,
    EndpointRef,
    PersistedId,
    render_endpoint,
)

logger = structlog.get_logger()


@dataclass(slots=True)
class ResolutionOutcome:
    resolved: list[ResolvedRelationship] = field(default_factory=list)
    dropped_count: int = 0


def _is_valid(ref: EndpointRef | None, batch_keys: set[str]) -> bool:
    if isinstance(ref, PersistedId):
        return True
    if isinstance(ref, BatchKey):
        return ref.key in batch_keys
    return False


def _drop_reason(draft: RelationshipDraft, batch_keys: set[str]) -> str | None:
    if not _is_valid(draft.source, batch_keys):
        return "unresolved_source"
    if not _is_valid(draft.target, batch_keys):
        return "unresolved_target"
    if draft.type is None:
        return "unknown_type"
    if draft.source == draft.target:
        return "self_loop"
    return None


def resolve_relationships(
    survivors: list[ObjectiveDraft],
    relationships: list[RelationshipDraft],
) -> ResolutionOutcome:
    batch_keys = {draft.key for draft in survivors}
    outcome = ResolutionOutcome()

    for draft in relationships:
        reason = _drop_reason(draft, batch_keys)
        if reason is not None:
            outcome.dropped_count += 1
            logger.debug(
                "Dropping relationship draft",
                reason=reason,
                source=render_endpoint(draft.source) if draft.source else None,
                target=render_endpoint(draft.target) if draft.target else None,
                type=draft.raw_type,
            )
            continue

        outcome.resolved.append(
            ResolvedRelationship(
                source=draft.source,
                target=draft.target,
                type=draft.type,
                rationale=draft.rationale,
                weight=draft.weight,
            )
        )

    if outcome.dropped_count:
        logger.info(
            "Relationship drafts dropped during resolution",
            dropped=outcome.dropped_count,
            resolved=len(outcome.resolved),
        )
    return outcome
