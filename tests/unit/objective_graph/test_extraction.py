from __future__ import annotations

import pytest

from visium.contexts.objective_graph.domain.classification import (
    ObjectivePriority,
    ObjectiveStatus,
    RelationshipType,
)
from visium.contexts.objective_graph.domain.extraction import (
    GraphExtraction,
    build_objective_drafts,
    build_relationship_drafts,
    generate_key,
    parse_extraction,
)
from visium.contexts.objective_graph.domain.references import BatchKey, PersistedId

pytestmark = pytest.mark.unit


def test_generate_key_sequence():
    assert generate_key(1) == "OBJ_A"
    assert generate_key(26) == "OBJ_Z"
    assert generate_key(27) == "OBJ_2A"


def test_missing_and_duplicate_keys_are_reassigned():
    extraction = parse_extraction(
        {
            "objectives": [
                {"key": "OBJ_A", "statement": "one"},
                {"key": "OBJ_A", "statement": "two"},
                {"statement": "three"},
            ]
        }
    )
    keys = [objective.key for objective in extraction.objectives]
    assert keys[0] == "OBJ_A"
    assert len(set(keys)) == 3
    assert all(keys)


def test_malformed_candidates_are_skipped_not_fatal():
    extraction = parse_extraction(
        {
            "title": 7,
            "objectives": [
                {"key": "OBJ_A", "statement": "Grow revenue"},
                {"key": "OBJ_B"},
                "not an object",
                {"key": "OBJ_C", "statement": "Reduce churn", "metrics": "MRR", "owner": 5},
            ],
            "relationships": [{"from": "OBJ_A", "to": "OBJ_C", "type": "supports"}, None],
        }
    )
    assert extraction.title is None
    assert [o.statement for o in extraction.objectives] == ["Grow revenue", "Reduce churn"]
    assert extraction.objectives[1].metrics == []
    assert extraction.objectives[1].owner is None
    assert len(extraction.relationships) == 1


def test_parse_extraction_tolerates_missing_payload():
    assert parse_extraction(None) == GraphExtraction()
    assert parse_extraction({"objectives": "nope"}).objectives == []


def test_objective_drafts_apply_defaults_and_classification():
    extraction = parse_extraction(
        {
            "objectives": [
                {
                    "key": "OBJ_A",
                    "statement": "Grow revenue",
                    "status": "on hold",
                    "priority": "urgent",
                    "confidence": 150,
                    "tags": ["Revenue", "revenue"],
                    "sourceLabel": "Board memo",
                    "sourceExcerpt": "x" * 300,
                },
                {"key": "OBJ_B", "statement": "Reduce churn", "status": "someday", "confidence": "n/a"},
            ]
        }
    )
    first, second = build_objective_drafts(extraction.objectives, source_excerpt_max_length=220)

    assert first.status is ObjectiveStatus.BLOCKED
    assert first.priority is ObjectivePriority.HIGH
    assert first.confidence == 1.0
    assert first.tags == ["revenue"]
    assert first.source_label == "Board memo"
    assert len(first.source_excerpt) == 220

    assert second.status is ObjectiveStatus.PROPOSED
    assert second.priority is ObjectivePriority.MEDIUM
    assert second.confidence is None
    assert second.metrics == [] and second.context is None


def test_relationship_drafts_parse_endpoints_and_type():
    extraction = parse_extraction(
        {"relationships": [{"from": "OBJ_A", "to": "existing:abc123", "type": "unblocks", "weight": "90"}]}
    )
    (draft,) = build_relationship_drafts(extraction.relationships)
    assert draft.source == BatchKey("OBJ_A")
    assert draft.target == PersistedId("abc123")
    assert draft.type is RelationshipType.DEPENDS_ON
    assert draft.weight == pytest.approx(0.9)
