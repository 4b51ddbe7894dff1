from __future__ import annotations

import pytest

from visium.contexts.objective_graph.domain.references import (
    BatchKey,
    PersistedId,
    parse_endpoint,
    render_endpoint,
)

pytestmark = pytest.mark.unit


def test_existing_prefix_parses_to_persisted_id():
    assert parse_endpoint("existing:abc123") == PersistedId("abc123")
    assert parse_endpoint(" Existing: abc123 ") == PersistedId("abc123")


def test_plain_value_parses_to_batch_key():
    assert parse_endpoint(" OBJ_A ") == BatchKey("OBJ_A")


@pytest.mark.parametrize("raw", [None, "", "   ", "existing:", "existing:  ", 12])
def test_empty_or_malformed_endpoints_are_rejected(raw):
    assert parse_endpoint(raw) is None


def test_batch_key_and_persisted_id_never_compare_equal():
    assert BatchKey("abc") != PersistedId("abc")


def test_render_round_trips_the_wire_form():
    assert render_endpoint(PersistedId("abc")) == "existing:abc"
    assert render_endpoint(BatchKey("OBJ_A")) == "OBJ_A"
