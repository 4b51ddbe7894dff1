"""Relationship endpoint addressing.

An endpoint either names a draft objective of the current batch by its
batch-local key, or an objective persisted by an earlier ingestion. The model
writes the latter as ``existing:<id>``; that string form is recognised here
and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

EXTERNAL_REFERENCE_PREFIX = "existing:"


@dataclass(frozen=True, slots=True)
class BatchKey:
    """Temporary key of a draft objective, valid only inside one ingestion."""

    key: str


@dataclass(frozen=True, slots=True)
class PersistedId:
    """Identifier of an objective that is already stored."""

    id: str

    def render(self) -> str:
        return f"{EXTERNAL_REFERENCE_PREFIX}{self.id}"


EndpointRef = Union[BatchKey, PersistedId]


def parse_endpoint(raw: Any) -> EndpointRef | None:
    """Parse a raw endpoint; None when it is empty or malformed."""
    if isinstance(raw, (BatchKey, PersistedId)):
        return raw
    if not isinstance(raw, str):
        return None

    value = raw.strip()
    if not value:
        return None

    if value[: len(EXTERNAL_REFERENCE_PREFIX)].lower() == EXTERNAL_REFERENCE_PREFIX:
        persisted_id = value[len(EXTERNAL_REFERENCE_PREFIX):].strip()
        if not persisted_id:
            return None
        return PersistedId(persisted_id)

    return BatchKey(value)


def render_endpoint(ref: EndpointRef) -> str:
    if isinstance(ref, PersistedId):
        return ref.render()
    return ref.key
