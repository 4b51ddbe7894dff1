"""Classification of untrusted model output into the graph's fixed vocabulary.

Every free-text value coming out of an extraction goes through one of the
functions below before it reaches a draft. They never raise: unknown status
and priority fall back to a default, an unknown relationship type classifies
to ``None`` and the relationship is dropped upstream.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any, Iterable


class ObjectiveStatus(str, Enum):
    """Lifecycle status of an objective."""

    PROPOSED = "PROPOSED"
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    COMPLETE = "COMPLETE"


class ObjectivePriority(str, Enum):
    """Priority of an objective."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RelationshipType(str, Enum):
    """Type of a directed edge between two objectives."""

    SUPPORTS = "SUPPORTS"
    DEPENDS_ON = "DEPENDS_ON"
    RELATES_TO = "RELATES_TO"
    BLOCKS = "BLOCKS"
    INFORMS = "INFORMS"


DEFAULT_STATUS = ObjectiveStatus.PROPOSED
DEFAULT_PRIORITY = ObjectivePriority.MEDIUM

_SEPARATORS_RE = re.compile(r"[_\-]+")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_label(value: Any) -> str:
    """Lower-case a label, treat `_`/`-` as spaces and collapse whitespace."""
    if not isinstance(value, str):
        return ""
    label = _SEPARATORS_RE.sub(" ", value.strip().lower())
    return _WHITESPACE_RE.sub(" ", label).strip()


def _synonyms(table: dict[Enum, Iterable[str]]) -> dict[str, Any]:
    lookup: dict[str, Any] = {}
    for member, words in table.items():
        lookup[normalize_label(member.value)] = member
        for word in words:
            lookup[normalize_label(word)] = member
    return lookup


_STATUS_SYNONYMS: dict[str, ObjectiveStatus] = _synonyms(
    {
        ObjectiveStatus.PROPOSED: ("proposed", "proposal", "idea", "draft", "suggested"),
        ObjectiveStatus.PLANNED: ("planned", "planning", "scheduled", "not started"),
        ObjectiveStatus.ACTIVE: ("active", "in progress", "ongoing", "underway", "started", "doing"),
        ObjectiveStatus.BLOCKED: ("blocked", "on hold", "stalled", "paused", "stuck"),
        ObjectiveStatus.COMPLETE: ("complete", "completed", "done", "finished", "shipped", "achieved"),
    }
)

_PRIORITY_SYNONYMS: dict[str, ObjectivePriority] = _synonyms(
    {
        ObjectivePriority.HIGH: ("high", "critical", "urgent", "top", "p0", "p1"),
        ObjectivePriority.MEDIUM: ("medium", "normal", "moderate", "med", "p2"),
        ObjectivePriority.LOW: ("low", "minor", "nice to have", "p3", "p4"),
    }
)

_RELATIONSHIP_SYNONYMS: dict[str, RelationshipType] = _synonyms(
    {
        RelationshipType.SUPPORTS: (
            "supports",
            "support",
            "enables",
            "contributes to",
            "drives",
            "advances",
        ),
        RelationshipType.DEPENDS_ON: (
            "depends on",
            "depends",
            "dependency",
            "requires",
            "needs",
            "relies on",
            "prerequisite",
            "unblocks",
        ),
        RelationshipType.RELATES_TO: (
            "relates to",
            "related",
            "related to",
            "relates",
            "associated with",
        ),
        RelationshipType.BLOCKS: ("blocks", "prevents", "hinders", "conflicts with"),
        RelationshipType.INFORMS: ("informs", "inform", "feeds", "feeds into", "guides", "influences"),
    }
)


def classify_status(value: Any) -> ObjectiveStatus:
    return _STATUS_SYNONYMS.get(normalize_label(value), DEFAULT_STATUS)


def classify_priority(value: Any) -> ObjectivePriority:
    return _PRIORITY_SYNONYMS.get(normalize_label(value), DEFAULT_PRIORITY)


def classify_relationship_type(value: Any) -> RelationshipType | None:
    """Return the relationship type, or None if the label is not recognised."""
    return _RELATIONSHIP_SYNONYMS.get(normalize_label(value))


def coerce_unit_interval(value: Any) -> float | None:
    """Coerce a confidence or weight into [0, 1].

    - absent, booleans and unparseable strings become None (not zero)
    - a parsed NaN becomes 0.0
    - values above 1 are read as percentages and divided by 100, then clamped
    - integers too large for a float clamp like infinity
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # int beyond float range
            number = math.inf if value > 0 else -math.inf
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("%"):
            raw = raw[:-1].strip()
        if not raw:
            return None
        try:
            number = float(raw)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(number):
        return 0.0
    if number > 1:
        number = number / 100
    return min(1.0, max(0.0, number))


def clean_text(value: Any, max_length: int | None = None) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    if max_length is not None and len(cleaned) > max_length:
        cleaned = cleaned[:max_length].rstrip()
    return cleaned


def clean_tags(values: Any) -> list[str]:
    """Lower-case, strip and de-duplicate tags, keeping first-seen order."""
    if not isinstance(values, (list, tuple, set)):
        return []
    tags: list[str] = []
    seen: set[str] = set()
    for value in values:
        if not isinstance(value, str):
            continue
        tag = _WHITESPACE_RE.sub(" ", value.strip().lower())
        if tag and tag not in seen:
            seen.add(tag)
            tags.append(tag)
    return tags


def clean_metrics(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple)):
        return []
    metrics: list[str] = []
    for value in values:
        if isinstance(value, str) and value.strip():
            metrics.append(value.strip())
    return metrics
