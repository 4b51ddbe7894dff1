"""Objective statement normalization."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^\w\s]")

_STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "is", "are", "was", "were", "be", "been", "have",
        "has", "had", "will", "would", "could", "should", "may", "might",
        "this", "that", "these", "those", "i", "you", "he", "she", "it",
        "we", "they", "me", "him", "her", "us", "them", "my", "your",
        "his", "its", "our", "their",
    }
)


@dataclass(frozen=True, slots=True)
class NormalizedStatement:
    original: str
    normalized: str


def normalize_statement(statement: Any) -> NormalizedStatement:
    """Trim a statement and derive its comparison form.

    Two statements are duplicates iff their `normalized` forms are equal.
    """
    original = statement.strip() if isinstance(statement, str) else ""
    normalized = _WHITESPACE_RE.sub(" ", original.lower())
    return NormalizedStatement(original=original, normalized=normalized)


def keyword_set(text: str) -> set[str]:
    """Content words of a statement, used for keyword relatedness."""
    words = _NON_WORD_RE.sub(" ", (text or "").lower()).split()
    return {word for word in words if len(word) > 2 and word not in _STOP_WORDS}


def jaccard(left: set[str], right: set[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)
