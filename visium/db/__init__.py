"""Relational storage for the objective graph."""

from .client import Database
from .errors import translate_storage_errors

__all__ = [
    "Database",
    "translate_storage_errors",
]
