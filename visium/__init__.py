"""
Visium objective graph core.

Turns language-model proposals of objectives and relationships into a
consistent, queryable knowledge graph:

- normalization and deduplication of objective statements
- resolution of relationship endpoints (batch keys and persisted ids)
- atomic persistence of one ingestion
- denormalized read models for downstream consumers
"""

__version__ = "0.1.0"
