"""Objective knowledge graph: ingestion, consistency and read model."""
