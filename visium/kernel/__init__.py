"""Kernel utilities shared across bounded contexts.

Rules:
- Kernel code must not import from application or storage layers.
- Kernel utilities should stay small and stable; avoid business logic here.
"""
