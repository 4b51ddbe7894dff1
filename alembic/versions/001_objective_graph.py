"""Objective graph tables.

Revision ID: 001_objective_graph
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_objective_graph"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "knowledge_entry",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("raw_text", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "objective",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("knowledge_entry_id", sa.Text, sa.ForeignKey("knowledge_entry.id"), nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("normalized_text", sa.Text, nullable=False),
        sa.Column("context", sa.Text, nullable=True),
        sa.Column("category", sa.Text, nullable=True),
        sa.Column("timeframe", sa.Text, nullable=True),
        sa.Column("owner", sa.Text, nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="PROPOSED"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="MEDIUM"),
        sa.Column("confidence", sa.Float, nullable=True),
        sa.Column("metrics", sa.JSON, nullable=False),
        sa.Column("source_label", sa.Text, nullable=True),
        sa.Column("source_excerpt", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("normalized_text", name="objective_normalized_text_uq"),
        sa.CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 1)",
            name="objective_confidence_range_ck",
        ),
    )
    op.create_index("ix_objective_knowledge_entry_id", "objective", ["knowledge_entry_id"])
    op.create_index("objective_created_at_idx", "objective", ["created_at"])

    op.create_table(
        "objective_tag",
        sa.Column(
            "objective_id",
            sa.Text,
            sa.ForeignKey("objective.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("tag", sa.Text, primary_key=True),
    )
    op.create_index("objective_tag_tag_idx", "objective_tag", ["tag"])

    op.create_table(
        "objective_relationship",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column(
            "source_id",
            sa.Text,
            sa.ForeignKey("objective.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_id",
            sa.Text,
            sa.ForeignKey("objective.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(16), nullable=False),  # SUPPORTS, DEPENDS_ON, RELATES_TO, BLOCKS, INFORMS
        sa.Column("rationale", sa.Text, nullable=True),
        sa.Column("weight", sa.Float, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "source_id",
            "target_id",
            "type",
            name="objective_relationship_triple_uq",
        ),
        sa.CheckConstraint("source_id <> target_id", name="objective_relationship_no_self_loop_ck"),
        sa.CheckConstraint(
            "weight IS NULL OR (weight >= 0 AND weight <= 1)",
            name="objective_relationship_weight_range_ck",
        ),
    )
    op.create_index("ix_objective_relationship_source_id", "objective_relationship", ["source_id"])
    op.create_index("ix_objective_relationship_target_id", "objective_relationship", ["target_id"])


def downgrade() -> None:
    op.drop_index("ix_objective_relationship_target_id", table_name="objective_relationship")
    op.drop_index("ix_objective_relationship_source_id", table_name="objective_relationship")
    op.drop_table("objective_relationship")
    op.drop_index("objective_tag_tag_idx", table_name="objective_tag")
    op.drop_table("objective_tag")
    op.drop_index("objective_created_at_idx", table_name="objective")
    op.drop_index("ix_objective_knowledge_entry_id", table_name="objective")
    op.drop_table("objective")
    op.drop_table("knowledge_entry")
