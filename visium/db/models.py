"""
Objective Graph Database Models

SQLAlchemy models for knowledge entries, objectives, their tags and the
typed relationships between objectives.

Storage-level constraints are authoritative for the graph invariants that
matter under concurrent ingestion: unique normalized objective text, one
relationship per (source, target, type), no self-loops, and foreign keys on
every relationship endpoint.
"""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

from visium.kernel.ids import (
    KNOWLEDGE_ENTRY_ID_PREFIX,
    OBJECTIVE_ID_PREFIX,
    RELATIONSHIP_ID_PREFIX,
    new_prefixed_id,
)
from visium.kernel.time import utc_now

Base = declarative_base()


class KnowledgeEntry(Base):
    """
    Immutable provenance record of one raw-text ingestion.

    Objectives point back at the entry that produced them.
    """

    __tablename__ = "knowledge_entry"

    id = Column(Text, primary_key=True, default=lambda: new_prefixed_id(KNOWLEDGE_ENTRY_ID_PREFIX))
    title = Column(Text, nullable=True)
    raw_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<KnowledgeEntry {self.id} ({self.title or 'untitled'})>"


class Objective(Base):
    """A single strategic statement node."""

    __tablename__ = "objective"

    # Identity
    id = Column(Text, primary_key=True, default=lambda: new_prefixed_id(OBJECTIVE_ID_PREFIX))
    knowledge_entry_id = Column(
        Text,
        ForeignKey("knowledge_entry.id"),
        nullable=False,
        index=True,
    )

    # Statement
    text = Column(Text, nullable=False)
    normalized_text = Column(Text, nullable=False)  # lower-cased, whitespace collapsed
    context = Column(Text, nullable=True)
    category = Column(Text, nullable=True)
    timeframe = Column(Text, nullable=True)
    owner = Column(Text, nullable=True)

    # Classification
    status = Column(String(16), nullable=False, default="PROPOSED")  # PROPOSED, PLANNED, ACTIVE, BLOCKED, COMPLETE
    priority = Column(String(16), nullable=False, default="MEDIUM")  # HIGH, MEDIUM, LOW
    confidence = Column(Float, nullable=True)
    metrics = Column(JSON, nullable=False, default=list)

    # Provenance
    source_label = Column(Text, nullable=True)
    source_excerpt = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("normalized_text", name="objective_normalized_text_uq"),
        CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 1)",
            name="objective_confidence_range_ck",
        ),
        Index("objective_created_at_idx", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Objective {self.id} ({self.status})>"


class ObjectiveTag(Base):
    """Lower-cased tag attached to an objective."""

    __tablename__ = "objective_tag"

    objective_id = Column(
        Text,
        ForeignKey("objective.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag = Column(Text, primary_key=True)

    __table_args__ = (Index("objective_tag_tag_idx", "tag"),)


class ObjectiveRelationship(Base):
    """Directed, typed edge between two objectives."""

    __tablename__ = "objective_relationship"

    id = Column(Text, primary_key=True, default=lambda: new_prefixed_id(RELATIONSHIP_ID_PREFIX))
    source_id = Column(
        Text,
        ForeignKey("objective.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_id = Column(
        Text,
        ForeignKey("objective.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(String(16), nullable=False)  # SUPPORTS, DEPENDS_ON, RELATES_TO, BLOCKS, INFORMS
    rationale = Column(Text, nullable=True)
    weight = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint(
            "source_id",
            "target_id",
            "type",
            name="objective_relationship_triple_uq",
        ),
        CheckConstraint("source_id <> target_id", name="objective_relationship_no_self_loop_ck"),
        CheckConstraint(
            "weight IS NULL OR (weight >= 0 AND weight <= 1)",
            name="objective_relationship_weight_range_ck",
        ),
    )

    def __repr__(self) -> str:
        return f"<ObjectiveRelationship {self.source_id} -{self.type}-> {self.target_id}>"
