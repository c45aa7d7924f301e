"""
Triage Infrastructure Models
=============================

SQLAlchemy ORM models for tickets, reference embeddings and AI responses.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, JSON, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow.config import TicketStatus
from ticketflow.infrastructure.database import Base


class TicketModel(Base):
    """
    Support ticket row.

    Tickets are created by the external intake; the pipeline only writes
    the embedding, the classification fields and the status.
    """
    __tablename__ = "tickets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_number: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)

    subject: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    topic_tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    sentiment: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    ai_priority: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    classification_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TicketStatus.PENDING, index=True)
    embedding: Mapped[Optional[List[float]]] = mapped_column(JSON(none_as_null=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    classification_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ReferenceEmbeddingModel(Base):
    """Anchor embedding for one topic, sentiment or priority label."""
    __tablename__ = "reference_embeddings"
    __table_args__ = (
        UniqueConstraint("category", "label", name="uq_reference_embeddings_category_label"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    category: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    embedding: Mapped[List[float]] = mapped_column(JSON, nullable=False)
    ref_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )


class AIResponseModel(Base):
    """Drafted reply for a ticket; a new row per classification run."""
    __tablename__ = "ai_responses"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    generated_response: Mapped[str] = mapped_column(Text, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    sources: Mapped[List[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    is_fallback: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    model_used: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
