"""
Queue Persistence Model
=======================

Table backing SQLAlchemyJobQueue, one row per undeleted message.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, DateTime, Integer, JSON, String, Index
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow.infrastructure.database import Base


class QueueMessageModel(Base):
    """Database row for a queued job message."""
    __tablename__ = "queue_messages"
    __table_args__ = (
        Index("ix_queue_messages_queue_visible", "queue_name", "visible_at"),
    )

    # SQLite only autoincrements INTEGER primary keys
    msg_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True
    )
    queue_name: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    read_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    enqueued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    visible_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
