"""
SQL-Backed Queue
================

IJobQueue over the queue_messages table with pgmq-style semantics.

Each operation runs in its own short transaction so a message's visibility
change is committed before the consumer starts working on it. On PostgreSQL
receive() locks candidate rows with FOR UPDATE SKIP LOCKED so concurrent
workers never receive the same message inside one visibility window.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketflow.core import QueueException
from ticketflow.infrastructure.queue.base import IJobQueue, QueueMessage
from ticketflow.infrastructure.queue.models import QueueMessageModel
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLAlchemyJobQueue(IJobQueue):
    """
    Table-backed queue.

    Args:
        session_factory: Factory for short-lived sessions
        clock: Source of "now", injectable for tests
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._session_factory = session_factory
        self._clock = clock or _utcnow

    async def send(self, queue_name: str, payload: dict[str, Any]) -> int:
        now = self._clock()
        try:
            async with self._session_factory() as session:
                model = QueueMessageModel(
                    queue_name=queue_name,
                    message=payload,
                    read_count=0,
                    enqueued_at=now,
                    visible_at=now,
                )
                session.add(model)
                await session.commit()
                return model.msg_id
        except SQLAlchemyError as e:
            raise QueueException(
                f"Failed to enqueue on {queue_name}",
                {"queue": queue_name, "error": str(e)}
            ) from e

    async def receive(
        self,
        queue_name: str,
        visibility_timeout: int,
        max_count: int
    ) -> List[QueueMessage]:
        now = self._clock()
        hidden_until = now + timedelta(seconds=visibility_timeout)

        stmt = (
            select(QueueMessageModel)
            .where(
                QueueMessageModel.queue_name == queue_name,
                QueueMessageModel.visible_at <= now,
            )
            .order_by(QueueMessageModel.msg_id)
            .limit(max_count)
            .with_for_update(skip_locked=True)
        )

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()

                batch = []
                for row in rows:
                    row.visible_at = hidden_until
                    row.read_count += 1
                    batch.append(QueueMessage(
                        msg_id=row.msg_id,
                        queue_name=row.queue_name,
                        message=dict(row.message),
                        enqueued_at=row.enqueued_at,
                        visible_at=hidden_until,
                        read_count=row.read_count,
                    ))
                await session.commit()
        except SQLAlchemyError as e:
            raise QueueException(
                f"Failed to read from {queue_name}",
                {"queue": queue_name, "error": str(e)}
            ) from e

        if batch:
            logger.debug(
                "Messages received",
                extra={"queue": queue_name, "count": len(batch)}
            )
        return batch

    async def delete(self, queue_name: str, msg_id: int) -> bool:
        stmt = delete(QueueMessageModel).where(
            QueueMessageModel.queue_name == queue_name,
            QueueMessageModel.msg_id == msg_id,
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise QueueException(
                f"Failed to delete message {msg_id} from {queue_name}",
                {"queue": queue_name, "msg_id": msg_id, "error": str(e)}
            ) from e
