"""
In-Memory Queue
===============

Process-local IJobQueue for tests and local development.

Time comes from an injected clock so visibility windows can be stepped
through without sleeping.
"""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ticketflow.infrastructure.queue.base import IJobQueue, QueueMessage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryJobQueue(IJobQueue):
    """Dictionary-backed queue honouring visibility timeouts."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utcnow
        self._ids = itertools.count(1)
        self._queues: Dict[str, Dict[int, QueueMessage]] = {}

    async def send(self, queue_name: str, payload: dict[str, Any]) -> int:
        now = self._clock()
        msg_id = next(self._ids)
        self._queues.setdefault(queue_name, {})[msg_id] = QueueMessage(
            msg_id=msg_id,
            queue_name=queue_name,
            message=dict(payload),
            enqueued_at=now,
            visible_at=now,
        )
        return msg_id

    async def receive(
        self,
        queue_name: str,
        visibility_timeout: int,
        max_count: int
    ) -> List[QueueMessage]:
        now = self._clock()
        messages = self._queues.get(queue_name, {})

        batch = []
        for msg_id in sorted(messages):
            if len(batch) >= max_count:
                break
            msg = messages[msg_id]
            if msg.visible_at > now:
                continue
            msg.visible_at = now + timedelta(seconds=visibility_timeout)
            msg.read_count += 1
            batch.append(QueueMessage(
                msg_id=msg.msg_id,
                queue_name=msg.queue_name,
                message=dict(msg.message),
                enqueued_at=msg.enqueued_at,
                visible_at=msg.visible_at,
                read_count=msg.read_count,
            ))
        return batch

    async def delete(self, queue_name: str, msg_id: int) -> bool:
        return self._queues.get(queue_name, {}).pop(msg_id, None) is not None

    def size(self, queue_name: str) -> int:
        """Messages still held for queue_name, visible or not."""
        return len(self._queues.get(queue_name, {}))

    def payloads(self, queue_name: str) -> List[dict[str, Any]]:
        """Payloads held for queue_name in enqueue order."""
        messages = self._queues.get(queue_name, {})
        return [messages[i].message for i in sorted(messages)]
