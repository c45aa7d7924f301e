"""
Queue Interface
===============

The single abstract queue every pipeline stage talks to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List


@dataclass
class QueueMessage:
    """A message as handed to a consumer by receive()."""
    msg_id: int
    queue_name: str
    message: dict[str, Any]
    enqueued_at: datetime
    visible_at: datetime
    read_count: int = 0
    headers: dict[str, Any] = field(default_factory=dict)


class IJobQueue(ABC):
    """Interface for durable at-least-once queues."""

    @abstractmethod
    async def send(self, queue_name: str, payload: dict[str, Any]) -> int:
        """
        Enqueue a payload.

        Returns:
            The new message id
        """

    @abstractmethod
    async def receive(
        self,
        queue_name: str,
        visibility_timeout: int,
        max_count: int
    ) -> List[QueueMessage]:
        """
        Read up to max_count visible messages in enqueue order.

        Each returned message is hidden for visibility_timeout seconds
        and its read_count is incremented.

        Raises:
            QueueException: If the backing store is unreachable
        """

    @abstractmethod
    async def delete(self, queue_name: str, msg_id: int) -> bool:
        """Acknowledge a message. Returns False if it was already gone."""
