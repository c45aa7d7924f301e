"""
Job Queue
=========

At-least-once work queue with visibility timeouts.

A received message stays invisible until its timeout expires; a consumer
acknowledges completion by deleting it. Anything not deleted is handed out
again, which is the pipeline's only retry mechanism.
"""

from ticketflow.infrastructure.queue.base import IJobQueue, QueueMessage
from ticketflow.infrastructure.queue.memory import InMemoryJobQueue
from ticketflow.infrastructure.queue.sqlalchemy_queue import SQLAlchemyJobQueue

__all__ = [
    "IJobQueue",
    "QueueMessage",
    "InMemoryJobQueue",
    "SQLAlchemyJobQueue",
]
