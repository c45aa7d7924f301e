"""
Stage Handlers
==============

One handler per queue. A handler processes a single received message and
raises on failure; the orchestrator decides what happens to the message.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ticketflow.config import JobTable
from ticketflow.core import PermanentJobError
from ticketflow.infrastructure.llm import IEmbeddingClient
from ticketflow.infrastructure.queue import IJobQueue, QueueMessage
from ticketflow.pipeline.domain import ClassificationJob, EmbeddingJob
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.triage.application import ClassificationService

logger = get_logger(__name__)


class IEmbeddingTargetRepository(ABC):
    """Rows an embedding job can target."""

    @abstractmethod
    async def get_content(self, table: str, row_id: str, content_function: str) -> Optional[str]:
        """Text to embed for the row, None when the row does not exist."""

    @abstractmethod
    async def store_embedding(self, table: str, row_id: str, embedding: List[float]) -> None:
        """Write the vector to the row's embedding column."""

    @abstractmethod
    async def mark_ticket_processing(self, ticket_id: str) -> None:
        """Move a ticket to the processing status."""

    @abstractmethod
    async def ticket_exists(self, ticket_id: str) -> bool:
        """Whether the ticket row exists."""


class IJobHandler(ABC):
    """Processes one message from a queue."""

    @abstractmethod
    async def handle(self, message: QueueMessage) -> None:
        """
        Process the message.

        Raises:
            PermanentJobError: The message can never succeed
            ApplicationException: Transient failure, retry later
        """


class EmbeddingJobHandler(IJobHandler):
    """
    Embeds a ticket or document chunk.

    A freshly embedded ticket moves to ``processing`` and gets a
    classification job.
    """

    def __init__(
        self,
        targets: IEmbeddingTargetRepository,
        embedder: IEmbeddingClient,
        queue: IJobQueue,
        classification_queue: str = "classification_jobs"
    ):
        self._targets = targets
        self._embedder = embedder
        self._queue = queue
        self._classification_queue = classification_queue

    async def handle(self, message: QueueMessage) -> None:
        job = EmbeddingJob.from_message(message)

        content = await self._targets.get_content(job.table, job.id, job.content_function)
        if content is None:
            raise PermanentJobError(
                f"{job.table} row {job.id} not found",
                {"table": job.table, "id": job.id}
            )
        if not content.strip():
            raise PermanentJobError(
                f"{job.table} row {job.id} has no content",
                {"table": job.table, "id": job.id}
            )

        embedding = await self._embedder.embed(content)
        await self._targets.store_embedding(job.table, job.id, embedding)

        if job.table == JobTable.TICKETS:
            await self._targets.mark_ticket_processing(job.id)
            await self._queue.send(
                self._classification_queue,
                ClassificationJob.for_ticket(job.id).to_payload()
            )

        logger.info(
            "Embedding stored",
            extra={"table": job.table, "id": job.id, "dimension": len(embedding)}
        )


class ClassificationJobHandler(IJobHandler):
    """Runs ticket classification and response drafting."""

    def __init__(self, service: ClassificationService):
        self._service = service

    async def handle(self, message: QueueMessage) -> None:
        job = ClassificationJob.from_message(message)
        await self._service.classify_ticket(job.id)
