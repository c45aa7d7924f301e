"""
Pipeline Service
================

Entry points for every stage, shared by the HTTP controllers and the
scheduler. Stage defaults come from settings; callers may override batch
size and visibility timeout per invocation.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from ticketflow.core import ApplicationException, ResourceNotFoundException
from ticketflow.infrastructure.queue import IJobQueue
from ticketflow.ingestion.application import CrawlSummary, IngestionService
from ticketflow.pipeline.application.dto import BatchSummary, EnqueueResponse
from ticketflow.pipeline.application.handlers import IEmbeddingTargetRepository, IJobHandler
from ticketflow.pipeline.application.orchestrator import PipelineOrchestrator
from ticketflow.pipeline.domain import EmbeddingJob
from ticketflow.shared.infrastructure.logging import get_logger, log_latency
from ticketflow.triage.application import ReferenceSeeder, SeedSummary, load_reference_labels

logger = get_logger(__name__)


@dataclass(frozen=True)
class StageSettings:
    """Queue names and per-stage batch defaults."""
    embedding_queue: str = "embedding_jobs"
    classification_queue: str = "classification_jobs"
    embedding_batch_size: int = 10
    embedding_visibility_timeout: int = 30
    classification_batch_size: int = 3
    classification_visibility_timeout: int = 60
    reference_labels_path: Path = Path("reference_labels.yaml")

    @classmethod
    def from_settings(cls, settings: Any) -> "StageSettings":
        return cls(
            embedding_queue=settings.embedding_queue_name,
            classification_queue=settings.classification_queue_name,
            embedding_batch_size=settings.embedding_batch_size,
            embedding_visibility_timeout=settings.embedding_visibility_timeout,
            classification_batch_size=settings.classification_batch_size,
            classification_visibility_timeout=settings.classification_visibility_timeout,
            reference_labels_path=settings.reference_labels_path,
        )


class PipelineService:
    """Runs crawl, embedding, classification and seeding stages."""

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        queue: IJobQueue,
        targets: IEmbeddingTargetRepository,
        embedding_handler: IJobHandler,
        classification_handler: IJobHandler,
        ingestion: IngestionService,
        seeder: ReferenceSeeder,
        stages: Optional[StageSettings] = None
    ):
        self._orchestrator = orchestrator
        self._queue = queue
        self._targets = targets
        self._embedding_handler = embedding_handler
        self._classification_handler = classification_handler
        self._ingestion = ingestion
        self._seeder = seeder
        self.stages = stages or StageSettings()

    async def run_crawl(
        self,
        seed_urls: Optional[Sequence[str]] = None,
        max_pages: Optional[int] = None
    ) -> CrawlSummary:
        with log_latency(logger, "crawl"):
            return await self._ingestion.run(seed_urls, max_pages)

    async def run_embedding_batch(
        self,
        batch_size: Optional[int] = None,
        visibility_timeout: Optional[int] = None
    ) -> BatchSummary:
        with log_latency(logger, "embedding_batch", queue=self.stages.embedding_queue):
            return await self._orchestrator.run_batch(
                self.stages.embedding_queue,
                self._embedding_handler,
                batch_size or self.stages.embedding_batch_size,
                visibility_timeout or self.stages.embedding_visibility_timeout,
            )

    async def run_classification_batch(
        self,
        batch_size: Optional[int] = None,
        visibility_timeout: Optional[int] = None
    ) -> BatchSummary:
        with log_latency(logger, "classification_batch", queue=self.stages.classification_queue):
            return await self._orchestrator.run_batch(
                self.stages.classification_queue,
                self._classification_handler,
                batch_size or self.stages.classification_batch_size,
                visibility_timeout or self.stages.classification_visibility_timeout,
            )

    async def seed_references(self) -> SeedSummary:
        """
        Embed every label in the reference labels file.

        Raises:
            ConfigurationException: If the labels file is missing or malformed
        """
        labels = load_reference_labels(self.stages.reference_labels_path)
        return await self._seeder.seed(labels)

    async def enqueue_ticket(self, ticket_id: str) -> EnqueueResponse:
        """
        Hand a newly created ticket to the embedding stage.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
        """
        if not await self._targets.ticket_exists(ticket_id):
            raise ResourceNotFoundException("Ticket", ticket_id)

        msg_id = await self._queue.send(
            self.stages.embedding_queue,
            EmbeddingJob.for_ticket(ticket_id).to_payload()
        )
        logger.info("Ticket enqueued", extra={"ticket_id": ticket_id, "msg_id": msg_id})
        return EnqueueResponse(queue=self.stages.embedding_queue, msg_id=msg_id, ticket_id=ticket_id)

    async def drain(self) -> None:
        """Scheduled tick: one embedding batch, then one classification batch."""
        for stage, run in (("embedding", self.run_embedding_batch), ("classification", self.run_classification_batch)):
            try:
                await run()
            except ApplicationException as e:
                logger.error(
                    "Scheduled stage failed",
                    extra={"stage": stage, "error_type": type(e).__name__, "error": e.message}
                )
