"""
Pipeline Orchestrator
=====================

Drains one batch from a queue through a stage handler.
"""

from typing import Optional

from ticketflow.core import ApplicationException
from ticketflow.infrastructure.queue import IJobQueue
from ticketflow.pipeline.application.dto import BatchSummary, FailedJob
from ticketflow.pipeline.application.handlers import IJobHandler
from ticketflow.pipeline.domain import FailurePolicy, JobDecision
from ticketflow.shared.infrastructure.logging import get_job_logger, get_logger

logger = get_logger(__name__)


class PipelineOrchestrator:
    """
    Receive-process-acknowledge loop shared by every stage.

    Messages are handled one at a time in receive order. A handler failure
    never stops the batch; the failure policy decides whether the message is
    deleted or left to reappear after its visibility timeout.
    """

    def __init__(self, queue: IJobQueue, failure_policy: Optional[FailurePolicy] = None):
        self._queue = queue
        self._policy = failure_policy or FailurePolicy()

    async def run_batch(
        self,
        queue_name: str,
        handler: IJobHandler,
        batch_size: int,
        visibility_timeout: int
    ) -> BatchSummary:
        """
        Process up to batch_size messages.

        Args:
            queue_name: Queue to read
            handler: Stage handler for the messages
            batch_size: Maximum messages received
            visibility_timeout: Seconds each message stays hidden

        Returns:
            BatchSummary with completed ids and failures

        Raises:
            QueueException: If the queue cannot be read
        """
        messages = await self._queue.receive(queue_name, visibility_timeout, batch_size)
        summary = BatchSummary(queue=queue_name, received=len(messages))

        for message in messages:
            job_logger = get_job_logger(__name__, str(message.msg_id))
            try:
                await handler.handle(message)
            except Exception as e:
                decision = self._policy.decide(e, message)
                deleted = False
                if decision == JobDecision.DELETE:
                    deleted = await self._delete(queue_name, message.msg_id)

                error = e.message if isinstance(e, ApplicationException) else str(e)
                summary.failed.append(FailedJob(
                    msg_id=message.msg_id,
                    payload=message.message,
                    error=error,
                    deleted=deleted,
                ))
                job_logger.error(
                    "Job failed",
                    extra={
                        "queue": queue_name,
                        "error_type": type(e).__name__,
                        "error": error,
                        "read_count": message.read_count,
                        "decision": decision.value,
                        "poison": self._policy.is_poison(e, message),
                    }
                )
                continue

            await self._delete(queue_name, message.msg_id)
            summary.completed.append(message.msg_id)
            job_logger.debug("Job completed", extra={"queue": queue_name})

        logger.info(
            "Batch finished",
            extra={
                "queue": queue_name,
                "received": summary.received,
                "completed": len(summary.completed),
                "failed": len(summary.failed),
            }
        )
        return summary

    async def _delete(self, queue_name: str, msg_id: int) -> bool:
        try:
            return await self._queue.delete(queue_name, msg_id)
        except ApplicationException as e:
            # Message reappears after its visibility timeout
            logger.error(
                "Failed to delete message",
                extra={"queue": queue_name, "msg_id": msg_id, "error": e.message}
            )
            return False
