"""
Pipeline Scheduler
==================

Optional in-process interval trigger for the queue stages.
"""

from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class PipelineScheduler:
    """
    Wrapper for APScheduler running one drain job on an interval.

    Each tick is an independent stage invocation; max_instances=1 keeps
    ticks from overlapping.
    """

    def __init__(self, interval_seconds: int = 60):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[None]]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("Pipeline scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="pipeline_drain",
            name="Pipeline Queue Drain",
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "Pipeline scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Pipeline scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
