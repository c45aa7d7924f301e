"""Tests for the scheduled drain."""

from unittest.mock import AsyncMock

from ticketflow.core import QueueException
from ticketflow.pipeline.application import BatchSummary, PipelineService
from ticketflow.pipeline.infrastructure import PipelineScheduler


class TestPipelineScheduler:

    async def test_start_registers_single_interval_job(self):
        scheduler = PipelineScheduler(interval_seconds=30)
        drain = AsyncMock()

        await scheduler.start(drain)
        try:
            assert scheduler.is_running
            job = scheduler._scheduler.get_job("pipeline_drain")
            assert job.trigger.interval.total_seconds() == 30
            assert job.max_instances == 1
        finally:
            await scheduler.stop()

        assert not scheduler.is_running

    async def test_start_twice_is_ignored(self):
        scheduler = PipelineScheduler(interval_seconds=30)
        await scheduler.start(AsyncMock())
        first = scheduler._scheduler

        await scheduler.start(AsyncMock())

        assert scheduler._scheduler is first
        await scheduler.stop()

    async def test_stop_without_start(self):
        await PipelineScheduler().stop()


class TestDrain:

    async def test_drain_runs_both_stages(self):
        service = PipelineService.__new__(PipelineService)
        service.run_embedding_batch = AsyncMock(return_value=BatchSummary(queue="embedding_jobs"))
        service.run_classification_batch = AsyncMock(return_value=BatchSummary(queue="classification_jobs"))

        await service.drain()

        service.run_embedding_batch.assert_awaited_once()
        service.run_classification_batch.assert_awaited_once()

    async def test_queue_failure_does_not_skip_classification(self):
        service = PipelineService.__new__(PipelineService)
        service.run_embedding_batch = AsyncMock(side_effect=QueueException("down"))
        service.run_classification_batch = AsyncMock(return_value=BatchSummary(queue="classification_jobs"))

        await service.drain()

        service.run_classification_batch.assert_awaited_once()
