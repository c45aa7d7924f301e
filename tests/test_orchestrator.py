"""Tests for PipelineOrchestrator and the stage handlers."""

from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from ticketflow.core import EmbeddingException, PermanentJobError, QueueException
from ticketflow.infrastructure.queue import InMemoryJobQueue, QueueMessage
from ticketflow.pipeline.application import (
    ClassificationJobHandler,
    EmbeddingJobHandler,
    IEmbeddingTargetRepository,
    IJobHandler,
    PipelineOrchestrator,
)
from ticketflow.pipeline.domain import EmbeddingJob, FailurePolicy
from tests.fakes import TableEmbedder


class ScriptedHandler(IJobHandler):
    """Fails according to the payload's "fail" key."""

    def __init__(self):
        self.handled: List[int] = []

    async def handle(self, message: QueueMessage) -> None:
        self.handled.append(message.msg_id)
        failure = message.message.get("fail")
        if failure == "permanent":
            raise PermanentJobError("row not found")
        if failure == "transient":
            raise EmbeddingException("providers down")


class FakeTargets(IEmbeddingTargetRepository):

    def __init__(self, rows: Dict[tuple, str]):
        self.rows = rows
        self.stored: Dict[tuple, List[float]] = {}
        self.processing: List[str] = []

    async def get_content(self, table: str, row_id: str, content_function: str) -> Optional[str]:
        return self.rows.get((table, row_id))

    async def store_embedding(self, table: str, row_id: str, embedding: List[float]) -> None:
        self.stored[(table, row_id)] = embedding

    async def mark_ticket_processing(self, ticket_id: str) -> None:
        self.processing.append(ticket_id)

    async def ticket_exists(self, ticket_id: str) -> bool:
        return ("tickets", ticket_id) in self.rows


@pytest.fixture
def queue(clock) -> InMemoryJobQueue:
    return InMemoryJobQueue(clock=clock)


class TestPipelineOrchestrator:

    async def test_mixed_batch(self, queue):
        ok = await queue.send("jobs", {"fail": None})
        permanent = await queue.send("jobs", {"fail": "permanent"})
        transient = await queue.send("jobs", {"fail": "transient"})
        handler = ScriptedHandler()

        summary = await PipelineOrchestrator(queue).run_batch("jobs", handler, 10, 30)

        assert handler.handled == [ok, permanent, transient]
        assert summary.received == 3
        assert summary.completed == [ok]
        assert [(f.msg_id, f.deleted) for f in summary.failed] == [(permanent, True), (transient, False)]
        assert summary.failed[1].payload == {"fail": "transient"}
        assert "providers down" in summary.failed[1].error
        # Only the transient failure is left for redelivery
        assert queue.size("jobs") == 1

    async def test_transient_failure_redelivered_until_poison(self, queue, clock):
        msg_id = await queue.send("jobs", {"fail": "transient"})
        orchestrator = PipelineOrchestrator(queue, FailurePolicy(max_deliveries=3))
        handler = ScriptedHandler()

        outcomes = []
        for _ in range(3):
            summary = await orchestrator.run_batch("jobs", handler, 1, 30)
            outcomes.append(summary.failed[0].deleted)
            clock.advance(30)

        assert outcomes == [False, False, True]
        assert handler.handled == [msg_id] * 3
        assert queue.size("jobs") == 0

    async def test_default_policy_allows_five_deliveries(self, queue, clock):
        await queue.send("jobs", {"fail": "transient"})
        orchestrator = PipelineOrchestrator(queue, failure_policy=None)

        outcomes = []
        for _ in range(5):
            summary = await orchestrator.run_batch("jobs", ScriptedHandler(), 1, 30)
            outcomes.append(summary.failed[0].deleted)
            clock.advance(30)

        assert outcomes == [False, False, False, False, True]

    async def test_batch_size_respected(self, queue):
        for _ in range(5):
            await queue.send("jobs", {})

        summary = await PipelineOrchestrator(queue).run_batch("jobs", ScriptedHandler(), 2, 30)

        assert summary.received == 2
        assert queue.size("jobs") == 3

    async def test_empty_queue(self, queue):
        summary = await PipelineOrchestrator(queue).run_batch("jobs", ScriptedHandler(), 5, 30)
        assert summary.received == 0
        assert summary.completed == []
        assert summary.failed == []

    async def test_receive_failure_propagates(self):
        broken = AsyncMock()
        broken.receive.side_effect = QueueException("database unreachable")

        with pytest.raises(QueueException):
            await PipelineOrchestrator(broken).run_batch("jobs", ScriptedHandler(), 5, 30)


class TestEmbeddingJobHandler:

    async def test_ticket_embedding_enqueues_classification(self, queue):
        targets = FakeTargets({("tickets", "t-1"): "Snowflake sync fails"})
        embedder = TableEmbedder({"Snowflake sync fails": [0.1, 0.2]})
        handler = EmbeddingJobHandler(targets, embedder, queue)
        await queue.send("embedding_jobs", EmbeddingJob.for_ticket("t-1").to_payload())

        summary = await PipelineOrchestrator(queue).run_batch("embedding_jobs", handler, 10, 30)

        assert len(summary.completed) == 1
        assert targets.stored == {("tickets", "t-1"): [0.1, 0.2]}
        assert targets.processing == ["t-1"]
        assert queue.payloads("classification_jobs") == [
            {"id": "t-1", "table": "tickets", "content_function": "ticket_content"}
        ]

    async def test_chunk_embedding_does_not_classify(self, queue):
        targets = FakeTargets({("document_chunks", "c-1"): "Chunk text"})
        handler = EmbeddingJobHandler(targets, TableEmbedder({}, default=[1.0]), queue)
        await queue.send("embedding_jobs", EmbeddingJob.for_chunk("c-1").to_payload())

        await PipelineOrchestrator(queue).run_batch("embedding_jobs", handler, 10, 30)

        assert targets.stored == {("document_chunks", "c-1"): [1.0]}
        assert targets.processing == []
        assert queue.size("classification_jobs") == 0

    @pytest.mark.parametrize("rows", [{}, {("tickets", "t-1"): "   "}])
    async def test_missing_or_empty_row_is_deleted(self, queue, rows):
        embedder = TableEmbedder({}, default=[1.0])
        handler = EmbeddingJobHandler(FakeTargets(rows), embedder, queue)
        await queue.send("embedding_jobs", EmbeddingJob.for_ticket("t-1").to_payload())

        summary = await PipelineOrchestrator(queue).run_batch("embedding_jobs", handler, 10, 30)

        assert summary.failed[0].deleted is True
        assert embedder.calls == []
        assert queue.size("embedding_jobs") == 0

    async def test_embedding_failure_is_retried(self, queue):
        targets = FakeTargets({("tickets", "t-1"): "text"})
        handler = EmbeddingJobHandler(targets, TableEmbedder({}), queue)
        await queue.send("embedding_jobs", EmbeddingJob.for_ticket("t-1").to_payload())

        summary = await PipelineOrchestrator(queue).run_batch("embedding_jobs", handler, 10, 30)

        assert summary.failed[0].deleted is False
        assert targets.stored == {}
        assert queue.size("embedding_jobs") == 1
        assert queue.size("classification_jobs") == 0

    async def test_invalid_payload_is_deleted(self, queue):
        handler = EmbeddingJobHandler(FakeTargets({}), TableEmbedder({}), queue)
        await queue.send("embedding_jobs", {"id": "x", "table": "users"})

        summary = await PipelineOrchestrator(queue).run_batch("embedding_jobs", handler, 10, 30)

        assert summary.failed[0].deleted is True


class TestClassificationJobHandler:

    async def test_delegates_to_service(self, queue):
        service = AsyncMock()
        await queue.send("classification_jobs", {"id": "t-9", "table": "tickets", "content_function": "ticket_content"})

        summary = await PipelineOrchestrator(queue).run_batch(
            "classification_jobs", ClassificationJobHandler(service), 3, 60
        )

        service.classify_ticket.assert_awaited_once_with("t-9")
        assert len(summary.completed) == 1
