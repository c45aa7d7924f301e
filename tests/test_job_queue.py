"""Tests for the job queue implementations."""

import pytest
from sqlalchemy import func, select

from ticketflow.infrastructure.queue import InMemoryJobQueue, SQLAlchemyJobQueue
from ticketflow.infrastructure.queue.models import QueueMessageModel


@pytest.fixture(params=["memory", "sql"])
async def queue(request, clock, session_factory):
    if request.param == "memory":
        return InMemoryJobQueue(clock=clock)
    return SQLAlchemyJobQueue(session_factory, clock=clock)


class TestJobQueue:

    async def test_receive_in_enqueue_order(self, queue):
        ids = [await queue.send("embedding_jobs", {"n": i}) for i in range(3)]

        batch = await queue.receive("embedding_jobs", visibility_timeout=30, max_count=2)

        assert [m.msg_id for m in batch] == ids[:2]
        assert [m.message for m in batch] == [{"n": 0}, {"n": 1}]
        assert all(m.read_count == 1 for m in batch)

    async def test_received_messages_are_hidden(self, queue):
        await queue.send("embedding_jobs", {"n": 1})
        await queue.send("embedding_jobs", {"n": 2})

        first = await queue.receive("embedding_jobs", 30, 1)
        second = await queue.receive("embedding_jobs", 30, 5)

        assert [m.message["n"] for m in first] == [1]
        assert [m.message["n"] for m in second] == [2]
        assert await queue.receive("embedding_jobs", 30, 5) == []

    async def test_redelivered_after_visibility_timeout(self, queue, clock):
        msg_id = await queue.send("classification_jobs", {"id": "t-1"})
        await queue.receive("classification_jobs", 60, 1)

        clock.advance(59)
        assert await queue.receive("classification_jobs", 60, 1) == []

        clock.advance(1)
        redelivered = await queue.receive("classification_jobs", 60, 1)
        assert [m.msg_id for m in redelivered] == [msg_id]
        assert redelivered[0].read_count == 2

    async def test_delete_acknowledges_once(self, queue, clock):
        msg_id = await queue.send("embedding_jobs", {"n": 1})

        assert await queue.delete("embedding_jobs", msg_id) is True
        assert await queue.delete("embedding_jobs", msg_id) is False

        clock.advance(3600)
        assert await queue.receive("embedding_jobs", 30, 10) == []

    async def test_queues_are_isolated(self, queue):
        await queue.send("embedding_jobs", {"n": 1})
        assert await queue.receive("classification_jobs", 30, 10) == []

    async def test_delete_checks_queue_name(self, queue):
        msg_id = await queue.send("embedding_jobs", {"n": 1})
        assert await queue.delete("classification_jobs", msg_id) is False


class TestSQLAlchemyJobQueue:

    async def test_messages_are_persisted(self, session_factory, clock):
        queue = SQLAlchemyJobQueue(session_factory, clock=clock)
        await queue.send("embedding_jobs", {"id": "abc", "table": "tickets"})

        async with session_factory() as session:
            count = await session.scalar(select(func.count()).select_from(QueueMessageModel))
            row = (await session.execute(select(QueueMessageModel))).scalar_one()

        assert count == 1
        assert row.message == {"id": "abc", "table": "tickets"}
        assert row.read_count == 0


class TestInMemoryJobQueue:

    async def test_helpers(self, clock):
        queue = InMemoryJobQueue(clock=clock)
        await queue.send("embedding_jobs", {"n": 1})
        await queue.send("embedding_jobs", {"n": 2})
        await queue.receive("embedding_jobs", 30, 1)

        assert queue.size("embedding_jobs") == 2
        assert queue.payloads("embedding_jobs") == [{"n": 1}, {"n": 2}]
        assert queue.size("unknown") == 0
