"""
End-to-end pipeline tests.

The real service graph runs on in-memory SQLite with an in-memory queue,
a table-driven embedder and a mocked text generator.
"""

import math
import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from ticketflow.config import settings
from ticketflow.core import LLMException, ResourceNotFoundException
from ticketflow.infrastructure.llm import ChatCompletionResult, ITextGenerator
from ticketflow.infrastructure.queue import InMemoryJobQueue
from ticketflow.ingestion.infrastructure import DocumentChunkModel, DocumentModel
from ticketflow.main import build_pipeline_service
from ticketflow.pipeline.application import StageSettings
from ticketflow.pipeline.domain import ClassificationJob
from ticketflow.triage.application import ReferenceLabelSpec, ReferenceSeeder
from ticketflow.triage.infrastructure import (
    AIResponseModel,
    ReferenceEmbeddingModel,
    TicketModel,
    triage_repository_scope,
)
from tests.fakes import TableEmbedder


# ===========================================================================
# Fixtures
# ===========================================================================

TICKET_TEXT = "Snowflake connector\n\nSync fails"

VECTORS = {
    "Connector": [1.0, 0.0, 0.0, 0.0],
    "Lineage": [0.0, 0.0, 0.0, 1.0],
    "Frustrated": [0.0, 1.0, 0.0, 0.0],
    "Happy": [0.0, 0.0, 0.0, 1.0],
    "P0": [0.0, 0.0, 1.0, 0.0],
    "P2": [0.0, 0.0, 0.0, 1.0],
    TICKET_TEXT: [1.0, 0.5, 0.5, 0.0],
}

LABELS = [
    ReferenceLabelSpec(category="topic", label="Connector"),
    ReferenceLabelSpec(category="topic", label="Lineage"),
    ReferenceLabelSpec(category="sentiment", label="Frustrated"),
    ReferenceLabelSpec(category="sentiment", label="Happy"),
    ReferenceLabelSpec(category="priority", label="P0"),
    ReferenceLabelSpec(category="priority", label="P2"),
]

DOC_URL = "https://docs.atlan.com/guide/snowflake"

LLM_OUTPUT = """Here is the draft:
```json
{"answer": "Re-run the Snowflake crawler after granting USAGE.", "confidence": 0.9,
 "sources": [{"title": "Set up Snowflake", "url": "https://docs.atlan.com/guide/snowflake"}]}
```"""


@pytest.fixture
def embedder() -> TableEmbedder:
    return TableEmbedder(dict(VECTORS))


@pytest.fixture
def queue(clock) -> InMemoryJobQueue:
    return InMemoryJobQueue(clock=clock)


@pytest.fixture
def generator() -> AsyncMock:
    mock = AsyncMock(spec=ITextGenerator)
    mock.chat_completion.return_value = ChatCompletionResult(
        content=LLM_OUTPUT,
        model="gpt-4o-mini",
        prompt_tokens=120,
        completion_tokens=40,
        latency_ms=15,
    )
    return mock


@pytest.fixture
def make_service(session_factory, queue, embedder):
    def make(generator=None, stages=None):
        service = build_pipeline_service(
            session_factory,
            settings,
            queue=queue,
            embedder=embedder,
            generator=generator,
            crawler=AsyncMock(),
        )
        if stages is not None:
            service.stages = stages
        return service
    return make


async def seed_references(session_factory, embedder):
    await ReferenceSeeder(embedder, triage_repository_scope(session_factory)).seed(LABELS)


async def insert_ticket(session_factory, subject="Snowflake connector", description="Sync fails") -> str:
    ticket_id = uuid.uuid4()
    async with session_factory() as session:
        session.add(TicketModel(id=ticket_id, subject=subject, description=description))
        await session.commit()
    return str(ticket_id)


async def insert_documentation(session_factory):
    document_id = uuid.uuid4()
    async with session_factory() as session:
        session.add(DocumentModel(
            id=document_id,
            url=DOC_URL,
            title="Set up Snowflake",
            content="Grant USAGE on the warehouse before crawling.",
            content_hash="0" * 64,
        ))
        session.add(DocumentChunkModel(
            document_id=document_id,
            chunk_content="Grant USAGE on the warehouse before crawling.",
            chunk_index=0,
            source_url=DOC_URL,
            embedding=[1.0, 0.0, 0.0, 0.0],
        ))
        await session.commit()


async def load_ticket(session_factory, ticket_id: str) -> TicketModel:
    async with session_factory() as session:
        return await session.get(TicketModel, uuid.UUID(ticket_id))


async def load_responses(session_factory, ticket_id: str):
    async with session_factory() as session:
        stmt = select(AIResponseModel).where(AIResponseModel.ticket_id == uuid.UUID(ticket_id))
        return list((await session.execute(stmt)).scalars().all())


# ===========================================================================
# Full flow
# ===========================================================================

class TestTicketFlow:

    async def test_ticket_embedded_classified_and_answered(self, make_service, session_factory, embedder, generator):
        service = make_service(generator=generator)
        await seed_references(session_factory, embedder)
        await insert_documentation(session_factory)
        ticket_id = await insert_ticket(session_factory)

        enqueued = await service.enqueue_ticket(ticket_id)
        assert enqueued.queue == "embedding_jobs"

        embedding_batch = await service.run_embedding_batch()
        assert embedding_batch.completed == [enqueued.msg_id]
        assert embedding_batch.failed == []

        ticket = await load_ticket(session_factory, ticket_id)
        assert ticket.status == "processing"
        assert ticket.embedding == VECTORS[TICKET_TEXT]

        classification_batch = await service.run_classification_batch()
        assert len(classification_batch.completed) == 1
        assert classification_batch.failed == []

        ticket = await load_ticket(session_factory, ticket_id)
        assert ticket.status == "classified"
        assert ticket.topic_tags == ["Connector"]
        assert ticket.sentiment == "Frustrated"
        assert ticket.ai_priority == "P0"
        expected = (1 / math.sqrt(1.5) + 0.5 / math.sqrt(1.5) + 0.5 / math.sqrt(1.5)) / 3
        assert ticket.classification_confidence == pytest.approx(expected)
        assert ticket.classification_completed_at is not None

        responses = await load_responses(session_factory, ticket_id)
        assert len(responses) == 1
        assert responses[0].is_fallback is False
        assert responses[0].generated_response == "Re-run the Snowflake crawler after granting USAGE."
        assert responses[0].confidence_score == pytest.approx(0.9)
        assert responses[0].sources[0]["url"] == DOC_URL
        assert responses[0].model_used == "gpt-4o-mini"

        prompt = generator.chat_completion.await_args.kwargs["messages"][1]["content"]
        assert "topics: Connector" in prompt
        assert DOC_URL in prompt

    async def test_stored_embedding_is_reused(self, make_service, session_factory, embedder, queue):
        service = make_service()
        await seed_references(session_factory, embedder)
        ticket_id = await insert_ticket(session_factory)

        await service.enqueue_ticket(ticket_id)
        await service.run_embedding_batch()
        calls_before = len(embedder.calls)
        await service.run_classification_batch()

        assert len(embedder.calls) == calls_before
        assert queue.size("classification_jobs") == 0

    async def test_generator_failure_keeps_classification(self, make_service, session_factory, embedder, generator):
        generator.chat_completion.side_effect = LLMException("provider down")
        service = make_service(generator=generator)
        await seed_references(session_factory, embedder)
        ticket_id = await insert_ticket(session_factory)

        await service.enqueue_ticket(ticket_id)
        await service.run_embedding_batch()
        summary = await service.run_classification_batch()

        assert summary.failed == []
        ticket = await load_ticket(session_factory, ticket_id)
        assert ticket.status == "classified"
        assert ticket.topic_tags == ["Connector"]

        responses = await load_responses(session_factory, ticket_id)
        assert len(responses) == 1
        assert responses[0].is_fallback is True
        assert responses[0].generated_response.startswith("Classification summary:")

    async def test_without_generator_response_is_templated(self, make_service, session_factory, embedder):
        service = make_service(generator=None)
        await seed_references(session_factory, embedder)
        ticket_id = await insert_ticket(session_factory)

        await service.enqueue_ticket(ticket_id)
        await service.run_embedding_batch()
        await service.run_classification_batch()

        responses = await load_responses(session_factory, ticket_id)
        assert [r.is_fallback for r in responses] == [True]


# ===========================================================================
# Failures
# ===========================================================================

class TestPipelineFailures:

    async def test_embedding_failure_left_for_retry(self, make_service, session_factory, queue):
        service = make_service()
        ticket_id = await insert_ticket(session_factory, subject="Unknown text", description="nobody embeds this")

        await service.enqueue_ticket(ticket_id)
        summary = await service.run_embedding_batch()

        assert summary.completed == []
        assert len(summary.failed) == 1
        assert summary.failed[0].deleted is False
        assert queue.size("embedding_jobs") == 1
        assert (await load_ticket(session_factory, ticket_id)).status == "pending"

    async def test_classification_embedding_failure_left_for_retry(self, make_service, session_factory, queue):
        service = make_service()
        ticket_id = await insert_ticket(session_factory, subject="Unknown text", description="nobody embeds this")
        await queue.send("classification_jobs", ClassificationJob.for_ticket(ticket_id).to_payload())

        summary = await service.run_classification_batch()

        assert summary.failed[0].deleted is False
        assert "Failed to generate embeddings" in summary.failed[0].error
        assert queue.size("classification_jobs") == 1
        assert (await load_ticket(session_factory, ticket_id)).status == "pending"

    async def test_missing_ticket_classification_deleted(self, make_service, queue):
        service = make_service()
        await queue.send("classification_jobs", ClassificationJob.for_ticket(str(uuid.uuid4())).to_payload())

        summary = await service.run_classification_batch()

        assert summary.failed[0].deleted is True
        assert queue.size("classification_jobs") == 0

    async def test_enqueue_unknown_ticket(self, make_service, queue):
        service = make_service()

        with pytest.raises(ResourceNotFoundException):
            await service.enqueue_ticket(str(uuid.uuid4()))
        assert queue.size("embedding_jobs") == 0

    async def test_enqueue_malformed_ticket_id(self, make_service):
        with pytest.raises(ResourceNotFoundException):
            await make_service().enqueue_ticket("not-a-uuid")


# ===========================================================================
# Reference seeding
# ===========================================================================

class TestSeedReferences:

    async def test_seed_from_file(self, make_service, session_factory, tmp_path):
        labels_file = tmp_path / "labels.yaml"
        labels_file.write_text(
            "topic:\n"
            "  - label: Connector\n"
            "  - Lineage\n"
            "sentiment:\n"
            "  - label: Frustrated\n"
            "priority:\n"
            "  - label: Unknown label\n",
            encoding="utf-8",
        )
        service = make_service(stages=StageSettings(reference_labels_path=labels_file))

        summary = await service.seed_references()

        assert summary.seeded == 3
        assert [(f.category, f.label) for f in summary.failed] == [("priority", "Unknown label")]

        async with session_factory() as session:
            rows = (await session.execute(
                select(ReferenceEmbeddingModel).order_by(ReferenceEmbeddingModel.label)
            )).scalars().all()
        assert [(r.category, r.label) for r in rows] == [
            ("topic", "Connector"),
            ("sentiment", "Frustrated"),
            ("topic", "Lineage"),
        ]

    async def test_reseeding_replaces_by_label(self, session_factory, embedder):
        await seed_references(session_factory, embedder)
        embedder.vectors["Connector"] = [0.0, 1.0, 0.0, 0.0]
        await seed_references(session_factory, embedder)

        async with session_factory() as session:
            rows = (await session.execute(
                select(ReferenceEmbeddingModel).where(ReferenceEmbeddingModel.label == "Connector")
            )).scalars().all()
        assert len(rows) == 1
        assert rows[0].embedding == [0.0, 1.0, 0.0, 0.0]
