"""
Triage Infrastructure Repositories
===================================

SQLAlchemy implementations of the triage repository interfaces.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketflow.config import TicketStatus
from ticketflow.core import RepositoryException
from ticketflow.ingestion.infrastructure.models import DocumentChunkModel, DocumentModel
from ticketflow.triage.application.services import (
    IAIResponseRepository,
    IDocumentIndex,
    IReferenceRepository,
    ITicketRepository,
    TriageRepositories,
)
from ticketflow.triage.domain import (
    ClassificationResult,
    DocumentCandidate,
    ReferenceEmbedding,
    ResponseDraft,
    Ticket,
)
from ticketflow.triage.infrastructure.models import (
    AIResponseModel,
    ReferenceEmbeddingModel,
    TicketModel,
)


def parse_uuid(value: str) -> Optional[UUID]:
    """UUID from string, None when malformed."""
    try:
        return UUID(str(value))
    except ValueError:
        return None


def to_ticket(model: TicketModel) -> Ticket:
    return Ticket(
        id=str(model.id),
        ticket_number=model.ticket_number,
        subject=model.subject or "",
        description=model.description or "",
        resolution=model.resolution,
        status=model.status,
        topic_tags=list(model.topic_tags or []),
        sentiment=model.sentiment,
        ai_priority=model.ai_priority,
        classification_confidence=model.classification_confidence,
        embedding=model.embedding,
        classification_completed_at=model.classification_completed_at,
    )


class SQLAlchemyTicketRepository(ITicketRepository):
    """Ticket access through an AsyncSession owned by the caller."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, ticket_id: str) -> Optional[TicketModel]:
        ticket_uuid = parse_uuid(ticket_id)
        if ticket_uuid is None:
            return None
        return await self._session.get(TicketModel, ticket_uuid)

    async def get(self, ticket_id: str) -> Optional[Ticket]:
        model = await self._get_model(ticket_id)
        return to_ticket(model) if model else None

    async def list_embedded(self) -> List[Ticket]:
        stmt = select(TicketModel).where(TicketModel.embedding.is_not(None))
        result = await self._session.execute(stmt)
        return [to_ticket(model) for model in result.scalars().all() if model.embedding]

    async def save_classification(
        self,
        ticket_id: str,
        result: ClassificationResult,
        embedding: Optional[List[float]] = None
    ) -> None:
        model = await self._get_model(ticket_id)
        if model is None:
            raise RepositoryException(f"Ticket {ticket_id} not found")

        now = datetime.now(timezone.utc)
        model.topic_tags = result.topic_tags
        model.sentiment = result.sentiment_label
        model.ai_priority = result.priority_label
        model.classification_confidence = result.confidence
        model.status = TicketStatus.CLASSIFIED
        model.classification_completed_at = now
        model.updated_at = now
        if embedding is not None:
            model.embedding = embedding

        await self._session.flush()


class SQLAlchemyReferenceRepository(IReferenceRepository):
    """Reference embeddings keyed by (category, label)."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_all(self) -> List[ReferenceEmbedding]:
        stmt = select(ReferenceEmbeddingModel).order_by(
            ReferenceEmbeddingModel.category, ReferenceEmbeddingModel.label
        )
        result = await self._session.execute(stmt)
        return [
            ReferenceEmbedding(
                category=model.category,
                label=model.label,
                embedding=list(model.embedding),
                metadata=dict(model.ref_metadata or {}),
            )
            for model in result.scalars().all()
        ]

    async def upsert(self, reference: ReferenceEmbedding) -> None:
        stmt = select(ReferenceEmbeddingModel).where(
            ReferenceEmbeddingModel.category == reference.category,
            ReferenceEmbeddingModel.label == reference.label,
        )
        model = (await self._session.execute(stmt)).scalar_one_or_none()

        if model is None:
            model = ReferenceEmbeddingModel(
                id=uuid4(),
                category=reference.category,
                label=reference.label,
            )
            self._session.add(model)

        model.embedding = reference.embedding
        model.ref_metadata = reference.metadata
        await self._session.flush()


class SQLAlchemyDocumentIndex(IDocumentIndex):
    """Embedded document chunks joined with their document titles."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_embedded_chunks(self) -> List[DocumentCandidate]:
        stmt = (
            select(DocumentChunkModel, DocumentModel.title)
            .join(DocumentModel, DocumentModel.id == DocumentChunkModel.document_id)
            .where(DocumentChunkModel.embedding.is_not(None))
            .order_by(DocumentChunkModel.source_url, DocumentChunkModel.chunk_index)
        )
        result = await self._session.execute(stmt)
        return [
            DocumentCandidate(
                chunk_id=str(chunk.id),
                url=chunk.source_url,
                title=title or chunk.source_url,
                content=chunk.chunk_content,
                embedding=list(chunk.embedding),
                heading=chunk.section_heading,
            )
            for chunk, title in result.all()
            if chunk.embedding
        ]


class SQLAlchemyAIResponseRepository(IAIResponseRepository):
    """Append-only AI response storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, ticket_id: str, draft: ResponseDraft) -> str:
        ticket_uuid = parse_uuid(ticket_id)
        if ticket_uuid is None:
            raise RepositoryException(f"Invalid ticket ID: {ticket_id}")

        model = AIResponseModel(
            id=uuid4(),
            ticket_id=ticket_uuid,
            generated_response=draft.generated_response,
            confidence_score=draft.confidence_score,
            sources=[source.to_dict() for source in draft.sources],
            is_fallback=draft.is_fallback,
            model_used=draft.model_used,
        )
        self._session.add(model)
        await self._session.flush()
        return str(model.id)


def triage_repository_scope(session_factory: async_sessionmaker[AsyncSession]):
    """
    Build the transaction scope used by the triage services.

    All repositories yielded by one scope share a session that commits when
    the block exits cleanly.
    """
    @asynccontextmanager
    async def scope() -> AsyncIterator[TriageRepositories]:
        async with session_factory() as session:
            try:
                yield TriageRepositories(
                    tickets=SQLAlchemyTicketRepository(session),
                    references=SQLAlchemyReferenceRepository(session),
                    documents=SQLAlchemyDocumentIndex(session),
                    responses=SQLAlchemyAIResponseRepository(session),
                )
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise RepositoryException("Triage transaction failed", {"error": str(e)}) from e

    return scope
