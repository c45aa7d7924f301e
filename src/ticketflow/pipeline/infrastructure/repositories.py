"""
Pipeline Infrastructure Repositories
=====================================

Row access for the embedding stage. Each call runs in its own short
transaction.
"""

from datetime import datetime, timezone
from typing import List, Optional, Type, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketflow.config import JobTable, TicketStatus
from ticketflow.core import PermanentJobError, RepositoryException
from ticketflow.ingestion.infrastructure.models import DocumentChunkModel
from ticketflow.pipeline.application.handlers import IEmbeddingTargetRepository
from ticketflow.pipeline.domain import CHUNK_CONTENT, TICKET_CONTENT
from ticketflow.triage.domain import Ticket
from ticketflow.triage.infrastructure.models import TicketModel
from ticketflow.triage.infrastructure.repositories import parse_uuid

TargetModel = Union[TicketModel, DocumentChunkModel]

_MODELS = {
    JobTable.TICKETS: TicketModel,
    JobTable.DOCUMENT_CHUNKS: DocumentChunkModel,
}


def ticket_content(model: TicketModel) -> str:
    return Ticket(id=str(model.id), subject=model.subject or "", description=model.description or "").full_text


def chunk_content(model: DocumentChunkModel) -> str:
    return model.chunk_content or ""


_CONTENT_FUNCTIONS = {
    TICKET_CONTENT: ticket_content,
    CHUNK_CONTENT: chunk_content,
}


class SQLAlchemyEmbeddingTargetRepository(IEmbeddingTargetRepository):
    """Tickets and document chunks as embedding targets."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _model_for(table: str) -> Type[TargetModel]:
        model = _MODELS.get(table)
        if model is None:
            raise PermanentJobError(f"Unknown embedding table: {table}", {"table": table})
        return model

    async def _load(self, session: AsyncSession, table: str, row_id: str) -> Optional[TargetModel]:
        row_uuid = parse_uuid(row_id)
        if row_uuid is None:
            return None
        return await session.get(self._model_for(table), row_uuid)

    async def get_content(self, table: str, row_id: str, content_function: str) -> Optional[str]:
        extract = _CONTENT_FUNCTIONS.get(content_function)
        if extract is None:
            raise PermanentJobError(
                f"Unknown content function: {content_function}",
                {"content_function": content_function}
            )

        try:
            async with self._session_factory() as session:
                model = await self._load(session, table, row_id)
                return extract(model) if model is not None else None
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load {table} row {row_id}", {"error": str(e)}) from e

    async def store_embedding(self, table: str, row_id: str, embedding: List[float]) -> None:
        try:
            async with self._session_factory() as session:
                model = await self._load(session, table, row_id)
                if model is None:
                    raise PermanentJobError(f"{table} row {row_id} disappeared", {"table": table, "id": row_id})
                model.embedding = embedding
                if isinstance(model, TicketModel):
                    model.updated_at = datetime.now(timezone.utc)
                await session.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to store embedding for {table} row {row_id}", {"error": str(e)}) from e

    async def mark_ticket_processing(self, ticket_id: str) -> None:
        try:
            async with self._session_factory() as session:
                model = await self._load(session, JobTable.TICKETS, ticket_id)
                if model is None:
                    return
                model.status = TicketStatus.PROCESSING
                model.updated_at = datetime.now(timezone.utc)
                await session.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to update ticket {ticket_id}", {"error": str(e)}) from e

    async def ticket_exists(self, ticket_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                return await self._load(session, JobTable.TICKETS, ticket_id) is not None
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load ticket {ticket_id}", {"error": str(e)}) from e
