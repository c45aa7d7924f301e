"""
Ingestion Infrastructure Repositories
=====================================

SQLAlchemy implementations of the document and chunk repositories.
"""

from datetime import datetime, timezone
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketflow.core import RepositoryException
from ticketflow.ingestion.application.services import IDocumentRepository
from ticketflow.ingestion.domain import ChunkDraft, ScrapedDocument, StoredDocument
from ticketflow.ingestion.infrastructure.models import DocumentChunkModel, DocumentModel


class SQLAlchemyDocumentRepository(IDocumentRepository):
    """
    Documents and their chunks, persisted through one AsyncSession.

    The caller owns the transaction; methods only flush.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_url(self, url: str) -> Optional[StoredDocument]:
        """Get the stored identity and hash for url."""
        stmt = select(DocumentModel.id, DocumentModel.url, DocumentModel.content_hash).where(
            DocumentModel.url == url
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return StoredDocument(id=str(row.id), url=row.url, content_hash=row.content_hash)

    async def upsert(self, doc: ScrapedDocument, content_hash: str) -> StoredDocument:
        """Insert or update the document row keyed by URL."""
        result = await self._session.execute(
            select(DocumentModel).where(DocumentModel.url == doc.url)
        )
        model = result.scalar_one_or_none()
        now = datetime.now(timezone.utc)

        if model is None:
            model = DocumentModel(id=uuid4(), url=doc.url, scraped_at=now)
            self._session.add(model)
        else:
            model.updated_at = now

        model.title = doc.title
        model.content = doc.content
        model.content_hash = content_hash
        model.doc_metadata = doc.metadata
        model.scraped_at = now

        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to save document {doc.url}", {"error": str(e)}) from e

        return StoredDocument(id=str(model.id), url=model.url, content_hash=model.content_hash)

    async def delete_chunks(self, document_id: str) -> int:
        """Remove every chunk of a document. Returns the number deleted."""
        result = await self._session.execute(
            delete(DocumentChunkModel).where(DocumentChunkModel.document_id == UUID(document_id))
        )
        return result.rowcount or 0

    async def add_chunks(
        self,
        document_id: str,
        source_url: str,
        chunks: List[ChunkDraft]
    ) -> List[str]:
        """Insert chunks without embeddings. Returns the new chunk ids in order."""
        models = [
            DocumentChunkModel(
                id=uuid4(),
                document_id=UUID(document_id),
                chunk_content=chunk.content,
                chunk_index=chunk.index,
                section_heading=chunk.heading,
                source_url=source_url,
                chunk_metadata={
                    "word_count": chunk.word_count,
                    "overlap_words": chunk.overlap_words,
                },
            )
            for chunk in chunks
        ]
        self._session.add_all(models)

        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(
                f"Failed to store chunks for {source_url}",
                {"document_id": document_id, "error": str(e)}
            ) from e

        return [str(model.id) for model in models]

    async def invalidate_hash(self, url: str) -> None:
        """Blank the stored hash so the next crawl reprocesses url."""
        await self._session.execute(
            update(DocumentModel).where(DocumentModel.url == url).values(content_hash="")
        )


def document_repository_scope(session_factory: async_sessionmaker[AsyncSession]):
    """
    Build the per-document transaction scope used by DocumentProcessor.

    Database errors surface as RepositoryException so one bad page does not
    abort a whole processing run.
    """
    @asynccontextmanager
    async def scope() -> AsyncIterator[SQLAlchemyDocumentRepository]:
        async with session_factory() as session:
            try:
                yield SQLAlchemyDocumentRepository(session)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise RepositoryException("Document transaction failed", {"error": str(e)}) from e

    return scope
