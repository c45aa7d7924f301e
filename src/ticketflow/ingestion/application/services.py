"""
Ingestion Application Services
==============================

DocumentProcessor turns scraped pages into stored documents and chunks and
schedules their embedding. IngestionService runs a full crawl through it.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Callable, List, Optional, Sequence

from ticketflow.core import ApplicationException
from ticketflow.infrastructure.queue import IJobQueue
from ticketflow.ingestion.application.dto import CrawlSummary, ProcessingSummary
from ticketflow.ingestion.domain import (
    ChunkDraft,
    DocumentChunker,
    ScrapedDocument,
    StoredDocument,
    content_hash,
)
from ticketflow.pipeline.domain import EmbeddingJob
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IDocumentRepository(ABC):
    """Interface for document and chunk persistence."""

    @abstractmethod
    async def get_by_url(self, url: str) -> Optional[StoredDocument]:
        """Get the stored identity and hash for url."""

    @abstractmethod
    async def upsert(self, doc: ScrapedDocument, content_hash: str) -> StoredDocument:
        """Insert or update the document keyed by URL."""

    @abstractmethod
    async def delete_chunks(self, document_id: str) -> int:
        """Delete every chunk of a document."""

    @abstractmethod
    async def add_chunks(
        self,
        document_id: str,
        source_url: str,
        chunks: List[ChunkDraft]
    ) -> List[str]:
        """Insert chunks and return their ids."""

    @abstractmethod
    async def invalidate_hash(self, url: str) -> None:
        """Forget the stored hash so the next run reprocesses the page."""


RepositoryScope = Callable[[], AbstractAsyncContextManager[IDocumentRepository]]


class ICrawler(ABC):
    """Interface for the documentation crawler."""

    @abstractmethod
    async def crawl(
        self,
        seed_urls: Optional[Sequence[str]] = None,
        max_pages: Optional[int] = None
    ) -> List[ScrapedDocument]:
        """Discover and scrape documentation pages."""


# ========== Application Services ==========

class DocumentProcessor:
    """
    Stores scraped documents and their chunks, skipping unchanged pages.

    Each document is handled in its own transaction: upsert the document,
    replace its chunks, commit, then enqueue one embedding job per chunk.
    A failing document is logged and counted; the batch carries on.

    Args:
        repository_scope: Opens a transaction and yields a repository;
            commits when the block exits cleanly
        queue: Job queue receiving embedding jobs
        chunker: Splits document text
        embedding_queue: Name of the embedding queue
    """

    def __init__(
        self,
        repository_scope: RepositoryScope,
        queue: IJobQueue,
        chunker: DocumentChunker,
        embedding_queue: str = "embedding_jobs"
    ):
        self._scope = repository_scope
        self._queue = queue
        self._chunker = chunker
        self._embedding_queue = embedding_queue

    async def process_documents(self, documents: Sequence[ScrapedDocument]) -> ProcessingSummary:
        """
        Process a batch of scraped documents.

        Returns:
            ProcessingSummary with processed/skipped/failed counts
        """
        summary = ProcessingSummary()

        for doc in documents:
            try:
                created = await self.process_document(doc)
            except ApplicationException as e:
                summary.documents_failed += 1
                summary.failed_urls.append(doc.url)
                logger.error(
                    "Document processing failed",
                    extra={"url": doc.url, "error_type": type(e).__name__, "error": e.message}
                )
                continue

            if created is None:
                summary.documents_skipped += 1
            else:
                summary.documents_processed += 1
                summary.chunks_created += created

        logger.info("Document processing finished", extra=summary.model_dump(exclude={"failed_urls"}))
        return summary

    async def process_document(self, doc: ScrapedDocument) -> Optional[int]:
        """
        Store one document.

        Returns:
            Number of chunks created, or None when the content is unchanged
        """
        digest = content_hash(doc.content)

        async with self._scope() as repo:
            existing = await repo.get_by_url(doc.url)
            if existing is not None and existing.content_hash == digest:
                logger.debug("Skipping unchanged document", extra={"url": doc.url})
                return None

            stored = await repo.upsert(doc, digest)
            if existing is not None:
                removed = await repo.delete_chunks(stored.id)
                logger.debug("Removed stale chunks", extra={"url": doc.url, "chunks": removed})

            drafts = self._chunker.chunk(doc.content, doc.headings)
            chunk_ids = await repo.add_chunks(stored.id, doc.url, drafts)

        try:
            for chunk_id in chunk_ids:
                await self._queue.send(self._embedding_queue, EmbeddingJob.for_chunk(chunk_id).to_payload())
        except ApplicationException:
            # Chunks are committed; make the next run redo the page so they get jobs
            async with self._scope() as repo:
                await repo.invalidate_hash(doc.url)
            raise

        logger.info(
            "Document stored",
            extra={"url": doc.url, "chunks": len(chunk_ids), "updated": existing is not None}
        )
        return len(chunk_ids)


class IngestionService:
    """Crawl documentation and hand the pages to the processor."""

    def __init__(self, crawler: ICrawler, processor: DocumentProcessor):
        self._crawler = crawler
        self._processor = processor

    async def run(
        self,
        seed_urls: Optional[Sequence[str]] = None,
        max_pages: Optional[int] = None
    ) -> CrawlSummary:
        documents = await self._crawler.crawl(seed_urls, max_pages)
        processing = await self._processor.process_documents(documents)
        return CrawlSummary(documents_scraped=len(documents), processing=processing)
