"""
Ingestion Domain Layer
======================

Framework-agnostic records and rules for documentation ingestion.
"""

from ticketflow.ingestion.domain.entities import ChunkDraft, ScrapedDocument, StoredDocument
from ticketflow.ingestion.domain.value_objects import (
    CrawlPolicy,
    DocumentChunker,
    content_hash,
)

__all__ = [
    "ChunkDraft",
    "ScrapedDocument",
    "StoredDocument",
    "CrawlPolicy",
    "DocumentChunker",
    "content_hash",
]
