"""
Ingestion Infrastructure Layer
==============================

Crawler, ORM models and repositories for the ingestion context.
"""

from ticketflow.ingestion.infrastructure.crawler import CrawlerConfig, DocsCrawler
from ticketflow.ingestion.infrastructure.models import DocumentChunkModel, DocumentModel
from ticketflow.ingestion.infrastructure.repositories import (
    SQLAlchemyDocumentRepository,
    document_repository_scope,
)

__all__ = [
    "CrawlerConfig",
    "DocsCrawler",
    "DocumentChunkModel",
    "DocumentModel",
    "SQLAlchemyDocumentRepository",
    "document_repository_scope",
]
