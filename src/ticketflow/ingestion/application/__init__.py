"""
Ingestion Application Layer
===========================

Services and DTOs for documentation ingestion.
"""

from ticketflow.ingestion.application.dto import CrawlSummary, ProcessingSummary
from ticketflow.ingestion.application.services import (
    DocumentProcessor,
    ICrawler,
    IDocumentRepository,
    IngestionService,
)

__all__ = [
    "CrawlSummary",
    "ProcessingSummary",
    "DocumentProcessor",
    "ICrawler",
    "IDocumentRepository",
    "IngestionService",
]
