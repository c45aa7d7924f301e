"""
Ingestion Application DTOs
==========================

Pydantic summaries returned by the ingestion services.
"""

from typing import List

from pydantic import BaseModel, Field


class ProcessingSummary(BaseModel):
    """Outcome of processing one batch of scraped documents."""
    documents_processed: int = 0
    documents_skipped: int = 0
    documents_failed: int = 0
    chunks_created: int = 0
    failed_urls: List[str] = Field(default_factory=list)


class CrawlSummary(BaseModel):
    """Outcome of a crawl-and-process run."""
    documents_scraped: int
    processing: ProcessingSummary
