"""
Ingestion Domain Entities
=========================

Plain records passed between the crawler, the chunker and the processor.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ScrapedDocument:
    """
    One documentation page as extracted by the crawler.

    ``links`` holds the absolute, policy-admitted URLs found on the page.
    """
    url: str
    title: str
    content: str
    headings: List[str] = field(default_factory=list)
    breadcrumbs: List[str] = field(default_factory=list)
    section: str = ""
    links: List[str] = field(default_factory=list)
    last_modified: Optional[str] = None

    @property
    def metadata(self) -> dict:
        """Metadata stored alongside the document row."""
        data = {
            "headings": self.headings,
            "breadcrumbs": self.breadcrumbs,
            "section": self.section,
        }
        if self.last_modified:
            data["last_modified"] = self.last_modified
        return data


@dataclass
class ChunkDraft:
    """A chunk produced by DocumentChunker before it is persisted."""
    content: str
    index: int
    heading: Optional[str] = None
    overlap_words: int = 0

    @property
    def word_count(self) -> int:
        return len(self.content.split())


@dataclass
class StoredDocument:
    """Identity and change-detection data of a persisted document."""
    id: str
    url: str
    content_hash: str
