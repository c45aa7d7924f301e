"""
Ingestion Value Objects
=======================

Pure, stateless logic for the ingestion context:

- content_hash: change detector for document text
- CrawlPolicy: URL admission, URL priority and page-value rules
- DocumentChunker: overlapping fixed-size chunks tagged with headings

Nothing in here performs I/O.
"""

import hashlib
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse, urlunparse

from ticketflow.ingestion.domain.entities import ChunkDraft, ScrapedDocument


def content_hash(content: str) -> str:
    """SHA-256 hex digest (64 chars) of the UTF-8 encoded content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


# ========== Crawl policy ==========

DEFAULT_ALLOWED_PATHS: Dict[str, Tuple[str, ...]] = {
    "docs.atlan.com": (
        "/guide/", "/concepts/", "/setup/", "/integrations/",
        "/getting-started/", "/overview/", "/tutorial/", "/how-to/",
        "/best-practices/", "/glossary/", "/lineage/", "/connector/",
        "/sso/", "/authentication/", "/api/", "/sdk/", "/apps/",
    ),
    "developer.atlan.com": (
        "/api/", "/sdk/", "/reference/", "/authentication/",
        "/getting-started/", "/guide/", "/tutorial/", "/examples/",
        "/webhook/", "/automation/",
    ),
}

DEFAULT_BLOCKED_PATHS: Tuple[str, ...] = (
    "/changelog/", "/release-notes/", "/blog/", "/community/",
    "/download/", "/legal/", "/privacy/", "/terms/", "/support/",
    "/contact/", "/about/", "/careers/", "/pricing/",
    ".pdf", ".zip", ".jpg", ".png", ".gif", "/images/", "/assets/", ".xml",
)

HIGH_PRIORITY_KEYWORDS: Tuple[str, ...] = (
    "getting-started", "overview", "introduction", "quickstart", "quick-start",
    "api", "sdk", "authentication", "guide", "tutorial", "set-up", "setup",
)

MEDIUM_PRIORITY_KEYWORDS: Tuple[str, ...] = (
    "how-to", "how-tos", "best-practices", "concepts", "integration",
    "connector", "lineage", "glossary", "apps",
)

_SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")

MIN_CONTENT_LENGTH = 200
MAX_HEADING_RATIO = 0.3
MIN_HUB_LINKS = 5


class CrawlPolicy:
    """
    Static allow/block tables and the rules derived from them.

    The defaults cover docs.atlan.com and developer.atlan.com; other
    deployments pass their own tables.
    """

    def __init__(
        self,
        allowed_paths: Optional[Dict[str, Sequence[str]]] = None,
        blocked_paths: Optional[Sequence[str]] = None,
    ):
        self.allowed_paths = {
            host: tuple(paths)
            for host, paths in (allowed_paths or DEFAULT_ALLOWED_PATHS).items()
        }
        self.blocked_paths = tuple(blocked_paths or DEFAULT_BLOCKED_PATHS)

    def is_valid_doc_url(self, url: str) -> bool:
        """
        Admission predicate for crawlable documentation URLs.

        Host must be allow-listed and the lower-cased path must not contain a
        blocked substring. It must then contain one of the host's allowed
        paths, be the root, or have at most one non-empty segment.
        """
        try:
            parsed = urlparse(url)
        except ValueError:
            return False

        if parsed.scheme not in ("http", "https"):
            return False

        domain_paths = self.allowed_paths.get(parsed.hostname or "")
        if domain_paths is None:
            return False

        path = (parsed.path or "/").lower()
        if any(blocked in path for blocked in self.blocked_paths):
            return False

        return (
            any(allowed in path for allowed in domain_paths)
            or path == "/"
            or len([part for part in path.split("/") if part]) <= 1
        )

    @staticmethod
    def url_priority(url: str) -> int:
        """Score a URL; higher scores are scraped first."""
        path = (urlparse(url).path or "/").lower()
        score = 0

        if any(keyword in path for keyword in HIGH_PRIORITY_KEYWORDS):
            score += 10
        if any(keyword in path for keyword in MEDIUM_PRIORITY_KEYWORDS):
            score += 5

        # Shorter paths tend to be overview pages
        score += max(0, 10 - len(path.split("/")))

        if path in ("/", "/index.html"):
            score += 15

        return score

    def prioritize_urls(self, urls: Iterable[str]) -> List[str]:
        """Sort by descending priority; equal scores keep input order."""
        return sorted(urls, key=self.url_priority, reverse=True)

    def normalize_url(self, href: str, base_url: str) -> Optional[str]:
        """
        Resolve an extracted href against the page it was found on.

        Returns the absolute URL without fragment and without a trailing
        slash (except for the root), or None when the href is not a page
        link or is not admitted by the policy.
        """
        href = href.strip()
        if not href or href.startswith("#") or href == "/":
            return None
        if href.lower().startswith(_SKIPPED_SCHEMES):
            return None

        try:
            parsed = urlparse(urljoin(base_url, href))
        except ValueError:
            return None

        path = parsed.path or "/"
        if path != "/" and path.endswith("/"):
            path = path.rstrip("/") or "/"

        url = urlunparse((parsed.scheme, parsed.netloc, path, parsed.params, parsed.query, ""))
        return url if self.is_valid_doc_url(url) else None

    @staticmethod
    def is_valuable_content(doc: ScrapedDocument) -> bool:
        """
        Reject error pages, stubs and navigation-only pages.

        A page whose headings make up more than 30% of its words is kept only
        when it looks like a hub: at least five links and some real content.
        """
        title = doc.title.lower()
        if "404" in title or "error" in title or "not found" in title:
            return False
        if len(doc.content) < MIN_CONTENT_LENGTH:
            return False

        content_words = len(doc.content.split())
        heading_words = len(" ".join(doc.headings).split())

        if content_words > 0 and heading_words / content_words > MAX_HEADING_RATIO:
            return len(doc.links) >= MIN_HUB_LINKS and len(doc.content) > MIN_CONTENT_LENGTH / 2

        return True


# ========== Chunking ==========

_WORD_RE = re.compile(r"\S+")


class DocumentChunker:
    """
    Splits text into overlapping chunks of at most chunk_size characters.

    Each chunk after the first starts with the longest tail of the previous
    chunk that fits in chunk_overlap characters; ``overlap_words`` records how
    many leading words were carried over, so dropping them from every chunk
    and concatenating gives back the source word sequence. A single word
    longer than chunk_size becomes its own oversized chunk.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def chunk(self, content: str, headings: Optional[Sequence[str]] = None) -> List[ChunkDraft]:
        """
        Chunk content, tagging each chunk with the heading active at its last word.

        Args:
            content: Document text
            headings: Heading strings as extracted from the page

        Returns:
            Chunks with contiguous indices starting at 0
        """
        matches = list(_WORD_RE.finditer(content or ""))
        if not matches:
            return []

        heading_positions = self._locate_headings(content, headings or [])
        chunks: List[ChunkDraft] = []

        buffer: List[str] = []
        length = 0
        carried = 0
        heading: Optional[str] = None
        chunk_heading: Optional[str] = None
        next_heading = 0

        for match in matches:
            word = match.group()

            while next_heading < len(heading_positions) and heading_positions[next_heading][0] <= match.start():
                heading = heading_positions[next_heading][1]
                next_heading += 1

            if buffer and length + 1 + len(word) > self.chunk_size:
                if len(buffer) > carried:
                    chunks.append(ChunkDraft(
                        content=" ".join(buffer),
                        index=len(chunks),
                        heading=chunk_heading,
                        overlap_words=carried,
                    ))
                    buffer = self._overlap_tail(buffer)
                    carried = len(buffer)
                    length = len(" ".join(buffer))

                # Carried-over words give way when the next word would not fit
                while buffer and length + 1 + len(word) > self.chunk_size:
                    buffer.pop(0)
                    carried -= 1
                    length = len(" ".join(buffer))

            length = length + 1 + len(word) if buffer else len(word)
            buffer.append(word)
            chunk_heading = heading

        if len(buffer) > carried:
            chunks.append(ChunkDraft(
                content=" ".join(buffer),
                index=len(chunks),
                heading=chunk_heading,
                overlap_words=carried,
            ))

        return chunks

    def _overlap_tail(self, words: List[str]) -> List[str]:
        """Longest suffix of words whose joined length is <= chunk_overlap."""
        tail: List[str] = []
        length = -1
        for word in reversed(words):
            if length + 1 + len(word) > self.chunk_overlap:
                break
            tail.insert(0, word)
            length += 1 + len(word)
        return tail

    @staticmethod
    def _locate_headings(content: str, headings: Sequence[str]) -> List[Tuple[int, str]]:
        positions = []
        for text in headings:
            text = (text or "").strip()
            if not text:
                continue
            index = content.find(text)
            if index != -1:
                positions.append((index, text))
        positions.sort(key=lambda item: item[0])
        return positions
