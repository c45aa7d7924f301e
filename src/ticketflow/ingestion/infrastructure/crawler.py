"""
Documentation Crawler
=====================

Discovers and scrapes documentation pages over HTTP.

Discovery tries the sitemaps at each seed's origin first and falls back to
breadth-first link discovery: an explicit frontier plus a visited set,
fetched in small concurrent waves with a pause between waves. Scraping
fetches prioritized URLs in concurrent batches and extracts title, headings,
breadcrumbs, text and links with BeautifulSoup.

A failing page is logged and skipped; it never aborts the crawl.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from ticketflow.ingestion.application.services import ICrawler
from ticketflow.ingestion.domain import CrawlPolicy, ScrapedDocument
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

_LOC_RE = re.compile(r"<loc>\s*(.*?)\s*</loc>", re.IGNORECASE | re.DOTALL)
_LINK_ATTR_RE = re.compile(
    r"""(?<![\w-])(?:href|to|pathname|data-href)\s*=\s*["']([^"']+)["']""",
    re.IGNORECASE,
)
_SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml")


@dataclass
class CrawlerConfig:
    """Tunables for discovery and scraping."""
    seed_urls: List[str] = field(
        default_factory=lambda: ["https://docs.atlan.com/", "https://developer.atlan.com/"]
    )
    max_pages: int = 200
    batch_size: int = 5
    discovery_batch_size: int = 8
    max_depth: int = 3
    batch_delay_seconds: float = 1.0
    discovery_delay_seconds: float = 0.2
    timeout_seconds: float = 15.0
    user_agent: str = "AtlanDocsBot/1.0 (Documentation Scraper)"

    @classmethod
    def from_settings(cls, settings: Any) -> "CrawlerConfig":
        return cls(
            seed_urls=list(settings.crawl_seed_urls),
            max_pages=settings.crawl_max_pages,
            batch_size=settings.crawl_batch_size,
            discovery_batch_size=settings.crawl_discovery_batch_size,
            max_depth=settings.crawl_max_depth,
            batch_delay_seconds=settings.crawl_batch_delay_seconds,
            discovery_delay_seconds=settings.crawl_discovery_delay_seconds,
            timeout_seconds=settings.crawl_timeout_seconds,
            user_agent=settings.crawl_user_agent,
        )


def _batches(items: Sequence[str], size: int) -> List[Sequence[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class DocsCrawler(ICrawler):
    """
    Async documentation crawler.

    Args:
        config: Crawl tunables
        policy: URL admission and page-value rules
        http_client: Shared client; one is created (and owned) when omitted
        sleep: Awaitable used for politeness delays
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        policy: Optional[CrawlPolicy] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or CrawlerConfig()
        self.policy = policy or CrawlPolicy()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            follow_redirects=True,
        )
        self._sleep = sleep

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "DocsCrawler":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ========== Entry point ==========

    async def crawl(
        self,
        seed_urls: Optional[Sequence[str]] = None,
        max_pages: Optional[int] = None
    ) -> List[ScrapedDocument]:
        """Discover URLs from the seeds, then scrape the best of them."""
        seeds = list(seed_urls or self.config.seed_urls)
        limit = max_pages or self.config.max_pages

        urls = await self.discover_urls(seeds, max_pages=limit)
        documents = await self.scrape_urls(urls, limit=limit)

        logger.info(
            "Crawl finished",
            extra={"discovered": len(urls), "scraped": len(documents)}
        )
        return documents

    # ========== Discovery ==========

    async def discover_urls(
        self,
        seed_urls: Sequence[str],
        max_pages: Optional[int] = None
    ) -> List[str]:
        """
        Collect candidate page URLs, seeds first.

        Recursive discovery only runs when the sitemaps yielded nothing
        beyond the seeds.
        """
        found: Dict[str, None] = dict.fromkeys(seed_urls)

        for seed in seed_urls:
            for url in await self.find_sitemap_urls(seed):
                found.setdefault(url)

        if len(found) <= len(seed_urls):
            logger.info("No sitemap URLs found, using recursive discovery")
            for url in await self.recursive_discovery(seed_urls, max_pages=max_pages):
                found.setdefault(url)

        logger.info("URL discovery complete", extra={"total_urls": len(found)})
        return list(found)

    async def find_sitemap_urls(self, base_url: str) -> List[str]:
        """Admitted <loc> entries from the sitemaps at base_url's origin."""
        parsed = urlparse(base_url)
        origin = f"{parsed.scheme}://{parsed.netloc}"

        urls: List[str] = []
        for path in _SITEMAP_PATHS:
            body = await self._fetch_text(origin + path)
            if body is None:
                continue
            urls.extend(self.parse_sitemap(body))

        logger.debug(
            "Sitemap discovery",
            extra={"origin": origin, "urls": len(urls)}
        )
        return urls

    def parse_sitemap(self, xml_content: str) -> List[str]:
        """Extract admitted URLs from sitemap XML."""
        return [
            loc for loc in _LOC_RE.findall(xml_content)
            if self.policy.is_valid_doc_url(loc)
        ]

    async def recursive_discovery(
        self,
        seed_urls: Sequence[str],
        max_pages: Optional[int] = None
    ) -> List[str]:
        """
        Breadth-first link discovery from the seeds.

        Each depth level's frontier is fetched in waves of
        discovery_batch_size concurrent requests. Links found at the last
        depth level are recorded but not followed.
        """
        cap = max_pages or self.config.max_pages
        discovered: Dict[str, None] = {}
        visited: set = set()
        frontier = list(dict.fromkeys(seed_urls))
        depth = 0

        while frontier and depth < self.config.max_depth and len(discovered) < cap:
            next_frontier: List[str] = []
            waves = _batches(frontier, self.config.discovery_batch_size)

            for wave_number, wave in enumerate(waves):
                wave = [url for url in wave if url not in visited]
                visited.update(wave)

                results = await asyncio.gather(*(self.extract_links_from_page(url) for url in wave))

                for url, links in zip(wave, results):
                    if len(discovered) < cap:
                        discovered.setdefault(url)
                    for link in links:
                        if link in discovered or len(discovered) >= cap:
                            continue
                        discovered[link] = None
                        if depth < self.config.max_depth - 1:
                            next_frontier.append(link)

                if len(discovered) >= cap:
                    break
                if wave_number < len(waves) - 1:
                    await self._sleep(self.config.discovery_delay_seconds)

            depth += 1
            frontier = [url for url in dict.fromkeys(next_frontier) if url not in visited]
            logger.info(
                "Discovery depth complete",
                extra={"depth": depth, "discovered": len(discovered)}
            )

            if frontier:
                await self._sleep(self.config.discovery_delay_seconds)

        return list(discovered)

    async def extract_links_from_page(self, url: str) -> List[str]:
        """Admitted links on the page at url; empty when it cannot be fetched."""
        html = await self._fetch_text(url)
        if html is None:
            return []
        return self.extract_links(html, url)

    def extract_links(self, html: str, page_url: str) -> List[str]:
        """
        Find link-like attributes in raw HTML.

        Matches href, to, pathname and data-href attribute values so client
        side router links are found too. Results are absolute, normalized,
        admitted by the policy and de-duplicated in document order.
        """
        links: Dict[str, None] = {}
        for href in _LINK_ATTR_RE.findall(html):
            url = self.policy.normalize_url(href, page_url)
            if url:
                links.setdefault(url)
        return list(links)

    # ========== Scraping ==========

    async def scrape_urls(
        self,
        urls: Sequence[str],
        limit: Optional[int] = None
    ) -> List[ScrapedDocument]:
        """
        Scrape the highest-priority URLs, keeping only valuable pages.

        Args:
            urls: Candidate URLs
            limit: Page cap, config max_pages when None

        Returns:
            Valuable documents in priority order
        """
        cap = limit or self.config.max_pages
        targets = self.policy.prioritize_urls(dict.fromkeys(urls))[:cap]
        batches = _batches(targets, self.config.batch_size)

        documents: List[ScrapedDocument] = []
        for batch_number, batch in enumerate(batches):
            results = await asyncio.gather(*(self.scrape_page(url) for url in batch))

            for doc in results:
                if doc is None:
                    continue
                if self.policy.is_valuable_content(doc):
                    documents.append(doc)
                else:
                    logger.debug("Skipped low-value page", extra={"url": doc.url, "title": doc.title})

            logger.info(
                "Scrape batch complete",
                extra={"batch": batch_number + 1, "batches": len(batches), "documents": len(documents)}
            )
            if batch_number < len(batches) - 1:
                await self._sleep(self.config.batch_delay_seconds)

        return documents

    async def scrape_page(self, url: str) -> Optional[ScrapedDocument]:
        """Fetch and parse one page; None when it cannot be fetched or parsed."""
        html = await self._fetch_text(url)
        if html is None:
            return None

        try:
            return self.parse_page(html, url)
        except Exception as e:
            logger.warning(
                "Failed to parse page",
                extra={"url": url, "error_type": type(e).__name__, "error": str(e)}
            )
            return None

    def parse_page(self, html: str, url: str) -> ScrapedDocument:
        """Extract a ScrapedDocument from page HTML."""
        links = self.extract_links(html, url)
        soup = BeautifulSoup(html, "html.parser")

        for element in soup(["script", "style", "noscript"]):
            element.decompose()

        title = soup.title.get_text(strip=True) if soup.title else ""

        headings = [
            text for text in (
                h.get_text(" ", strip=True)
                for h in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])
            )
            if text
        ]

        breadcrumbs = self._extract_breadcrumbs(soup)

        modified = soup.find("meta", attrs={"property": "article:modified_time"})
        last_modified = modified.get("content") if modified else None

        if soup.title:
            soup.title.decompose()
        body = soup.body or soup
        content = " ".join(body.get_text(" ").split())

        return ScrapedDocument(
            url=url,
            title=title,
            content=content,
            headings=headings,
            breadcrumbs=breadcrumbs,
            section=breadcrumbs[-2] if len(breadcrumbs) > 1 else "",
            links=links,
            last_modified=last_modified,
        )

    @staticmethod
    def _extract_breadcrumbs(soup: BeautifulSoup) -> List[str]:
        """Texts of breadcrumb items, in page order, de-duplicated."""
        def is_breadcrumb(classes) -> bool:
            return bool(classes) and "breadcrumb" in classes.lower()

        crumbs: Dict[str, None] = {}
        for element in soup.find_all(class_=is_breadcrumb):
            # Innermost breadcrumb elements only; containers repeat their items
            if element.find(class_=is_breadcrumb):
                continue
            anchors = element.find_all("a")
            texts = [a.get_text(" ", strip=True) for a in anchors] if anchors else [element.get_text(" ", strip=True)]
            for text in texts:
                if text:
                    crumbs.setdefault(text)
        return list(crumbs)

    # ========== HTTP ==========

    async def _fetch_text(self, url: str) -> Optional[str]:
        try:
            response = await self._http.get(url, headers={"User-Agent": self.config.user_agent})
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(
                "Fetch failed",
                extra={"url": url, "error_type": type(e).__name__, "error": str(e)}
            )
            return None

        if response.status_code != 200:
            logger.info("Non-200 response", extra={"url": url, "status_code": response.status_code})
            return None
        return response.text
