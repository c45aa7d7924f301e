"""Tests for CrawlPolicy URL admission, priority and page value."""

import pytest

from ticketflow.ingestion.domain import CrawlPolicy, ScrapedDocument


@pytest.fixture
def policy() -> CrawlPolicy:
    return CrawlPolicy()


class TestIsValidDocUrl:

    @pytest.mark.parametrize("url", [
        "https://docs.atlan.com/",
        "https://docs.atlan.com/guide/setup",
        "https://docs.atlan.com/Guide/Setup",
        "https://docs.atlan.com/faq",
        "https://developer.atlan.com/sdk/python",
        "http://docs.atlan.com/apps/connectors/snowflake",
    ])
    def test_admitted(self, policy, url):
        assert policy.is_valid_doc_url(url) is True

    @pytest.mark.parametrize("url", [
        "https://example.com/guide/setup",
        "ftp://docs.atlan.com/guide/setup",
        "https://docs.atlan.com/blog/launch",
        "https://docs.atlan.com/guide/sitemap.xml",
        "https://docs.atlan.com/guide/diagram.png",
        "https://docs.atlan.com/random/deep/path",
        "not a url",
    ])
    def test_rejected(self, policy, url):
        assert policy.is_valid_doc_url(url) is False

    def test_custom_tables(self):
        policy = CrawlPolicy(allowed_paths={"docs.example.com": ["/manual/"]}, blocked_paths=["/old/"])
        assert policy.is_valid_doc_url("https://docs.example.com/manual/intro")
        assert not policy.is_valid_doc_url("https://docs.example.com/manual/old/intro")
        assert not policy.is_valid_doc_url("https://docs.atlan.com/guide/setup")


class TestUrlPriority:

    def test_root_scores_highest(self):
        assert CrawlPolicy.url_priority("https://docs.atlan.com/") == 23

    def test_high_priority_keyword(self):
        assert CrawlPolicy.url_priority("https://docs.atlan.com/getting-started/quickstart") == 17

    def test_high_and_medium_keywords_add_up(self):
        # +10 guide, +5 lineage, +6 depth
        assert CrawlPolicy.url_priority("https://docs.atlan.com/guide/lineage/column") == 21

    def test_deep_paths_get_no_depth_bonus(self):
        assert CrawlPolicy.url_priority("https://docs.atlan.com/a/b/c/d/e/f/g/h/i") == 0

    def test_prioritize_is_stable_for_ties(self, policy):
        urls = [
            "https://docs.atlan.com/x/one",
            "https://docs.atlan.com/x/two",
            "https://docs.atlan.com/",
        ]
        assert policy.prioritize_urls(urls) == [
            "https://docs.atlan.com/",
            "https://docs.atlan.com/x/one",
            "https://docs.atlan.com/x/two",
        ]


class TestNormalizeUrl:

    BASE = "https://docs.atlan.com/guide/connectors/"

    def test_relative_link_resolved_and_cleaned(self, policy):
        assert policy.normalize_url("../setup/#intro", self.BASE) == "https://docs.atlan.com/guide/setup"

    def test_absolute_link_keeps_query(self, policy):
        assert (
            policy.normalize_url("https://docs.atlan.com/guide/setup?tab=cloud", self.BASE)
            == "https://docs.atlan.com/guide/setup?tab=cloud"
        )

    @pytest.mark.parametrize("href", ["", "#top", "/", "mailto:help@atlan.com", "tel:123", "javascript:void(0)"])
    def test_non_page_links_skipped(self, policy, href):
        assert policy.normalize_url(href, self.BASE) is None

    def test_off_site_link_rejected(self, policy):
        assert policy.normalize_url("https://github.com/atlanhq", self.BASE) is None


def _doc(title="Set up Snowflake", content=None, headings=None, links=None) -> ScrapedDocument:
    return ScrapedDocument(
        url="https://docs.atlan.com/guide/snowflake",
        title=title,
        content=content if content is not None else "Configure the Snowflake connector. " * 20,
        headings=headings or ["Prerequisites"],
        links=links or [],
    )


class TestIsValuableContent:

    def test_regular_page_is_valuable(self):
        assert CrawlPolicy.is_valuable_content(_doc())

    @pytest.mark.parametrize("title", ["404", "Page Not Found", "Error loading page"])
    def test_error_titles_rejected(self, title):
        assert not CrawlPolicy.is_valuable_content(_doc(title=title))

    def test_short_content_rejected(self):
        assert not CrawlPolicy.is_valuable_content(_doc(content="Too short."))

    def test_heading_heavy_page_without_links_rejected(self):
        content = " ".join(["word"] * 60)
        headings = [" ".join(["word"] * 30)]
        assert not CrawlPolicy.is_valuable_content(_doc(content=content * 2, headings=headings * 2))

    def test_heading_heavy_hub_page_kept(self):
        content = " ".join(["word"] * 120)
        headings = [" ".join(["word"] * 60)]
        links = [f"https://docs.atlan.com/guide/page-{i}" for i in range(5)]
        assert CrawlPolicy.is_valuable_content(_doc(content=content, headings=headings, links=links))
