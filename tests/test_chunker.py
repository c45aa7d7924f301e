"""Tests for DocumentChunker."""

import pytest

from ticketflow.ingestion.domain import DocumentChunker


def _rebuild(chunks):
    """Source words recovered by dropping each chunk's carried-over words."""
    words = []
    for chunk in chunks:
        words.extend(chunk.content.split()[chunk.overlap_words:])
    return words


class TestDocumentChunker:

    def test_rejects_overlap_not_smaller_than_size(self):
        with pytest.raises(ValueError):
            DocumentChunker(chunk_size=100, chunk_overlap=100)

    def test_rejects_negative_overlap(self):
        with pytest.raises(ValueError):
            DocumentChunker(chunk_size=100, chunk_overlap=-1)

    def test_empty_content_yields_no_chunks(self):
        assert DocumentChunker(100, 20).chunk("   \n ") == []

    def test_short_content_is_one_chunk(self):
        chunks = DocumentChunker(1000, 200).chunk("Connect Snowflake in three steps.")
        assert len(chunks) == 1
        assert chunks[0].index == 0
        assert chunks[0].overlap_words == 0
        assert chunks[0].content == "Connect Snowflake in three steps."

    def test_overlapping_windows(self):
        content = "alpha beta gamma delta epsilon zeta eta theta"
        chunks = DocumentChunker(chunk_size=20, chunk_overlap=8).chunk(content)

        assert [c.content for c in chunks] == [
            "alpha beta gamma",
            "gamma delta epsilon",
            "epsilon zeta eta",
            "zeta eta theta",
        ]
        assert [c.overlap_words for c in chunks] == [0, 1, 1, 2]
        assert [c.index for c in chunks] == [0, 1, 2, 3]

    def test_chunks_respect_size_and_reassemble(self):
        content = " ".join(f"word{i}" for i in range(300))
        chunker = DocumentChunker(chunk_size=120, chunk_overlap=30)
        chunks = chunker.chunk(content)

        assert len(chunks) > 1
        assert all(len(c.content) <= 120 for c in chunks)
        assert _rebuild(chunks) == content.split()

    def test_whitespace_is_collapsed(self):
        chunks = DocumentChunker(100, 10).chunk("one\n\ntwo\t three")
        assert chunks[0].content == "one two three"

    def test_oversized_word_becomes_its_own_chunk(self):
        chunks = DocumentChunker(chunk_size=10, chunk_overlap=2).chunk("short extraordinarily long")
        assert [c.content for c in chunks] == ["short", "extraordinarily", "long"]

    def test_heading_is_the_one_active_at_last_word(self):
        content = "Overview aaa bbb ccc Setup ddd eee fff"
        chunks = DocumentChunker(chunk_size=20, chunk_overlap=8).chunk(content, ["Overview", "Setup"])

        assert [c.content for c in chunks] == [
            "Overview aaa bbb ccc",
            "bbb ccc Setup ddd",
            "ddd eee fff",
        ]
        assert [c.heading for c in chunks] == ["Overview", "Setup", "Setup"]

    def test_heading_absent_from_content_is_ignored(self):
        chunks = DocumentChunker(100, 10).chunk("plain text only", ["Missing heading"])
        assert chunks[0].heading is None

    def test_word_count(self):
        chunks = DocumentChunker(100, 10).chunk("one two three")
        assert chunks[0].word_count == 3
