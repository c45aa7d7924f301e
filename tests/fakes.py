"""Test doubles shared across the suite."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from ticketflow.core import EmbeddingException
from ticketflow.infrastructure.llm import IEmbeddingClient


class FakeClock:
    """Manually advanced clock for visibility-timeout tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class TableEmbedder(IEmbeddingClient):
    """Embedder answering from a fixed text -> vector table."""

    def __init__(self, vectors: Dict[str, List[float]], default: Optional[List[float]] = None):
        self.vectors = vectors
        self.default = default
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.vectors:
            return list(self.vectors[text])
        if self.default is not None:
            return list(self.default)
        raise EmbeddingException("Failed to generate embeddings", {"text": text})
