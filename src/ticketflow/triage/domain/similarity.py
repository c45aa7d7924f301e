"""
Similarity and Classification
=============================

Cosine-similarity ranking and the nearest-reference classifier.

All functions are pure. A similarity of -1.0 doubles as the "undefined"
sentinel (length mismatch, empty or zero vector); callers drop matches at
that score, so such candidates are never selected.
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from ticketflow.triage.domain.entities import (
    ClassificationResult,
    DocumentCandidate,
    DocumentationReference,
    LabelMatch,
    ReferenceEmbedding,
    ScoredMatch,
    SimilarTicket,
    Ticket,
)

T = TypeVar("T")

UNDEFINED_SIMILARITY = -1.0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product over norms, or -1.0 when similarity is undefined."""
    if not a or not b or len(a) != len(b):
        return UNDEFINED_SIMILARITY

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return UNDEFINED_SIMILARITY

    # Rounding can push |cos| marginally past 1
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def top_matches(
    candidates: Sequence[T],
    query: Sequence[float],
    k: int,
    embedding_of: Callable[[T], Sequence[float]] = lambda c: c.embedding,
) -> List[ScoredMatch]:
    """
    Score every candidate against query and keep the k best.

    Sorting is stable, so equal scores keep candidate order.
    """
    if k <= 0:
        return []
    scored = [ScoredMatch(item=c, score=cosine_similarity(embedding_of(c), query)) for c in candidates]
    scored.sort(key=lambda m: m.score, reverse=True)
    return scored[:k]


@dataclass(frozen=True)
class ClassifierThresholds:
    """Tunable cut-offs for classification and retrieval."""
    topic_threshold: float = 0.55
    max_topics: int = 3
    similar_ticket_threshold: float = 0.7
    similar_ticket_count: int = 5
    documentation_threshold: float = 0.4
    documentation_count: int = 5

    @classmethod
    def from_settings(cls, settings) -> "ClassifierThresholds":
        return cls(
            topic_threshold=settings.topic_threshold,
            max_topics=settings.max_topics,
            similar_ticket_threshold=settings.similar_ticket_threshold,
            similar_ticket_count=settings.similar_ticket_count,
            documentation_threshold=settings.documentation_threshold,
            documentation_count=settings.documentation_count,
        )


class SemanticClassifier:
    """Nearest-neighbour classifier over reference label embeddings."""

    def __init__(self, thresholds: Optional[ClassifierThresholds] = None):
        self.thresholds = thresholds or ClassifierThresholds()

    def classify(
        self,
        embedding: Sequence[float],
        references: Sequence[ReferenceEmbedding]
    ) -> ClassificationResult:
        """
        Label a ticket embedding.

        Topics: up to max_topics references scoring above topic_threshold.
        Sentiment and priority: the single best reference, unfiltered.
        Confidence: mean of the best topic, sentiment and priority scores
        that exist, clamped to [0, 1].
        """
        by_category: Dict[str, List[ReferenceEmbedding]] = {"topic": [], "sentiment": [], "priority": []}
        for ref in references:
            if ref.category in by_category:
                by_category[ref.category].append(ref)

        topics = [
            LabelMatch(m.item.label, m.score)
            for m in top_matches(by_category["topic"], embedding, self.thresholds.max_topics)
            if m.score > self.thresholds.topic_threshold
        ]
        sentiment = self._best(by_category["sentiment"], embedding)
        priority = self._best(by_category["priority"], embedding)

        best_scores = [match.score for match in (topics[0] if topics else None, sentiment, priority) if match]
        confidence = sum(best_scores) / len(best_scores) if best_scores else 0.0

        return ClassificationResult(
            topics=topics,
            sentiment=sentiment,
            priority=priority,
            confidence=max(0.0, min(1.0, confidence)),
        )

    def find_similar_tickets(
        self,
        embedding: Sequence[float],
        tickets: Sequence[Ticket],
        exclude_id: Optional[str] = None
    ) -> List[SimilarTicket]:
        """Other embedded tickets scoring above similar_ticket_threshold."""
        candidates = [t for t in tickets if t.embedding and t.id != exclude_id]
        return [
            SimilarTicket(
                ticket_id=m.item.id,
                subject=m.item.subject,
                score=m.score,
                ticket_number=m.item.ticket_number,
                resolution=m.item.resolution,
            )
            for m in top_matches(candidates, embedding, self.thresholds.similar_ticket_count)
            if m.score > self.thresholds.similar_ticket_threshold
        ]

    def find_documentation(
        self,
        embedding: Sequence[float],
        chunks: Sequence[DocumentCandidate]
    ) -> List[DocumentationReference]:
        """
        Documentation pages above documentation_threshold.

        Pages are ranked by their best-scoring chunk; each URL appears once.
        """
        best_per_url: Dict[str, ScoredMatch] = {}
        for match in top_matches(chunks, embedding, len(chunks)):
            if match.score <= self.thresholds.documentation_threshold:
                break
            best_per_url.setdefault(match.item.url, match)

        ranked = list(best_per_url.values())[:self.thresholds.documentation_count]
        return [
            DocumentationReference(
                url=m.item.url,
                title=m.item.title or m.item.url,
                snippet=m.item.content[:200],
                score=m.score,
            )
            for m in ranked
        ]

    @staticmethod
    def _best(references: Sequence[ReferenceEmbedding], embedding: Sequence[float]) -> Optional[LabelMatch]:
        matches = top_matches(references, embedding, 1)
        if not matches or matches[0].score <= UNDEFINED_SIMILARITY:
            return None
        return LabelMatch(matches[0].item.label, matches[0].score)
