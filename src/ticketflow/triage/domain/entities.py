"""
Triage Domain Entities
======================

Typed records for ticket classification, retrieval and response drafting.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class Ticket:
    """
    A support ticket as seen by the pipeline.

    The pipeline writes the classification fields and moves ``status``
    along pending -> processing -> classified.
    """
    id: str
    subject: str
    description: str
    ticket_number: Optional[str] = None
    resolution: Optional[str] = None
    status: str = "pending"
    topic_tags: List[str] = field(default_factory=list)
    sentiment: Optional[str] = None
    ai_priority: Optional[str] = None
    classification_confidence: Optional[float] = None
    embedding: Optional[List[float]] = None
    classification_completed_at: Optional[datetime] = None

    @property
    def full_text(self) -> str:
        """Subject and description, the text that gets embedded."""
        parts = [p.strip() for p in (self.subject or "", self.description or "") if p and p.strip()]
        return "\n\n".join(parts)


@dataclass
class ReferenceEmbedding:
    """A labelled anchor vector for one category."""
    category: str
    label: str
    embedding: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DocumentCandidate:
    """An embedded document chunk considered for retrieval."""
    chunk_id: str
    url: str
    title: str
    content: str
    embedding: List[float]
    heading: Optional[str] = None


@dataclass
class ScoredMatch:
    """A candidate paired with its cosine similarity to the query."""
    item: Any
    score: float


@dataclass
class LabelMatch:
    """A reference label that matched a ticket."""
    label: str
    score: float


@dataclass
class ClassificationResult:
    """
    Labels assigned to a ticket.

    Sentiment and priority are None only when no reference of that
    category exists.
    """
    topics: List[LabelMatch] = field(default_factory=list)
    sentiment: Optional[LabelMatch] = None
    priority: Optional[LabelMatch] = None
    confidence: float = 0.0

    @property
    def topic_tags(self) -> List[str]:
        return [match.label for match in self.topics]

    @property
    def sentiment_label(self) -> Optional[str]:
        return self.sentiment.label if self.sentiment else None

    @property
    def priority_label(self) -> Optional[str]:
        return self.priority.label if self.priority else None


@dataclass
class SimilarTicket:
    """A previously seen ticket close to the one being classified."""
    ticket_id: str
    subject: str
    score: float
    ticket_number: Optional[str] = None
    resolution: Optional[str] = None


@dataclass
class DocumentationReference:
    """A documentation page relevant to a ticket (best chunk per URL)."""
    url: str
    title: str
    snippet: str
    score: float


@dataclass
class ResponseSource:
    """A source cited by a drafted response."""
    title: str
    url: str
    snippet: str = ""
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"title": self.title, "url": self.url, "snippet": self.snippet}
        if self.score is not None:
            data["score"] = self.score
        return data


@dataclass
class ResponseDraft:
    """Output of the response synthesizer, before it is persisted."""
    generated_response: str
    confidence_score: float
    sources: List[ResponseSource] = field(default_factory=list)
    is_fallback: bool = False
    model_used: Optional[str] = None
