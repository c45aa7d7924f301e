"""
Triage Application Services
============================

Classification of queued tickets, response drafting and reference seeding.

ClassificationService commits the classification before a response is
drafted, so a failing text-generation provider can only degrade the
response, never lose the labels.
"""

import json
import re
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import yaml
from pydantic import ValidationError

from ticketflow.core import (
    ConfigurationException,
    EmbeddingException,
    PermanentJobError,
)
from ticketflow.infrastructure.llm import IEmbeddingClient, ITextGenerator
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.triage.application.dto import (
    ReferenceLabelSpec,
    SeedFailure,
    SeedSummary,
    TriageOutcome,
)
from ticketflow.triage.domain import (
    ClassificationResult,
    DocumentCandidate,
    DocumentationReference,
    ReferenceEmbedding,
    ResponseDraft,
    ResponseSource,
    SemanticClassifier,
    SimilarTicket,
    Ticket,
)

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class ITicketRepository(ABC):
    """Interface for ticket access."""

    @abstractmethod
    async def get(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by id, None when missing or the id is malformed."""

    @abstractmethod
    async def list_embedded(self) -> List[Ticket]:
        """All tickets that already have an embedding."""

    @abstractmethod
    async def save_classification(
        self,
        ticket_id: str,
        result: ClassificationResult,
        embedding: Optional[List[float]] = None
    ) -> None:
        """Write classification fields and mark the ticket classified."""


class IReferenceRepository(ABC):
    """Interface for reference label embeddings."""

    @abstractmethod
    async def list_all(self) -> List[ReferenceEmbedding]:
        """Every reference embedding."""

    @abstractmethod
    async def upsert(self, reference: ReferenceEmbedding) -> None:
        """Insert or replace the reference for (category, label)."""


class IDocumentIndex(ABC):
    """Interface for embedded documentation chunks."""

    @abstractmethod
    async def list_embedded_chunks(self) -> List[DocumentCandidate]:
        """Chunks with embeddings, joined with their document title."""


class IAIResponseRepository(ABC):
    """Interface for drafted responses (append-only)."""

    @abstractmethod
    async def add(self, ticket_id: str, draft: ResponseDraft) -> str:
        """Store a draft and return its id."""


@dataclass
class TriageRepositories:
    """Repositories sharing one transaction."""
    tickets: ITicketRepository
    references: IReferenceRepository
    documents: IDocumentIndex
    responses: IAIResponseRepository


TriageScope = Callable[[], AbstractAsyncContextManager[TriageRepositories]]


# ========== Reference labels ==========

def load_reference_labels(path: Path) -> List[ReferenceLabelSpec]:
    """
    Load reference labels from YAML.

    The file maps each category to a list of ``{label, description}``
    entries (a bare string is accepted as a label without description).

    Raises:
        ConfigurationException: If the file is missing or malformed
    """
    config_file = Path(path)
    if not config_file.exists():
        raise ConfigurationException(f"Reference labels file not found: {config_file}")

    with open(config_file, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationException("Reference labels file must map categories to label lists")

    labels: List[ReferenceLabelSpec] = []
    try:
        for category, entries in data.items():
            for entry in entries or []:
                if isinstance(entry, str):
                    entry = {"label": entry}
                labels.append(ReferenceLabelSpec(category=category, **entry))
    except (TypeError, ValidationError) as e:
        raise ConfigurationException(f"Invalid reference labels file: {e}") from e

    return labels


class ReferenceSeeder:
    """Embeds reference labels and upserts them by (category, label)."""

    def __init__(self, embedder: IEmbeddingClient, scope: TriageScope):
        self._embedder = embedder
        self._scope = scope

    async def seed(self, labels: Sequence[ReferenceLabelSpec]) -> SeedSummary:
        """
        Embed and store every label.

        A label whose embedding fails is reported and skipped; the rest
        are still stored.
        """
        summary = SeedSummary()
        references: List[ReferenceEmbedding] = []

        for spec in labels:
            try:
                vector = await self._embedder.embed(spec.embedding_text)
            except EmbeddingException as e:
                summary.failed.append(SeedFailure(category=spec.category, label=spec.label, error=e.message))
                logger.warning(
                    "Reference label embedding failed",
                    extra={"category": spec.category, "label": spec.label, "error": e.message}
                )
                continue

            references.append(ReferenceEmbedding(
                category=spec.category,
                label=spec.label,
                embedding=vector,
                metadata={"description": spec.description},
            ))

        async with self._scope() as repos:
            for reference in references:
                await repos.references.upsert(reference)

        summary.seeded = len(references)
        logger.info(
            "Reference labels seeded",
            extra={"seeded": summary.seeded, "failed": len(summary.failed)}
        )
        return summary


# ========== Response synthesis ==========

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Pull a JSON object out of model output.

    Tries fenced blocks first, then the outermost brace-delimited span.
    Returns None when nothing parses to a dict.
    """
    candidates = [m.strip() for m in _FENCE_RE.findall(text)]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])
    candidates.append(text.strip())

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, dict):
            return data
    return None


class ResponseSynthesizer:
    """
    Drafts a reply from the ticket, its labels and retrieved references.

    Never raises for provider problems: without a generator, or when the
    generator fails, the draft is a deterministic templated summary flagged
    with ``is_fallback``.
    """

    SYSTEM_PROMPT = """You are a customer support assistant drafting replies to support tickets.

Use the predicted classification and the documentation references you are given.
Cite only the references provided. Suggest concrete next steps.

Respond ONLY in JSON format:
{
    "answer": "reply to the customer",
    "confidence": 0.8,
    "sources": [{"title": "page title", "url": "https://...", "snippet": "supporting excerpt"}]
}"""

    CLOSING_INSTRUCTION = (
        "Please provide a concise response to the user, include references and suggested next steps."
    )
    CONTENT_LIMIT = 2000
    FALLBACK_PROMPT_LIMIT = 800

    def __init__(self, generator: Optional[ITextGenerator] = None):
        self._generator = generator

    def build_prompt(
        self,
        ticket: Ticket,
        classification: ClassificationResult,
        similar: Sequence[SimilarTicket],
        documentation: Sequence[DocumentationReference]
    ) -> str:
        parts = [
            f"User content: {ticket.full_text[:self.CONTENT_LIMIT]}",
            "Predicted classification:\n"
            f"  topics: {', '.join(classification.topic_tags) or 'none'}\n"
            f"  sentiment: {classification.sentiment_label or 'unknown'}\n"
            f"  priority: {classification.priority_label or 'unknown'}",
        ]

        if similar:
            lines = ["Similar tickets (subject: resolution):"]
            for item in similar:
                lines.append(f"- {item.subject}: {item.resolution or 'unresolved'}")
            parts.append("\n".join(lines))

        parts.append("Relevant documentation (title - url):")
        parts.extend(f"- {doc.title} - {doc.url}" for doc in documentation)
        parts.append(self.CLOSING_INSTRUCTION)

        return "\n\n".join(parts)

    async def synthesize(
        self,
        ticket: Ticket,
        classification: ClassificationResult,
        similar: Sequence[SimilarTicket],
        documentation: Sequence[DocumentationReference]
    ) -> ResponseDraft:
        prompt = self.build_prompt(ticket, classification, similar, documentation)
        doc_sources = [
            ResponseSource(title=d.title, url=d.url, snippet=d.snippet, score=d.score)
            for d in documentation
        ]

        if self._generator is None:
            logger.info("No text generator configured, using templated response", extra={"ticket_id": ticket.id})
            return self._fallback(prompt, classification, doc_sources)

        try:
            completion = await self._generator.chat_completion(
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                operation="response_draft",
            )
        except Exception as e:
            logger.warning(
                "Response generation failed, using templated response",
                extra={"ticket_id": ticket.id, "error_type": type(e).__name__, "error": str(e)}
            )
            return self._fallback(prompt, classification, doc_sources)

        return self._parse(completion.content, completion.model, classification, doc_sources)

    def _parse(
        self,
        content: str,
        model: str,
        classification: ClassificationResult,
        doc_sources: List[ResponseSource]
    ) -> ResponseDraft:
        data = extract_json_object(content)
        if not data or not isinstance(data.get("answer"), str) or not data["answer"].strip():
            return ResponseDraft(
                generated_response=content.strip(),
                confidence_score=classification.confidence,
                sources=doc_sources,
                model_used=model,
            )

        try:
            confidence = max(0.0, min(1.0, float(data.get("confidence", classification.confidence))))
        except (TypeError, ValueError):
            confidence = classification.confidence

        sources = [
            ResponseSource(
                title=str(s.get("title", "")),
                url=str(s["url"]),
                snippet=str(s.get("snippet", "")),
            )
            for s in data.get("sources") or []
            if isinstance(s, dict) and s.get("url")
        ]

        return ResponseDraft(
            generated_response=data["answer"].strip(),
            confidence_score=confidence,
            sources=sources or doc_sources,
            model_used=model,
        )

    def _fallback(
        self,
        prompt: str,
        classification: ClassificationResult,
        doc_sources: List[ResponseSource]
    ) -> ResponseDraft:
        return ResponseDraft(
            generated_response=f"Classification summary:\n{prompt[:self.FALLBACK_PROMPT_LIMIT]}...",
            confidence_score=classification.confidence,
            sources=doc_sources,
            is_fallback=True,
        )


# ========== Classification ==========

class ClassificationService:
    """
    Classifies one ticket end to end.

    Steps: load the ticket, reuse or compute its embedding, label it against
    the reference embeddings, retrieve similar tickets and documentation,
    commit the classification, then draft and store a response.
    """

    def __init__(
        self,
        scope: TriageScope,
        embedder: IEmbeddingClient,
        classifier: SemanticClassifier,
        synthesizer: ResponseSynthesizer
    ):
        self._scope = scope
        self._embedder = embedder
        self._classifier = classifier
        self._synthesizer = synthesizer

    async def classify_ticket(self, ticket_id: str) -> TriageOutcome:
        """
        Classify a ticket and draft a response.

        Raises:
            PermanentJobError: Ticket missing or without content
            EmbeddingException: No embedding provider succeeded
        """
        async with self._scope() as repos:
            ticket = await repos.tickets.get(ticket_id)

        if ticket is None:
            raise PermanentJobError(f"Ticket {ticket_id} not found", {"ticket_id": ticket_id})
        content = ticket.full_text
        if not content:
            raise PermanentJobError(f"Ticket {ticket_id} has no content", {"ticket_id": ticket_id})

        new_embedding = None
        embedding = ticket.embedding
        if not embedding:
            new_embedding = embedding = await self._embedder.embed(content)

        async with self._scope() as repos:
            references = await repos.references.list_all()
            others = await repos.tickets.list_embedded()
            chunks = await repos.documents.list_embedded_chunks()

            classification = self._classifier.classify(embedding, references)
            similar = self._classifier.find_similar_tickets(embedding, others, exclude_id=ticket.id)
            documentation = self._classifier.find_documentation(embedding, chunks)

            await repos.tickets.save_classification(ticket.id, classification, embedding=new_embedding)

        logger.info(
            "Ticket classified",
            extra={
                "ticket_id": ticket.id,
                "topics": classification.topic_tags,
                "sentiment": classification.sentiment_label,
                "priority": classification.priority_label,
                "confidence": round(classification.confidence, 4),
                "similar_tickets": len(similar),
                "documentation": len(documentation),
            }
        )

        draft = await self._synthesizer.synthesize(ticket, classification, similar, documentation)

        async with self._scope() as repos:
            response_id = await repos.responses.add(ticket.id, draft)

        return TriageOutcome(
            ticket_id=ticket.id,
            topic_tags=classification.topic_tags,
            sentiment=classification.sentiment_label,
            priority=classification.priority_label,
            confidence=classification.confidence,
            similar_ticket_ids=[s.ticket_id for s in similar],
            documentation_urls=[d.url for d in documentation],
            response_id=response_id,
            response_is_fallback=draft.is_fallback,
        )
