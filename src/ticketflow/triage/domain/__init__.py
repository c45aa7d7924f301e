"""
Triage Domain Layer
===================

Framework-agnostic records and the similarity-based classifier.
"""

from ticketflow.triage.domain.entities import (
    ClassificationResult,
    DocumentCandidate,
    DocumentationReference,
    LabelMatch,
    ReferenceEmbedding,
    ResponseDraft,
    ResponseSource,
    ScoredMatch,
    SimilarTicket,
    Ticket,
)
from ticketflow.triage.domain.similarity import (
    ClassifierThresholds,
    SemanticClassifier,
    cosine_similarity,
    top_matches,
)

__all__ = [
    "ClassificationResult",
    "DocumentCandidate",
    "DocumentationReference",
    "LabelMatch",
    "ReferenceEmbedding",
    "ResponseDraft",
    "ResponseSource",
    "ScoredMatch",
    "SimilarTicket",
    "Ticket",
    "ClassifierThresholds",
    "SemanticClassifier",
    "cosine_similarity",
    "top_matches",
]
