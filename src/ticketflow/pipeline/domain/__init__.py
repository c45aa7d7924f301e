"""
Pipeline Domain Layer
=====================

Job payloads and the failure policy shared by every stage.
"""

from ticketflow.pipeline.domain.jobs import (
    CHUNK_CONTENT,
    TICKET_CONTENT,
    ClassificationJob,
    EmbeddingJob,
    FailurePolicy,
    JobDecision,
)

__all__ = [
    "CHUNK_CONTENT",
    "TICKET_CONTENT",
    "ClassificationJob",
    "EmbeddingJob",
    "FailurePolicy",
    "JobDecision",
]
