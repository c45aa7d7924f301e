"""
Triage Infrastructure Layer
============================

ORM models and SQLAlchemy repositories for the triage context.
"""

from ticketflow.triage.infrastructure.models import (
    AIResponseModel,
    ReferenceEmbeddingModel,
    TicketModel,
)
from ticketflow.triage.infrastructure.repositories import (
    SQLAlchemyAIResponseRepository,
    SQLAlchemyDocumentIndex,
    SQLAlchemyReferenceRepository,
    SQLAlchemyTicketRepository,
    triage_repository_scope,
)

__all__ = [
    "AIResponseModel",
    "ReferenceEmbeddingModel",
    "TicketModel",
    "SQLAlchemyAIResponseRepository",
    "SQLAlchemyDocumentIndex",
    "SQLAlchemyReferenceRepository",
    "SQLAlchemyTicketRepository",
    "triage_repository_scope",
]
