"""
Pipeline Infrastructure Layer
==============================

Embedding-target storage and the optional interval scheduler.
"""

from ticketflow.pipeline.infrastructure.repositories import SQLAlchemyEmbeddingTargetRepository
from ticketflow.pipeline.infrastructure.scheduler import PipelineScheduler

__all__ = [
    "PipelineScheduler",
    "SQLAlchemyEmbeddingTargetRepository",
]
