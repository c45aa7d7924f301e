"""
Pipeline Application Layer
===========================

Stage handlers, the batch orchestrator and the endpoint DTOs.
"""

from ticketflow.pipeline.application.dto import (
    BatchRequest,
    BatchSummary,
    CrawlRequest,
    EnqueueResponse,
    FailedJob,
)
from ticketflow.pipeline.application.handlers import (
    ClassificationJobHandler,
    EmbeddingJobHandler,
    IEmbeddingTargetRepository,
    IJobHandler,
)
from ticketflow.pipeline.application.orchestrator import PipelineOrchestrator
from ticketflow.pipeline.application.services import PipelineService, StageSettings

__all__ = [
    "BatchRequest",
    "BatchSummary",
    "CrawlRequest",
    "EnqueueResponse",
    "FailedJob",
    "ClassificationJobHandler",
    "EmbeddingJobHandler",
    "IEmbeddingTargetRepository",
    "IJobHandler",
    "PipelineOrchestrator",
    "PipelineService",
    "StageSettings",
]
