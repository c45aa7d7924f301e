"""
Pipeline Controllers (API Routes)
==================================

One POST endpoint per stage plus the ticket hand-off used by the intake.

Batch endpoints return 200 with per-message failures in the body; only an
unreachable queue (503) or an unexpected error (500) fails the request.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ticketflow.ingestion.application import CrawlSummary
from ticketflow.pipeline.application import (
    BatchRequest,
    BatchSummary,
    CrawlRequest,
    EnqueueResponse,
    PipelineService,
)
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.triage.application import SeedSummary

logger = get_logger(__name__)
router = APIRouter(prefix="/pipeline", tags=["Pipeline"])


# ========== Example payloads for Swagger ==========

BATCH_RESPONSE_EXAMPLE = {
    "queue": "embedding_jobs",
    "received": 3,
    "completed": [41, 42],
    "failed": [
        {
            "msg_id": 43,
            "payload": {"id": "2b1f...", "table": "tickets", "content_function": "ticket_content"},
            "error": "Embedding Service: Failed to generate embeddings",
            "deleted": False
        }
    ]
}


# ========== Dependencies ==========

def get_pipeline_service(request: Request) -> PipelineService:
    """Get the pipeline service from app state."""
    service = getattr(request.app.state, "pipeline_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pipeline service not initialized"
        )
    return service


# ========== Route Handlers ==========

@router.post(
    "/crawl",
    response_model=CrawlSummary,
    summary="Crawl documentation and store chunks",
    description="Discover and scrape documentation pages, store changed pages and enqueue chunk embeddings."
)
async def run_crawl(
    payload: Optional[CrawlRequest] = None,
    service: PipelineService = Depends(get_pipeline_service)
) -> CrawlSummary:
    payload = payload or CrawlRequest()
    return await service.run_crawl(payload.seed_urls, payload.max_pages)


@router.post(
    "/embeddings",
    response_model=BatchSummary,
    summary="Process one batch of embedding jobs",
    responses={
        200: {"content": {"application/json": {"example": BATCH_RESPONSE_EXAMPLE}}},
        503: {"description": "Queue unavailable"}
    }
)
async def run_embeddings(
    payload: Optional[BatchRequest] = None,
    service: PipelineService = Depends(get_pipeline_service)
) -> BatchSummary:
    payload = payload or BatchRequest()
    return await service.run_embedding_batch(payload.batch_size, payload.visibility_timeout)


@router.post(
    "/classification",
    response_model=BatchSummary,
    summary="Process one batch of classification jobs",
    responses={503: {"description": "Queue unavailable"}}
)
async def run_classification(
    payload: Optional[BatchRequest] = None,
    service: PipelineService = Depends(get_pipeline_service)
) -> BatchSummary:
    payload = payload or BatchRequest()
    return await service.run_classification_batch(payload.batch_size, payload.visibility_timeout)


@router.post(
    "/references/seed",
    response_model=SeedSummary,
    summary="Embed and store the reference labels"
)
async def seed_references(
    service: PipelineService = Depends(get_pipeline_service)
) -> SeedSummary:
    return await service.seed_references()


@router.post(
    "/tickets/{ticket_id}/enqueue",
    response_model=EnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a new ticket for embedding and classification",
    responses={404: {"description": "Ticket not found"}}
)
async def enqueue_ticket(
    ticket_id: str,
    service: PipelineService = Depends(get_pipeline_service)
) -> EnqueueResponse:
    return await service.enqueue_ticket(ticket_id)


pipeline_router = router
