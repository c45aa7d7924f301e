"""
Pipeline DTOs
=============

Request and response models for the stage endpoints.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class FailedJob(BaseModel):
    """A message whose handler raised."""
    msg_id: int
    payload: dict[str, Any] = Field(default_factory=dict)
    error: str
    deleted: bool = False


class BatchSummary(BaseModel):
    """Outcome of one run_batch invocation."""
    queue: str
    received: int = 0
    completed: List[int] = Field(default_factory=list)
    failed: List[FailedJob] = Field(default_factory=list)


class CrawlRequest(BaseModel):
    seed_urls: Optional[List[str]] = Field(None, description="Override configured seed URLs")
    max_pages: Optional[int] = Field(None, ge=1, le=1000, description="Override page cap")


class BatchRequest(BaseModel):
    batch_size: Optional[int] = Field(None, ge=1, le=100)
    visibility_timeout: Optional[int] = Field(None, ge=1, le=3600)


class EnqueueResponse(BaseModel):
    queue: str
    msg_id: int
    ticket_id: str

