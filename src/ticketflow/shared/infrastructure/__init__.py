"""
Shared Infrastructure
=====================

Cross-cutting technical concerns used by every bounded context.
"""

from ticketflow.shared.infrastructure.logging import (
    setup_logging,
    get_logger,
    get_job_logger,
    log_latency,
)

__all__ = ["setup_logging", "get_logger", "get_job_logger", "log_latency"]
