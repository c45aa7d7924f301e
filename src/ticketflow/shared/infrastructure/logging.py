"""
Structured Logging
==================

JSON-structured logging shared by the API and the queue workers.

Every record carries the service name and environment, plus the
correlation/job identifiers passed through ``extra``. Credential-looking
fields are masked before they reach the output stream.

Usage:
    from ticketflow.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Chunks stored", extra={"url": url, "chunks": 12})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from pythonjsonlogger import jsonlogger


_SENSITIVE_KEYS = ("password", "api_key", "authorization", "secret")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that stamps service context onto every record.

    Adds:
    - ISO-8601 UTC timestamp
    - service and environment names
    - correlation_id / job_id when present
    """

    def __init__(self, *args, service: str = "ticketflow", environment: str = "development", **kwargs):
        super().__init__(*args, **kwargs)
        self.service = service
        self.environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["service"] = self.service
        log_record["environment"] = self.environment

        for key in ("correlation_id", "job_id"):
            if hasattr(record, key):
                log_record[key] = getattr(record, key)

        for key, value in list(log_record.items()):
            if isinstance(value, str) and any(s in key.lower() for s in _SENSITIVE_KEYS):
                log_record[key] = "***REDACTED***"


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
    service: str = "ticketflow",
) -> None:
    """
    Configure structured JSON logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: Environment name for log context
        service: Service name stamped on each record
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(CustomJsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        service=service,
        environment=environment,
    ))
    root_logger.addHandler(handler)

    # Third-party chatter
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the module logger for ``name``."""
    return logging.getLogger(name)


class JobLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its context into each call's ``extra``."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_job_logger(name: str, job_id: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a logger that tags every record with a queue message id.

    Args:
        name: Logger name
        job_id: Queue message id being processed

    Returns:
        logging.LoggerAdapter: Adapter injecting job_id into extra
    """
    return JobLoggerAdapter(get_logger(name), {"job_id": job_id})


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any):
    """
    Log how long the wrapped block took, even when it raises.

    Usage:
        with log_latency(logger, "embed_batch", queue="embedding_jobs"):
            await orchestrator.process_embedding_batch()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round(latency_ms, 2),
                **extra_context,
            },
        )
