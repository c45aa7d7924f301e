"""
Core Exceptions
================

Custom exceptions shared by the ingestion, triage and pipeline contexts.

Everything raised on purpose derives from ApplicationException so the API
boundary and the job orchestrator can tell expected failures from bugs.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for text-generation API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class EmbeddingException(ExternalServiceException):
    """Raised when no embedding provider produced a vector."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Embedding Service", message, details)


class QueueException(ApplicationException):
    """Raised when the job queue cannot be read from or written to."""


class PermanentJobError(ApplicationException):
    """
    A job that can never succeed, however often it is retried.

    The orchestrator deletes the message instead of letting the
    visibility timeout hand it out again.
    """
