"""
Core Module
============

Shared core utilities and abstractions used across the application.
"""

from ticketflow.core.exceptions import (
    ApplicationException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
    EmbeddingException,
    QueueException,
    PermanentJobError,
)

__all__ = [
    "ApplicationException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "EmbeddingException",
    "QueueException",
    "PermanentJobError",
]
