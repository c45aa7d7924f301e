"""
Pipeline Jobs
=============

Queue payload schemas and the retry-or-delete decision for failed jobs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ticketflow.core import PermanentJobError
from ticketflow.infrastructure.queue import QueueMessage


JobTableStr = Literal["tickets", "document_chunks"]

# Named ways of turning a row into the text that gets embedded
TICKET_CONTENT = "ticket_content"
CHUNK_CONTENT = "chunk_content"
CONTENT_FUNCTIONS = {
    "tickets": (TICKET_CONTENT,),
    "document_chunks": (CHUNK_CONTENT,),
}


class _JobPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(..., min_length=1, description="Primary key of the target row")
    table: JobTableStr
    content_function: str

    @model_validator(mode="after")
    def check_content_function(self):
        if self.content_function not in CONTENT_FUNCTIONS[self.table]:
            raise ValueError(
                f"content_function '{self.content_function}' is not defined for {self.table}"
            )
        return self

    @classmethod
    def from_message(cls, message: QueueMessage):
        """
        Validate a received payload.

        Raises:
            PermanentJobError: If the payload does not match the schema
        """
        try:
            return cls.model_validate(message.message)
        except (ValidationError, ValueError) as e:
            raise PermanentJobError(
                f"Invalid {cls.__name__} payload",
                {"msg_id": message.msg_id, "error": str(e)}
            ) from e

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump()


class EmbeddingJob(_JobPayload):
    """Compute and store the embedding of one row."""
    embedding_column: Literal["embedding"] = "embedding"

    @classmethod
    def for_ticket(cls, ticket_id: str) -> "EmbeddingJob":
        return cls(id=ticket_id, table="tickets", content_function=TICKET_CONTENT)

    @classmethod
    def for_chunk(cls, chunk_id: str) -> "EmbeddingJob":
        return cls(id=chunk_id, table="document_chunks", content_function=CHUNK_CONTENT)


class ClassificationJob(_JobPayload):
    """Classify one ticket and draft a response for it."""
    table: Literal["tickets"] = "tickets"
    content_function: str = TICKET_CONTENT

    @classmethod
    def for_ticket(cls, ticket_id: str) -> "ClassificationJob":
        return cls(id=ticket_id)


# ========== Failure policy ==========

class JobDecision(str, Enum):
    """What the orchestrator does with a failed message."""
    DELETE = "delete"
    RETRY = "retry"


@dataclass(frozen=True)
class FailurePolicy:
    """
    Retry-or-delete rule applied uniformly to every stage.

    PermanentJobError (missing row, empty content, invalid payload) is
    terminal. Any other error leaves the message for redelivery after its
    visibility timeout, until it has been delivered max_deliveries times.
    """
    max_deliveries: int = 5

    def decide(self, error: BaseException, message: QueueMessage) -> JobDecision:
        if isinstance(error, PermanentJobError):
            return JobDecision.DELETE
        if message.read_count >= self.max_deliveries:
            return JobDecision.DELETE
        return JobDecision.RETRY

    def is_poison(self, error: BaseException, message: QueueMessage) -> bool:
        """True when a retryable error is being dropped for exhausting its deliveries."""
        return not isinstance(error, PermanentJobError) and message.read_count >= self.max_deliveries
