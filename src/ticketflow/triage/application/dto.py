"""
Triage Application DTOs
========================

Pydantic models for reference seeding and triage outcomes.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


ReferenceCategoryStr = Literal["topic", "sentiment", "priority"]


class ReferenceLabelSpec(BaseModel):
    """One label from the reference labels file."""
    category: ReferenceCategoryStr
    label: str = Field(..., min_length=1)
    description: str = ""

    @field_validator("label")
    @classmethod
    def strip_label(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("label must not be blank")
        return v

    @property
    def embedding_text(self) -> str:
        """Text embedded for this label."""
        return f"{self.label}: {self.description}" if self.description else self.label


class SeedFailure(BaseModel):
    category: str
    label: str
    error: str


class SeedSummary(BaseModel):
    """Outcome of a reference seeding run."""
    seeded: int = 0
    failed: List[SeedFailure] = Field(default_factory=list)


class TriageOutcome(BaseModel):
    """What a classification job wrote for one ticket."""
    ticket_id: str
    topic_tags: List[str] = Field(default_factory=list)
    sentiment: Optional[str] = None
    priority: Optional[str] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    similar_ticket_ids: List[str] = Field(default_factory=list)
    documentation_urls: List[str] = Field(default_factory=list)
    response_id: Optional[str] = None
    response_is_fallback: bool = False
