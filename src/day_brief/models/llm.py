"""Response schemas for the Gemini enrichment oracle.

Passed as ``response_schema`` so Gemini returns JSON in these shapes, then
re-validated with Pydantic on the way back in.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ProjectClassificationSchema(BaseModel):
    """Which known project an event belongs to.

    Attributes:
        project_id: Exact id from the candidate list, or ``None``.
        confidence: 0.0 - 1.0.
        reasoning: One-sentence explanation (logged, not stored).
    """

    project_id: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""


class EventSummarySchema(BaseModel):
    """A short pre-meeting briefing for one Work event."""

    summary: str
