"""Posting-related Pydantic schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

PostingKind = Literal["job", "event", "course", "mentorship"]


class CreatePostingRequest(BaseModel):
    """Request to publish a job, event, course, or mentorship."""

    title: str
    description: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate title length."""
        if len(v) > 500:
            raise ValueError("Title must be 500 characters or less")
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip()


class PostingItem(BaseModel):
    """Single posting."""

    id: str
    kind: str
    title: str
    description: str | None
    details: dict[str, Any]
    created_by: str | None
    created_at: str


class FanoutSummary(BaseModel):
    """How many notifications a posting produced."""

    created: int
    failed: int


class CreatePostingResponse(BaseModel):
    """Created posting plus the outcome of notifying its audience."""

    posting: PostingItem
    notifications: FanoutSummary


class ListPostingsResponse(BaseModel):
    """Response for listing postings."""

    items: list[PostingItem]
