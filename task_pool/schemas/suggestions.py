"""Pydantic schemas for AI task suggestions."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from ..models import DeclineCategory, ReviewAction, SuggestionStatus, TaskPriority
from .base import TaskPoolBaseModel


class SuggestionResponse(TaskPoolBaseModel):
    id: UUID
    source_type: str
    source_id: str | None = None
    suggested_title: str
    suggested_description: str | None = None
    suggested_assigned_to: UUID | None = None
    suggested_priority: str | None = None
    suggested_due_date: date | None = None
    suggested_client_id: UUID | None = None
    suggested_action_type_id: UUID | None = None
    ai_confidence: float | None = None
    ai_category: str | None = None
    ai_keywords: list[str] = Field(default_factory=list)
    status: SuggestionStatus
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_action: ReviewAction | None = None
    decline_reason: str | None = None
    decline_category: DeclineCategory | None = None
    modifications: dict[str, Any] | None = None
    created_task_id: UUID | None = None
    expires_at: datetime | None = None
    created_at: datetime


class SuggestionListResponse(TaskPoolBaseModel):
    items: list[SuggestionResponse]
    total: int
    counts: dict[str, int]


class ApproveRequest(TaskPoolBaseModel):
    """Reviewer overrides. Omitted fields keep the AI-suggested value."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    assigned_to: UUID | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    client_id: UUID | None = None
    action_type_id: UUID | None = None


class ApproveResponse(TaskPoolBaseModel):
    success: bool = True
    task_id: UUID
    was_modified: bool
    modifications: dict[str, dict[str, Any]] = Field(default_factory=dict)


class DeclineRequest(TaskPoolBaseModel):
    # Plain string so unknown categories reach the service and are rejected there
    reason: str = Field(..., max_length=2000)
    category: str


class DeclineResponse(TaskPoolBaseModel):
    success: bool = True
    decline_category: DeclineCategory
