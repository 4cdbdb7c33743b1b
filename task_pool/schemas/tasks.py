"""Pydantic schemas for tasks, steps, handoffs and activity."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import Field, field_validator

from ..models import ActivityAction, TaskPriority, TaskSourceType, TaskStatus
from .base import PaginatedResponse, TaskPoolBaseModel


# =============================================================================
# TASK SCHEMAS
# =============================================================================


class TaskCreate(TaskPoolBaseModel):
    """Schema for creating a task manually."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    action_type_id: UUID | None = None
    client_id: UUID | None = None
    assigned_to: UUID | None = None
    due_date: date | None = None
    source_type: TaskSourceType = TaskSourceType.MANUAL
    source_metadata: dict[str, Any] = Field(default_factory=dict)


class TaskResponse(TaskPoolBaseModel):
    """Full task response."""

    id: UUID
    organization_id: UUID
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    action_type_id: UUID | None = None
    client_id: UUID | None = None

    claimed_by: UUID | None = None
    claimed_at: datetime | None = None
    assigned_to: UUID | None = None
    assigned_at: datetime | None = None
    assigned_by: UUID | None = None

    handoff_to: UUID | None = None
    handoff_from: UUID | None = None
    handoff_notes: str | None = None
    handoff_at: datetime | None = None

    due_date: date | None = None
    source_type: TaskSourceType
    source_metadata: dict[str, Any] = Field(default_factory=dict)
    ai_confidence: float | None = None
    ai_extracted_data: dict[str, Any] = Field(default_factory=dict)
    ai_corrected: bool = False
    routed_from_task_id: UUID | None = None

    created_by: UUID
    created_at: datetime
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("source_metadata", "ai_extracted_data", mode="before")
    @classmethod
    def none_to_dict(cls, v: Any) -> Any:
        return v or {}


class TaskListResponse(PaginatedResponse):
    """Paginated list of tasks."""

    items: list[TaskResponse]


# =============================================================================
# CLAIM / ASSIGN / HANDOFF / COMPLETE
# =============================================================================


class AssignRequest(TaskPoolBaseModel):
    assigned_to: UUID


class HandoffRequest(TaskPoolBaseModel):
    """Offer a task to another user."""

    handoff_to: UUID
    notes: str | None = Field(default=None, max_length=2000)


class HandoffHistoryResponse(TaskPoolBaseModel):
    id: UUID
    task_id: UUID
    from_user_id: UUID
    to_user_id: UUID
    notes: str | None = None
    created_at: datetime


class HandoffResponse(TaskPoolBaseModel):
    success: bool = True
    task: TaskResponse
    history_entry: HandoffHistoryResponse | None = None


class RouteRequest(TaskPoolBaseModel):
    """Follow-up task to create on completion."""

    action_type: str = Field(
        ...,
        min_length=1,
        description="Action type id or code (case-insensitive)",
    )
    title: str | None = Field(default=None, max_length=500)
    description: str | None = None


class CompleteRequest(TaskPoolBaseModel):
    route_to: RouteRequest | None = None


class CompletionResponse(TaskPoolBaseModel):
    """Completion always succeeds; routing outcome is reported separately."""

    completed_task: TaskResponse
    routed_task: TaskResponse | None = None
    routing_error: str | None = None


class AIFeedbackRequest(TaskPoolBaseModel):
    was_correct: bool
    corrected_action_type_id: UUID | None = None
    feedback_text: str | None = Field(default=None, max_length=2000)


class AIFeedbackResponse(TaskPoolBaseModel):
    id: UUID
    task_id: UUID
    was_correct: bool
    original_action_type_id: UUID | None = None
    corrected_action_type_id: UUID | None = None
    feedback_text: str | None = None
    created_at: datetime


# =============================================================================
# STEPS
# =============================================================================


class StepCreate(TaskPoolBaseModel):
    description: str = Field(..., max_length=2000)
    assigned_to: UUID | None = None


class StepUpdate(TaskPoolBaseModel):
    """Update a step. Set ``is_completed`` to toggle completion."""

    description: str | None = Field(default=None, max_length=2000)
    assigned_to: UUID | None = None
    is_completed: bool | None = None


class StepReorderRequest(TaskPoolBaseModel):
    step_ids: list[UUID]


class StepResponse(TaskPoolBaseModel):
    id: UUID
    task_id: UUID
    step_number: int
    description: str
    assigned_to: UUID | None = None
    is_completed: bool
    completed_by: UUID | None = None
    completed_at: datetime | None = None
    created_at: datetime


class StepToggleResponse(TaskPoolBaseModel):
    step: StepResponse
    all_steps_completed: bool


class StepDeleteResponse(TaskPoolBaseModel):
    success: bool = True


# =============================================================================
# ACTIVITY
# =============================================================================


class ActivityResponse(TaskPoolBaseModel):
    id: UUID
    task_id: UUID
    action: ActivityAction
    details: dict[str, Any] = Field(default_factory=dict)
    performed_by: UUID
    created_at: datetime


# =============================================================================
# ACTION TYPES
# =============================================================================


class ActionTypeCreate(TaskPoolBaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    label: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    color: str | None = Field(default=None, max_length=20)
    icon: str | None = Field(default=None, max_length=50)
    sort_order: int = 0


class ActionTypeResponse(TaskPoolBaseModel):
    id: UUID
    code: str
    label: str
    description: str | None = None
    color: str
    icon: str
    sort_order: int
    is_active: bool


# =============================================================================
# STATS
# =============================================================================


class StatsResponse(TaskPoolBaseModel):
    total: int
    by_status: dict[str, int]
    pool: int
    my_claimed: int
    my_assigned: int
    overdue: int
    by_action_type: dict[str, int]
    by_priority: dict[str, int]
    ai_extracted: int
    completed_today: int
