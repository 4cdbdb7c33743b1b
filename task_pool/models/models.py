"""SQLAlchemy ORM Models for the Task Pool.

Users, clients and organizations live in other services; they are referenced
here by opaque UUIDs only.
"""

from datetime import date, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, TimestampMixin, UUIDMixin, utcnow


def _enum(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda x: [e.value for e in x])


# =============================================================================
# ENUMS
# =============================================================================


class TaskStatus(str, PyEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskSourceType(str, PyEnum):
    MANUAL = "manual"
    PHONE_CALL = "phone_call"
    EMAIL = "email"
    ROUTED = "routed"


class ActivityAction(str, PyEnum):
    CREATED = "created"
    CLAIMED = "claimed"
    RELEASED = "released"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    HANDED_OFF = "handed_off"
    HANDOFF_ACCEPTED = "handoff_accepted"
    COMPLETED = "completed"
    ROUTED = "routed"
    STEP_ADDED = "step_added"
    STEP_UPDATED = "step_updated"
    STEP_COMPLETED = "step_completed"
    STEP_UNCOMPLETED = "step_uncompleted"
    STEP_DELETED = "step_deleted"
    STEPS_REORDERED = "steps_reordered"
    AI_CORRECTED = "ai_corrected"
    AI_CONFIRMED = "ai_confirmed"


class SuggestionStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    EXPIRED = "expired"


class ReviewAction(str, PyEnum):
    APPROVED = "approved"
    MODIFIED = "modified"
    DECLINED = "declined"


class DeclineCategory(str, PyEnum):
    NOT_NEEDED = "not_needed"
    DUPLICATE = "duplicate"
    WRONG_TYPE = "wrong_type"
    WRONG_ASSIGNEE = "wrong_assignee"
    WRONG_CLIENT = "wrong_client"
    OTHER = "other"


# =============================================================================
# ACTION TYPES
# =============================================================================


class TaskActionType(Base, UUIDMixin):
    """Workflow bucket a task belongs to (e.g. CALLBACK, REVIEW)."""

    __tablename__ = "task_action_types"

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    color: Mapped[str] = mapped_column(String(20), default="#6B7280")
    icon: Mapped[str] = mapped_column(String(50), default="clipboard")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "code"),
        Index("idx_action_types_org", "organization_id", "sort_order"),
    )


# =============================================================================
# TASKS
# =============================================================================


class Task(Base, UUIDMixin, TimestampMixin):
    """A unit of work in the shared pool."""

    __tablename__ = "tasks"

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[TaskStatus] = mapped_column(
        _enum(TaskStatus, "task_status"),
        default=TaskStatus.OPEN,
        nullable=False,
    )
    priority: Mapped[TaskPriority] = mapped_column(
        _enum(TaskPriority, "task_priority"),
        default=TaskPriority.MEDIUM,
        nullable=False,
    )
    action_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("task_action_types.id")
    )
    client_id: Mapped[UUID | None] = mapped_column()

    # Claim: single "working on it" marker
    claimed_by: Mapped[UUID | None] = mapped_column()
    claimed_at: Mapped[datetime | None] = mapped_column()

    # Formal assignment, independent of claim
    assigned_to: Mapped[UUID | None] = mapped_column()
    assigned_at: Mapped[datetime | None] = mapped_column()
    assigned_by: Mapped[UUID | None] = mapped_column()

    # Pending handoff (non-null only while a transfer awaits acceptance)
    handoff_to: Mapped[UUID | None] = mapped_column()
    handoff_from: Mapped[UUID | None] = mapped_column()
    handoff_notes: Mapped[str | None] = mapped_column(Text)
    handoff_at: Mapped[datetime | None] = mapped_column()

    due_date: Mapped[date | None] = mapped_column()
    source_type: Mapped[TaskSourceType] = mapped_column(
        _enum(TaskSourceType, "task_source_type"),
        default=TaskSourceType.MANUAL,
        nullable=False,
    )
    source_metadata: Mapped[dict[str, Any]] = mapped_column(default=dict)
    ai_confidence: Mapped[float | None] = mapped_column(Float)
    ai_extracted_data: Mapped[dict[str, Any]] = mapped_column(default=dict)
    ai_corrected: Mapped[bool] = mapped_column(Boolean, default=False)

    routed_from_task_id: Mapped[UUID | None] = mapped_column(ForeignKey("tasks.id"))
    created_by: Mapped[UUID] = mapped_column(nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        Index("idx_tasks_org_status", "organization_id", "status"),
        Index("idx_tasks_claimed_by", "claimed_by"),
        Index("idx_tasks_assigned_to", "assigned_to"),
        Index("idx_tasks_action_type", "action_type_id", "status"),
        Index("idx_tasks_due_date", "due_date"),
        Index("idx_tasks_routed_from", "routed_from_task_id"),
    )


class TaskStep(Base, UUIDMixin, TimestampMixin):
    """Ordered checklist item on a task. Numbering is 1..N per task."""

    __tablename__ = "task_steps"

    task_id: Mapped[UUID] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    assigned_to: Mapped[UUID | None] = mapped_column()
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_by: Mapped[UUID | None] = mapped_column()
    completed_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        Index("idx_task_steps_task", "task_id", "step_number"),
    )


class TaskHandoffHistory(Base, UUIDMixin):
    """Append-only chain of custody for handoffs."""

    __tablename__ = "task_handoff_history"

    task_id: Mapped[UUID] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    from_user_id: Mapped[UUID] = mapped_column(nullable=False)
    to_user_id: Mapped[UUID] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_handoff_history_task", "task_id", "created_at"),
    )


class TaskActivityLog(Base, UUIDMixin):
    """Append-only audit trail. Rows are never updated or deleted."""

    __tablename__ = "task_activity_log"

    task_id: Mapped[UUID] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[ActivityAction] = mapped_column(
        _enum(ActivityAction, "task_activity_action"), nullable=False
    )
    details: Mapped[dict[str, Any]] = mapped_column(default=dict)
    performed_by: Mapped[UUID] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_activity_log_task", "task_id", "created_at"),
        Index("idx_activity_log_action", "action", "created_at"),
    )


class AITrainingFeedback(Base, UUIDMixin):
    """A reviewer's verdict on the AI's action-type classification of a task."""

    __tablename__ = "ai_training_feedback"

    task_id: Mapped[UUID] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    original_action_type_id: Mapped[UUID | None] = mapped_column()
    corrected_action_type_id: Mapped[UUID | None] = mapped_column()
    feedback_text: Mapped[str | None] = mapped_column(Text)
    was_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    submitted_by: Mapped[UUID] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


# =============================================================================
# AI SUGGESTIONS & LEARNING
# =============================================================================


class TaskAISuggestion(Base, UUIDMixin, TimestampMixin):
    """An AI-proposed task awaiting human review."""

    __tablename__ = "task_ai_suggestions"

    organization_id: Mapped[UUID] = mapped_column(nullable=False)

    # Where the suggestion came from (call, email, ...)
    source_type: Mapped[str] = mapped_column(String(50), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(255))
    source_metadata: Mapped[dict[str, Any]] = mapped_column(default=dict)

    suggested_title: Mapped[str] = mapped_column(String(500), nullable=False)
    suggested_description: Mapped[str | None] = mapped_column(Text)
    suggested_assigned_to: Mapped[UUID | None] = mapped_column()
    suggested_priority: Mapped[str | None] = mapped_column(String(20))
    suggested_due_date: Mapped[date | None] = mapped_column()
    suggested_client_id: Mapped[UUID | None] = mapped_column()
    suggested_action_type_id: Mapped[UUID | None] = mapped_column()

    ai_confidence: Mapped[float | None] = mapped_column(Float)
    ai_category: Mapped[str | None] = mapped_column(String(100))
    ai_keywords: Mapped[list[str]] = mapped_column(JSONType, default=list)

    status: Mapped[SuggestionStatus] = mapped_column(
        _enum(SuggestionStatus, "suggestion_status"),
        default=SuggestionStatus.PENDING,
        nullable=False,
    )
    reviewed_by: Mapped[UUID | None] = mapped_column()
    reviewed_at: Mapped[datetime | None] = mapped_column()
    review_action: Mapped[ReviewAction | None] = mapped_column(
        _enum(ReviewAction, "suggestion_review_action")
    )
    decline_reason: Mapped[str | None] = mapped_column(Text)
    decline_category: Mapped[DeclineCategory | None] = mapped_column(
        _enum(DeclineCategory, "suggestion_decline_category")
    )
    modifications: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    created_task_id: Mapped[UUID | None] = mapped_column(ForeignKey("tasks.id"))
    expires_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        Index("idx_suggestions_org_status", "organization_id", "status"),
        Index("idx_suggestions_expires", "status", "expires_at"),
    )


class TaskAIFeedback(Base, UUIDMixin):
    """One learning signal: how a human treated an AI proposal."""

    __tablename__ = "task_ai_feedback"

    organization_id: Mapped[UUID | None] = mapped_column()
    feedback_type: Mapped[str] = mapped_column(String(50), nullable=False)
    suggestion_id: Mapped[UUID | None] = mapped_column()
    task_id: Mapped[UUID | None] = mapped_column()
    source_type: Mapped[str | None] = mapped_column(String(50))
    ai_category: Mapped[str | None] = mapped_column(String(100))
    client_id: Mapped[UUID | None] = mapped_column()
    ai_suggested_assignee: Mapped[UUID | None] = mapped_column()
    ai_suggested_priority: Mapped[str | None] = mapped_column(String(20))
    ai_confidence: Mapped[float | None] = mapped_column(Float)
    user_action: Mapped[str] = mapped_column(String(20), nullable=False)
    user_assigned_to: Mapped[UUID | None] = mapped_column()
    user_priority: Mapped[str | None] = mapped_column(String(20))
    was_ai_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    correction_type: Mapped[str | None] = mapped_column(String(255))
    correction_reason: Mapped[str | None] = mapped_column(Text)
    diff: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    feedback_by: Mapped[UUID] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_ai_feedback_suggestion", "suggestion_id"),
        Index("idx_ai_feedback_task", "task_id"),
    )


class TaskAIPattern(Base, UUIDMixin, TimestampMixin):
    """A learned routing rule, e.g. "billing calls go to user X"."""

    __tablename__ = "task_ai_patterns"

    organization_id: Mapped[UUID | None] = mapped_column()
    pattern_type: Mapped[str] = mapped_column(String(50), nullable=False)
    match_category: Mapped[str | None] = mapped_column(String(100))
    match_client_id: Mapped[UUID | None] = mapped_column()
    suggest_assigned_to: Mapped[UUID | None] = mapped_column()
    suggest_priority: Mapped[str | None] = mapped_column(String(20))
    times_accepted: Mapped[int] = mapped_column(Integer, default=0)
    times_rejected: Mapped[int] = mapped_column(Integer, default=0)
    acceptance_rate: Mapped[float] = mapped_column(Float, default=0.5)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.3)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    learned_from_feedback_ids: Mapped[list[str]] = mapped_column(
        JSONType, default=list
    )

    __table_args__ = (
        Index("idx_ai_patterns_lookup", "pattern_type", "match_category"),
    )
