"""SQLAlchemy ORM Models for the Task Pool."""

from .base import Base, JSONType, TimestampMixin, UUIDMixin, utcnow
from .models import (
    # Enums
    ActivityAction,
    DeclineCategory,
    ReviewAction,
    SuggestionStatus,
    TaskPriority,
    TaskSourceType,
    TaskStatus,
    # Tasks
    Task,
    TaskActionType,
    TaskActivityLog,
    TaskHandoffHistory,
    TaskStep,
    # AI
    AITrainingFeedback,
    TaskAIFeedback,
    TaskAIPattern,
    TaskAISuggestion,
)

__all__ = [
    # Base
    "Base",
    "JSONType",
    "UUIDMixin",
    "TimestampMixin",
    "utcnow",
    # Enums
    "ActivityAction",
    "DeclineCategory",
    "ReviewAction",
    "SuggestionStatus",
    "TaskPriority",
    "TaskSourceType",
    "TaskStatus",
    # Tasks
    "Task",
    "TaskActionType",
    "TaskActivityLog",
    "TaskHandoffHistory",
    "TaskStep",
    # AI
    "AITrainingFeedback",
    "TaskAIFeedback",
    "TaskAIPattern",
    "TaskAISuggestion",
]
