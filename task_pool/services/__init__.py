"""Business logic services for the Task Pool."""

from .activity import ActivityLog
from .dispatch import SideEffectDispatcher
from .errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    StepNotFoundError,
    SuggestionNotFoundError,
    TaskNotAvailableError,
    TaskNotFoundError,
    TaskPoolError,
    UnauthenticatedError,
)
from .learning import LearningEngine, SQLLearningEngine, SuggestionFeedback
from .notifications import (
    LoggingNotificationSink,
    NotificationSink,
    WebhookNotificationSink,
)
from .permissions import (
    Permission,
    PermissionOracle,
    PermissionOverride,
    PolicyEngine,
    Role,
)
from .stats import StatsAggregator, StatsCache, TaskPoolStats
from .steps import StepChecklist, StepToggleResult
from .suggestions import (
    ApprovalResult,
    DeclineResult,
    SuggestionInput,
    SuggestionOverrides,
    SuggestionReviewService,
    expire_old_suggestions,
)
from .task_engine import (
    CompletionResult,
    CreateTaskInput,
    HandoffResult,
    RouteSpec,
    TaskFilters,
    TaskPoolEngine,
)

__all__ = [
    # Task Pool Engine (primary)
    "TaskPoolEngine",
    "CreateTaskInput",
    "RouteSpec",
    "TaskFilters",
    "HandoffResult",
    "CompletionResult",
    # Steps
    "StepChecklist",
    "StepToggleResult",
    # Suggestions
    "SuggestionReviewService",
    "SuggestionInput",
    "SuggestionOverrides",
    "ApprovalResult",
    "DeclineResult",
    "expire_old_suggestions",
    # Stats
    "StatsAggregator",
    "StatsCache",
    "TaskPoolStats",
    # Activity
    "ActivityLog",
    # Collaborators
    "SideEffectDispatcher",
    "NotificationSink",
    "LoggingNotificationSink",
    "WebhookNotificationSink",
    "LearningEngine",
    "SQLLearningEngine",
    "SuggestionFeedback",
    "PolicyEngine",
    "PermissionOracle",
    "PermissionOverride",
    "Permission",
    "Role",
    # Errors
    "TaskPoolError",
    "UnauthenticatedError",
    "PermissionDeniedError",
    "NotFoundError",
    "TaskNotFoundError",
    "StepNotFoundError",
    "SuggestionNotFoundError",
    "ConflictError",
    "TaskNotAvailableError",
    "InvalidInputError",
]
