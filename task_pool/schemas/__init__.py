"""Task Pool API Schemas.

Schemas are organized by domain:
- base: Common configuration, pagination, errors
- tasks: Tasks, steps, handoffs, activity, action types, stats
- suggestions: AI suggestion review
"""

from .base import (
    ErrorDetail,
    ErrorResponse,
    PaginatedResponse,
    TaskPoolBaseModel,
)
from .suggestions import (
    ApproveRequest,
    ApproveResponse,
    DeclineRequest,
    DeclineResponse,
    SuggestionListResponse,
    SuggestionResponse,
)
from .tasks import (
    ActionTypeCreate,
    ActionTypeResponse,
    ActivityResponse,
    AIFeedbackRequest,
    AIFeedbackResponse,
    AssignRequest,
    CompleteRequest,
    CompletionResponse,
    HandoffHistoryResponse,
    HandoffRequest,
    HandoffResponse,
    RouteRequest,
    StatsResponse,
    StepCreate,
    StepDeleteResponse,
    StepReorderRequest,
    StepResponse,
    StepToggleResponse,
    StepUpdate,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
)

__all__ = [
    # Base
    "TaskPoolBaseModel",
    "PaginatedResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Tasks
    "TaskCreate",
    "TaskResponse",
    "TaskListResponse",
    "AssignRequest",
    "HandoffRequest",
    "HandoffResponse",
    "HandoffHistoryResponse",
    "RouteRequest",
    "CompleteRequest",
    "CompletionResponse",
    "AIFeedbackRequest",
    "AIFeedbackResponse",
    "ActivityResponse",
    "ActionTypeCreate",
    "ActionTypeResponse",
    "StatsResponse",
    # Steps
    "StepCreate",
    "StepUpdate",
    "StepReorderRequest",
    "StepResponse",
    "StepToggleResponse",
    "StepDeleteResponse",
    # Suggestions
    "SuggestionResponse",
    "SuggestionListResponse",
    "ApproveRequest",
    "ApproveResponse",
    "DeclineRequest",
    "DeclineResponse",
]
