"""
AI Suggestion API Routes: review of AI-proposed tasks.

Approving creates a task from the final values; declining creates nothing.
Reviewing an already reviewed (or expired) suggestion returns 409 Conflict.
"""

from uuid import UUID

from fastapi import APIRouter, Query

from ..core.dependencies import CurrentUserDep, PolicyDep, SuggestionServiceDep
from ..models import SuggestionStatus
from ..schemas import (
    ApproveRequest,
    ApproveResponse,
    DeclineRequest,
    DeclineResponse,
    SuggestionListResponse,
    SuggestionResponse,
)
from ..services import (
    Permission,
    PermissionDeniedError,
    SuggestionOverrides,
    TaskPoolError,
)
from .errors import to_http_exception

router = APIRouter(prefix="/tasks/suggestions", tags=["suggestions"])


def _require_reviewer(current_user, policy) -> None:
    if not policy.can(current_user.id, Permission.SUGGESTIONS_REVIEW.value):
        raise to_http_exception(
            PermissionDeniedError(f"Missing permission: {Permission.SUGGESTIONS_REVIEW.value}")
        )


@router.get("", response_model=SuggestionListResponse)
async def list_suggestions(
    current_user: CurrentUserDep,
    service: SuggestionServiceDep,
    status: SuggestionStatus | None = SuggestionStatus.PENDING,
    source_type: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    """Suggestions for review, with counts per status."""
    items, total, counts = await service.list_suggestions(
        status=status,
        source_type=source_type,
        limit=limit,
        offset=offset,
    )
    return SuggestionListResponse(
        items=[SuggestionResponse.model_validate(s) for s in items],
        total=total,
        counts=counts,
    )


@router.post("/{suggestion_id}/approve", response_model=ApproveResponse)
async def approve_suggestion(
    suggestion_id: UUID,
    current_user: CurrentUserDep,
    policy: PolicyDep,
    service: SuggestionServiceDep,
    request: ApproveRequest | None = None,
):
    """Approve a suggestion, optionally overriding AI-suggested fields."""
    _require_reviewer(current_user, policy)
    overrides = SuggestionOverrides(**request.model_dump()) if request else None

    try:
        result = await service.approve(suggestion_id, current_user.id, overrides)
    except TaskPoolError as e:
        raise to_http_exception(e)

    return ApproveResponse(
        task_id=result.task_id,
        was_modified=result.was_modified,
        modifications=result.modifications,
    )


@router.post("/{suggestion_id}/decline", response_model=DeclineResponse)
async def decline_suggestion(
    suggestion_id: UUID,
    request: DeclineRequest,
    current_user: CurrentUserDep,
    policy: PolicyDep,
    service: SuggestionServiceDep,
):
    _require_reviewer(current_user, policy)

    try:
        result = await service.decline(
            suggestion_id,
            current_user.id,
            reason=request.reason,
            category=request.category,
        )
    except TaskPoolError as e:
        raise to_http_exception(e)

    return DeclineResponse(decline_category=result.decline_category)
