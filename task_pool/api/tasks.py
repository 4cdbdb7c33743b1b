"""
Task Pool API Routes: claim, assignment, handoff and completion.

Endpoints:
1. GET/POST /taskpool/tasks - List (by view) and create tasks
2. POST/DELETE /taskpool/tasks/{id}/claim - Claim and release
3. POST/DELETE /taskpool/tasks/{id}/assign - Assign and unassign
4. POST/DELETE/GET /taskpool/tasks/{id}/handoff - Initiate, accept, history
5. POST /taskpool/tasks/{id}/complete - Complete, optionally routing a follow-up
"""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query, status

from ..core.dependencies import CurrentUserDep, EngineDep, PolicyDep
from ..models import ActivityAction, TaskPriority, TaskStatus
from ..schemas import (
    ActivityResponse,
    AIFeedbackRequest,
    AIFeedbackResponse,
    AssignRequest,
    CompleteRequest,
    CompletionResponse,
    HandoffHistoryResponse,
    HandoffRequest,
    HandoffResponse,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
)
from ..services import (
    CreateTaskInput,
    HandoffResult,
    Permission,
    PermissionDeniedError,
    RouteSpec,
    TaskFilters,
    TaskPoolError,
)
from .errors import to_http_exception

router = APIRouter(prefix="/taskpool/tasks", tags=["tasks"])


def build_handoff_response(result: HandoffResult) -> HandoffResponse:
    return HandoffResponse(
        task=TaskResponse.model_validate(result.task),
        history_entry=(
            HandoffHistoryResponse.model_validate(result.history_entry)
            if result.history_entry
            else None
        ),
    )


# =============================================================================
# CREATE & READ
# =============================================================================


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    current_user: CurrentUserDep,
    engine: EngineDep,
    view: Literal["pool", "my_claimed", "my_assigned", "overdue"] | None = None,
    action_type_id: UUID | None = None,
    status: TaskStatus | None = None,
    claimed_by: UUID | None = None,
    client_id: UUID | None = None,
    priority: TaskPriority | None = None,
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=50, ge=1, le=200, description="Items per page"),
):
    """List tasks for a view (pool, my_claimed, my_assigned, overdue) with filters."""
    try:
        tasks, total = await engine.list_tasks(
            current_user.id,
            TaskFilters(
                view=view,
                action_type_id=action_type_id,
                status=status,
                claimed_by=claimed_by,
                client_id=client_id,
                priority=priority,
                limit=page_size,
                offset=(page - 1) * page_size,
            ),
        )
    except TaskPoolError as e:
        raise to_http_exception(e)

    return TaskListResponse.create(
        items=[TaskResponse.model_validate(t) for t in tasks],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    request: TaskCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
    policy: PolicyDep,
):
    """Create a task. It starts open and unclaimed."""
    if not policy.can(current_user.id, Permission.TASKS_CREATE):
        raise to_http_exception(
            PermissionDeniedError(f"Missing permission: {Permission.TASKS_CREATE.value}")
        )
    try:
        task = await engine.create_task(
            CreateTaskInput(
                title=request.title,
                description=request.description,
                priority=request.priority,
                action_type_id=request.action_type_id,
                client_id=request.client_id,
                assigned_to=request.assigned_to,
                due_date=request.due_date,
                source_type=request.source_type,
                source_metadata=request.source_metadata,
            ),
            current_user.id,
        )
    except TaskPoolError as e:
        raise to_http_exception(e)
    return TaskResponse.model_validate(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    try:
        task = await engine.get_task(task_id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return TaskResponse.model_validate(task)


# =============================================================================
# CLAIM
# =============================================================================


@router.post(
    "/{task_id}/claim",
    response_model=TaskResponse,
    summary="Claim a task",
    description="""
    Claim an open, unclaimed task. Exactly one concurrent claimant wins;
    the others receive 409 Conflict.
    """,
)
async def claim_task(task_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    try:
        task = await engine.claim(task_id, current_user.id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}/claim", response_model=TaskResponse, summary="Release a claim")
async def release_task(task_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    """Only the claimant may release."""
    try:
        task = await engine.release(task_id, current_user.id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return TaskResponse.model_validate(task)


# =============================================================================
# ASSIGNMENT
# =============================================================================


@router.post("/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: UUID,
    request: AssignRequest,
    current_user: CurrentUserDep,
    engine: EngineDep,
):
    """Assign a task. Requires the tasks:assign permission."""
    try:
        task = await engine.assign(task_id, request.assigned_to, current_user.id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}/assign", response_model=TaskResponse)
async def unassign_task(task_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    try:
        task = await engine.unassign(task_id, current_user.id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return TaskResponse.model_validate(task)


# =============================================================================
# HANDOFF
# =============================================================================


@router.post(
    "/{task_id}/handoff",
    response_model=HandoffResponse,
    summary="Initiate a handoff",
    description="""
    Offer the task to another user. The caller's claim is released and the
    recipient becomes the assignee; the recipient must accept to take the claim.
    """,
)
async def initiate_handoff(
    task_id: UUID,
    request: HandoffRequest,
    current_user: CurrentUserDep,
    engine: EngineDep,
):
    try:
        result = await engine.initiate_handoff(
            task_id,
            request.handoff_to,
            current_user.id,
            notes=request.notes,
        )
    except TaskPoolError as e:
        raise to_http_exception(e)
    return build_handoff_response(result)


@router.delete("/{task_id}/handoff", response_model=HandoffResponse, summary="Accept a handoff")
async def accept_handoff(task_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    """Only the named recipient may accept."""
    try:
        result = await engine.accept_handoff(task_id, current_user.id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return build_handoff_response(result)


@router.get("/{task_id}/handoff", response_model=list[HandoffHistoryResponse])
async def get_handoff_history(task_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    try:
        history = await engine.get_handoff_history(task_id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return [HandoffHistoryResponse.model_validate(h) for h in history]


# =============================================================================
# COMPLETION
# =============================================================================


@router.post(
    "/{task_id}/complete",
    response_model=CompletionResponse,
    summary="Complete a task",
    description="""
    Complete a task, optionally creating a follow-up task of another action type.

    Completion always commits. If the follow-up cannot be created the response
    carries `routing_error` and `routed_task` is null.
    """,
)
async def complete_task(
    task_id: UUID,
    current_user: CurrentUserDep,
    engine: EngineDep,
    request: CompleteRequest | None = None,
):
    route = None
    if request and request.route_to:
        route = RouteSpec(
            action_type=request.route_to.action_type,
            title=request.route_to.title,
            description=request.route_to.description,
        )

    try:
        result = await engine.complete(task_id, current_user.id, route)
    except TaskPoolError as e:
        raise to_http_exception(e)

    return CompletionResponse(
        completed_task=TaskResponse.model_validate(result.completed_task),
        routed_task=(
            TaskResponse.model_validate(result.routed_task) if result.routed_task else None
        ),
        routing_error=result.routing_error,
    )


# =============================================================================
# ACTIVITY & AI FEEDBACK
# =============================================================================


@router.get("/{task_id}/activity", response_model=list[ActivityResponse])
async def get_activity(
    task_id: UUID,
    current_user: CurrentUserDep,
    engine: EngineDep,
    action: ActivityAction | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    """Activity for a task, newest first."""
    try:
        entries = await engine.get_activity(task_id, action=action, limit=limit, offset=offset)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return [ActivityResponse.model_validate(entry) for entry in entries]


@router.post(
    "/{task_id}/ai-feedback",
    response_model=AIFeedbackResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_ai_feedback(
    task_id: UUID,
    request: AIFeedbackRequest,
    current_user: CurrentUserDep,
    engine: EngineDep,
):
    """Confirm or correct the AI's action type for a task."""
    try:
        feedback = await engine.submit_ai_feedback(
            task_id,
            current_user.id,
            was_correct=request.was_correct,
            corrected_action_type_id=request.corrected_action_type_id,
            feedback_text=request.feedback_text,
        )
    except TaskPoolError as e:
        raise to_http_exception(e)
    return AIFeedbackResponse.model_validate(feedback)
