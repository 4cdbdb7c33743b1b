"""API routes for the step checklist on a task."""

from uuid import UUID

from fastapi import APIRouter, status

from ..core.dependencies import CurrentUserDep, StepsDep
from ..schemas import (
    StepCreate,
    StepDeleteResponse,
    StepReorderRequest,
    StepResponse,
    StepToggleResponse,
    StepUpdate,
)
from ..services import TaskPoolError
from .errors import to_http_exception

router = APIRouter(prefix="/taskpool/tasks/{task_id}/steps", tags=["steps"])


@router.get("", response_model=list[StepResponse])
async def list_steps(task_id: UUID, current_user: CurrentUserDep, steps: StepsDep):
    """Steps ordered by step number."""
    try:
        items = await steps.list_steps(task_id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return [StepResponse.model_validate(s) for s in items]


@router.post("", response_model=StepResponse, status_code=status.HTTP_201_CREATED)
async def add_step(
    task_id: UUID,
    request: StepCreate,
    current_user: CurrentUserDep,
    steps: StepsDep,
):
    try:
        step = await steps.add_step(
            task_id,
            current_user.id,
            request.description,
            assigned_to=request.assigned_to,
        )
    except TaskPoolError as e:
        raise to_http_exception(e)
    return StepResponse.model_validate(step)


@router.put("", response_model=list[StepResponse], summary="Reorder steps")
async def reorder_steps(
    task_id: UUID,
    request: StepReorderRequest,
    current_user: CurrentUserDep,
    steps: StepsDep,
):
    """Renumber steps in the given order. Unknown ids are ignored."""
    try:
        items = await steps.reorder_steps(task_id, request.step_ids, current_user.id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return [StepResponse.model_validate(s) for s in items]


@router.patch(
    "/{step_id}",
    response_model=StepToggleResponse,
    summary="Update or toggle a step",
    description="""
    Update the description or assignee, and/or set `is_completed`.

    `all_steps_completed` is true when this call completed the last open step.
    The task itself is not completed automatically.
    """,
)
async def update_step(
    task_id: UUID,
    step_id: UUID,
    request: StepUpdate,
    current_user: CurrentUserDep,
    steps: StepsDep,
):
    try:
        step = None
        if request.description is not None or request.assigned_to is not None:
            step = await steps.update_step(
                task_id,
                step_id,
                current_user.id,
                description=request.description,
                assigned_to=request.assigned_to,
            )

        all_done = False
        if request.is_completed is not None or step is None:
            result = await steps.toggle_step(
                task_id,
                step_id,
                current_user.id,
                completed=request.is_completed,
            )
            step, all_done = result.step, result.all_steps_completed
    except TaskPoolError as e:
        raise to_http_exception(e)

    return StepToggleResponse(
        step=StepResponse.model_validate(step),
        all_steps_completed=all_done,
    )


@router.delete("/{step_id}", response_model=StepDeleteResponse)
async def delete_step(
    task_id: UUID,
    step_id: UUID,
    current_user: CurrentUserDep,
    steps: StepsDep,
):
    """Delete a step; the remaining steps are renumbered 1..N."""
    try:
        await steps.delete_step(task_id, step_id, current_user.id)
    except TaskPoolError as e:
        raise to_http_exception(e)
    return StepDeleteResponse()
