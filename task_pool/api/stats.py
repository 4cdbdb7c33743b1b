"""API routes for pool statistics and action types."""

from dataclasses import asdict

from fastapi import APIRouter, status

from ..core.dependencies import CurrentUserDep, EngineDep, StatsDep
from ..schemas import ActionTypeCreate, ActionTypeResponse, StatsResponse
from ..services import TaskPoolError
from .errors import to_http_exception

router = APIRouter(prefix="/taskpool", tags=["taskpool"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(current_user: CurrentUserDep, stats: StatsDep):
    """Counts by status, pool, personal queues, overdue, action type and priority."""
    result = await stats.get_stats(current_user.id)
    return StatsResponse(**asdict(result))


@router.get("/action-types", response_model=list[ActionTypeResponse])
async def list_action_types(
    current_user: CurrentUserDep,
    engine: EngineDep,
    include_inactive: bool = False,
):
    action_types = await engine.list_action_types(include_inactive=include_inactive)
    return [ActionTypeResponse.model_validate(a) for a in action_types]


@router.post(
    "/action-types",
    response_model=ActionTypeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_action_type(
    request: ActionTypeCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
):
    """Create an action type. Requires tasks:manage_action_types."""
    try:
        action_type = await engine.create_action_type(
            current_user.id,
            code=request.code,
            label=request.label,
            description=request.description,
            color=request.color,
            icon=request.icon,
            sort_order=request.sort_order,
        )
    except TaskPoolError as e:
        raise to_http_exception(e)
    return ActionTypeResponse.model_validate(action_type)
