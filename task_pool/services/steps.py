"""
Step Checklist: ordered sub-steps on a task.

Step numbers for a task always form a gapless 1..N sequence. Renumbering
after a delete or reorder is a single batch UPDATE, so a concurrent reader
never sees a half-renumbered list.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import ActivityAction, Task, TaskStep
from .activity import ActivityLog
from .errors import InvalidInputError, StepNotFoundError, TaskNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class StepToggleResult:
    step: TaskStep
    # True when this toggle completed the last open step; the task itself is not completed
    all_steps_completed: bool


class StepChecklist:
    def __init__(self, session: AsyncSession, organization_id: UUID):
        self._session = session
        self._organization_id = organization_id
        self._activity = ActivityLog(session)

    async def list_steps(self, task_id: UUID) -> Sequence[TaskStep]:
        await self._get_task_or_raise(task_id)
        return await self._ordered_steps(task_id)

    async def add_step(
        self,
        task_id: UUID,
        actor_id: UUID,
        description: str,
        assigned_to: UUID | None = None,
    ) -> TaskStep:
        """Append a step at max(step_number) + 1."""
        description = (description or "").strip()
        if not description:
            raise InvalidInputError("Step description is required")

        await self._get_task_or_raise(task_id)

        result = await self._session.execute(
            select(func.coalesce(func.max(TaskStep.step_number), 0)).where(
                TaskStep.task_id == task_id
            )
        )
        step_number = result.scalar_one() + 1

        step = TaskStep(
            task_id=task_id,
            step_number=step_number,
            description=description,
            assigned_to=assigned_to,
            is_completed=False,
        )
        self._session.add(step)
        await self._session.flush()

        self._activity.record(
            task_id,
            ActivityAction.STEP_ADDED,
            actor_id,
            {"step_id": step.id, "step_number": step_number, "description": description},
        )
        await self._session.flush()
        return step

    async def update_step(
        self,
        task_id: UUID,
        step_id: UUID,
        actor_id: UUID,
        description: str | None = None,
        assigned_to: UUID | None = None,
    ) -> TaskStep:
        step = await self._get_step_or_raise(task_id, step_id)

        changes: dict[str, object] = {}
        if description is not None:
            description = description.strip()
            if not description:
                raise InvalidInputError("Step description cannot be empty")
            if description != step.description:
                changes["description"] = {"from": step.description, "to": description}
                step.description = description
        if assigned_to is not None and assigned_to != step.assigned_to:
            changes["assigned_to"] = {"from": step.assigned_to, "to": assigned_to}
            step.assigned_to = assigned_to

        self._activity.record(
            task_id,
            ActivityAction.STEP_UPDATED,
            actor_id,
            {"step_id": step_id, "step_number": step.step_number, "changes": changes},
        )
        await self._session.flush()
        return step

    async def toggle_step(
        self,
        task_id: UUID,
        step_id: UUID,
        actor_id: UUID,
        completed: bool | None = None,
    ) -> StepToggleResult:
        """Flip completion (or set it explicitly) and report whether all steps are done."""
        step = await self._get_step_or_raise(task_id, step_id)

        now_completed = (not step.is_completed) if completed is None else completed
        # Setting the current state again is not a transition: keep attribution, log nothing
        if now_completed != step.is_completed:
            step.is_completed = now_completed
            if now_completed:
                step.completed_by = actor_id
                step.completed_at = datetime.now(timezone.utc)
            else:
                step.completed_by = None
                step.completed_at = None

            action = (
                ActivityAction.STEP_COMPLETED if now_completed else ActivityAction.STEP_UNCOMPLETED
            )
            self._activity.record(
                task_id,
                action,
                actor_id,
                {"step_id": step_id, "step_number": step.step_number},
            )
            await self._session.flush()

        all_done = False
        if now_completed:
            remaining = await self._session.execute(
                select(func.count()).where(
                    TaskStep.task_id == task_id,
                    TaskStep.is_completed.is_(False),
                )
            )
            all_done = remaining.scalar_one() == 0

        return StepToggleResult(step=step, all_steps_completed=all_done)

    async def delete_step(self, task_id: UUID, step_id: UUID, actor_id: UUID) -> bool:
        step = await self._get_step_or_raise(task_id, step_id)
        step_number = step.step_number
        description = step.description

        await self._session.delete(step)
        await self._session.flush()

        remaining = await self._ordered_steps(task_id)
        await self._renumber(task_id, [s.id for s in remaining])

        self._activity.record(
            task_id,
            ActivityAction.STEP_DELETED,
            actor_id,
            {"step_id": step_id, "step_number": step_number, "description": description},
        )
        await self._session.flush()

        logger.info(f"Step {step_number} deleted from task {task_id} by {actor_id}")
        return True

    async def reorder_steps(
        self,
        task_id: UUID,
        ordered_ids: Sequence[UUID],
        actor_id: UUID,
    ) -> Sequence[TaskStep]:
        """
        Renumber steps to follow ``ordered_ids``.

        Ids that do not belong to the task are ignored. Steps left out of the
        list follow the listed ones in their previous order.
        """
        await self._get_task_or_raise(task_id)
        current = await self._ordered_steps(task_id)
        known = {s.id for s in current}

        order: list[UUID] = []
        for step_id in ordered_ids:
            if step_id in known and step_id not in order:
                order.append(step_id)
        order += [s.id for s in current if s.id not in order]

        await self._renumber(task_id, order)

        self._activity.record(
            task_id,
            ActivityAction.STEPS_REORDERED,
            actor_id,
            {"order": order},
        )
        await self._session.flush()
        return await self._ordered_steps(task_id)

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    async def _renumber(self, task_id: UUID, ordered_ids: Sequence[UUID]) -> None:
        """Set step_number = position + 1 for every step in one statement."""
        if not ordered_ids:
            return
        await self._session.execute(
            update(TaskStep)
            .where(TaskStep.task_id == task_id, TaskStep.id.in_(ordered_ids))
            .values(
                step_number=case(
                    *[(TaskStep.id == step_id, index + 1) for index, step_id in enumerate(ordered_ids)],
                    else_=TaskStep.step_number,
                )
            )
            .execution_options(synchronize_session=False)
        )

    async def _ordered_steps(self, task_id: UUID) -> Sequence[TaskStep]:
        result = await self._session.execute(
            select(TaskStep)
            .where(TaskStep.task_id == task_id)
            .order_by(TaskStep.step_number, TaskStep.created_at)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def _get_task_or_raise(self, task_id: UUID) -> Task:
        result = await self._session.execute(
            select(Task).where(
                Task.id == task_id,
                Task.organization_id == self._organization_id,
            )
        )
        task = result.scalar_one_or_none()
        if not task:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return task

    async def _get_step_or_raise(self, task_id: UUID, step_id: UUID) -> TaskStep:
        await self._get_task_or_raise(task_id)
        result = await self._session.execute(
            select(TaskStep).where(TaskStep.id == step_id, TaskStep.task_id == task_id)
            .execution_options(populate_existing=True)
        )
        step = result.scalar_one_or_none()
        if not step:
            raise StepNotFoundError(f"Step {step_id} not found on task {task_id}")
        return step
