"""
Task Pool Engine: claim, assignment, handoff and completion of shared work.

This module owns the task state machine:
- A task has at most one claimant, enforced by conditional updates
- Assignment is formal ownership, independent of the claim
- Handoffs are two-phase: initiate, then the recipient accepts
- Completion is terminal and may spawn a routed follow-up task
- Every mutation appends to the activity log in the same transaction

Notifications and learning feedback are dispatched fire-and-forget and can
never fail or roll back the transition that triggered them.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    ActivityAction,
    AITrainingFeedback,
    Task,
    TaskActionType,
    TaskActivityLog,
    TaskHandoffHistory,
    TaskPriority,
    TaskSourceType,
    TaskStatus,
)
from .activity import ActivityLog
from .dispatch import SideEffectDispatcher
from .errors import (
    ConflictError,
    InvalidInputError,
    PermissionDeniedError,
    TaskNotAvailableError,
    TaskNotFoundError,
    TaskPoolError,
)
from .learning import LearningEngine
from .notifications import LoggingNotificationSink, NotificationSink
from .permissions import Permission, PermissionOracle

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (TaskStatus.OPEN, TaskStatus.IN_PROGRESS)


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class CreateTaskInput:
    """Input for creating a task. Used by manual creation, approval and routing."""
    title: str
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    action_type_id: UUID | None = None
    client_id: UUID | None = None
    assigned_to: UUID | None = None
    due_date: date | None = None
    source_type: TaskSourceType = TaskSourceType.MANUAL
    source_metadata: dict[str, Any] = field(default_factory=dict)
    ai_confidence: float | None = None
    ai_extracted_data: dict[str, Any] = field(default_factory=dict)
    routed_from_task_id: UUID | None = None


@dataclass
class RouteSpec:
    """Follow-up to spawn when a task completes."""
    action_type: str  # Action type id or code
    title: str | None = None
    description: str | None = None


@dataclass
class TaskFilters:
    """Listing filters. ``view`` is one of pool, my_claimed, my_assigned, overdue."""
    view: str | None = None
    action_type_id: UUID | None = None
    status: TaskStatus | None = None
    claimed_by: UUID | None = None
    client_id: UUID | None = None
    priority: TaskPriority | None = None
    limit: int = 50
    offset: int = 0


@dataclass
class HandoffResult:
    task: Task
    history_entry: TaskHandoffHistory | None


@dataclass
class CompletionResult:
    """Completion always succeeds; routing is reported separately."""
    completed_task: Task
    routed_task: Task | None = None
    routing_error: str | None = None


# =============================================================================
# TASK POOL ENGINE
# =============================================================================


class TaskPoolEngine:
    """
    Core engine for the shared task pool.

    Guarantees:
    1. claimed_by is null or exactly one user (conditional UPDATE, row-count checked)
    2. Handoff fields are set only while a transfer awaits acceptance
    3. completed_at is set exactly when status becomes completed
    4. Every state transition has a matching activity log entry
    """

    def __init__(
        self,
        session: AsyncSession,
        organization_id: UUID,
        permissions: PermissionOracle,
        notifier: NotificationSink | None = None,
        learning: LearningEngine | None = None,
        dispatcher: SideEffectDispatcher | None = None,
    ):
        self._session = session
        self._organization_id = organization_id
        self._permissions = permissions
        self._notifier = notifier or LoggingNotificationSink()
        self._learning = learning
        self._dispatcher = dispatcher or SideEffectDispatcher()
        self._activity = ActivityLog(session)

    @property
    def organization_id(self) -> UUID:
        return self._organization_id

    # =========================================================================
    # CREATE & READ
    # =========================================================================

    async def create_task(self, input: CreateTaskInput, actor_id: UUID) -> Task:
        """
        Create an open, unclaimed task.

        Flow:
        1. Validate title
        2. INSERT task stamped with this engine's organization
        3. Log "created"
        4. Notify the assignee, if one was given
        """
        title = (input.title or "").strip()
        if not title:
            raise InvalidInputError("Task title is required")

        now = _now()
        task = Task(
            organization_id=self._organization_id,
            title=title,
            description=input.description,
            status=TaskStatus.OPEN,
            priority=TaskPriority(input.priority),
            action_type_id=input.action_type_id,
            client_id=input.client_id,
            due_date=input.due_date,
            source_type=TaskSourceType(input.source_type),
            source_metadata=dict(input.source_metadata or {}),
            ai_confidence=input.ai_confidence,
            ai_extracted_data=dict(input.ai_extracted_data or {}),
            routed_from_task_id=input.routed_from_task_id,
            created_by=actor_id,
        )
        if input.assigned_to:
            task.assigned_to = input.assigned_to
            task.assigned_at = now
            task.assigned_by = actor_id

        self._session.add(task)
        await self._session.flush()

        details: dict[str, Any] = {"title": title, "source_type": task.source_type}
        if input.routed_from_task_id:
            details["routed_from_task_id"] = input.routed_from_task_id
        self._activity.record(task.id, ActivityAction.CREATED, actor_id, details)
        await self._session.flush()

        if task.assigned_to:
            self._notify_assigned(task, task.assigned_to, actor_id)

        logger.info(f"Task {task.id} created by {actor_id}: {title}")
        return task

    async def get_task(self, task_id: UUID) -> Task:
        return await self._get_task_or_raise(task_id)

    async def list_tasks(
        self,
        actor_id: UUID,
        filters: TaskFilters | None = None,
    ) -> tuple[Sequence[Task], int]:
        """Tasks matching a view and filters, with the unpaged total."""
        filters = filters or TaskFilters()
        conditions = [Task.organization_id == self._organization_id]

        if filters.view == "pool":
            conditions += [
                Task.status == TaskStatus.OPEN,
                Task.claimed_by.is_(None),
                Task.assigned_to.is_(None),
            ]
        elif filters.view == "my_claimed":
            conditions += [
                Task.claimed_by == actor_id,
                Task.status != TaskStatus.COMPLETED,
            ]
        elif filters.view == "my_assigned":
            conditions += [
                Task.assigned_to == actor_id,
                Task.status != TaskStatus.COMPLETED,
            ]
        elif filters.view == "overdue":
            conditions += [
                Task.due_date < _now().date(),
                Task.status != TaskStatus.COMPLETED,
            ]
        elif filters.view:
            raise InvalidInputError(f"Unknown view: {filters.view}")

        if filters.action_type_id:
            conditions.append(Task.action_type_id == filters.action_type_id)
        if filters.status:
            conditions.append(Task.status == filters.status)
        if filters.claimed_by:
            conditions.append(Task.claimed_by == filters.claimed_by)
        if filters.client_id:
            conditions.append(Task.client_id == filters.client_id)
        if filters.priority:
            conditions.append(Task.priority == filters.priority)

        total_result = await self._session.execute(
            select(func.count()).select_from(Task).where(*conditions)
        )
        total = total_result.scalar_one()

        result = await self._session.execute(
            select(Task)
            .where(*conditions)
            .order_by(Task.created_at.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        return result.scalars().all(), total

    async def get_activity(
        self,
        task_id: UUID,
        action: ActivityAction | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[TaskActivityLog]:
        """Activity for a task, newest first."""
        await self._get_task_or_raise(task_id)
        return await self._activity.get_activity(task_id, action=action, limit=limit, offset=offset)

    # =========================================================================
    # CLAIM
    # =========================================================================

    async def claim(self, task_id: UUID, actor_id: UUID) -> Task:
        """
        Claim an open, unclaimed task.

        A single conditional UPDATE decides the winner; two concurrent
        claimants can never both observe claimed_by=null.
        """
        now = _now()
        result = await self._session.execute(
            update(Task)
            .where(
                Task.id == task_id,
                Task.organization_id == self._organization_id,
                Task.status == TaskStatus.OPEN,
                Task.claimed_by.is_(None),
            )
            .values(claimed_by=actor_id, claimed_at=now, status=TaskStatus.IN_PROGRESS)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            task = await self._reload(task_id)
            if task is None:
                raise TaskNotFoundError(f"Task {task_id} not found")
            if task.claimed_by is not None:
                raise ConflictError(f"Task {task_id} is already claimed")
            if task.status != TaskStatus.OPEN:
                raise TaskNotAvailableError(
                    f"Task {task_id} is {_value(task.status)} and cannot be claimed"
                )
            raise ConflictError(f"Task {task_id} was modified concurrently")

        self._activity.record(task_id, ActivityAction.CLAIMED, actor_id, {"claimed_by": actor_id})
        await self._session.flush()

        logger.info(f"Task {task_id} claimed by {actor_id}")
        return await self._reload_or_raise(task_id)

    async def release(self, task_id: UUID, actor_id: UUID) -> Task:
        """Give a claimed task back to the pool. Only the claimant may release."""
        task = await self._get_task_or_raise(task_id)

        if task.claimed_by != actor_id:
            raise PermissionDeniedError("Only the claimant can release this task")
        if task.status != TaskStatus.IN_PROGRESS:
            raise ConflictError(
                f"Task {task_id} is {_value(task.status)} and cannot be released"
            )

        result = await self._session.execute(
            update(Task)
            .where(
                Task.id == task_id,
                Task.claimed_by == actor_id,
                Task.status == TaskStatus.IN_PROGRESS,
            )
            .values(claimed_by=None, claimed_at=None, status=TaskStatus.OPEN)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"Task {task_id} was modified concurrently")

        self._activity.record(task_id, ActivityAction.RELEASED, actor_id, {"released_by": actor_id})
        await self._session.flush()

        logger.info(f"Task {task_id} released by {actor_id}")
        return await self._reload_or_raise(task_id)

    # =========================================================================
    # ASSIGNMENT
    # =========================================================================

    async def assign(self, task_id: UUID, assignee_id: UUID, actor_id: UUID) -> Task:
        """Set formal ownership. The claim is left untouched."""
        self._require(actor_id, Permission.TASKS_ASSIGN)
        if not assignee_id:
            raise InvalidInputError("Assignee is required")

        task = await self._get_task_or_raise(task_id)
        previous = task.assigned_to

        task.assigned_to = assignee_id
        task.assigned_at = _now()
        task.assigned_by = actor_id

        details = {
            "assigned_to": assignee_id,
            "assigned_by": actor_id,
            "previous_assignee": previous,
        }
        self._activity.record(task_id, ActivityAction.ASSIGNED, actor_id, details)
        await self._session.flush()

        self._notify_assigned(task, assignee_id, actor_id)
        self._log_assignment_pattern(task_id, "assigned", actor_id, details)

        logger.info(f"Task {task_id} assigned to {assignee_id} by {actor_id}")
        return task

    async def unassign(self, task_id: UUID, actor_id: UUID) -> Task:
        self._require(actor_id, Permission.TASKS_ASSIGN)

        task = await self._get_task_or_raise(task_id)
        previous = task.assigned_to

        task.assigned_to = None
        task.assigned_at = None
        task.assigned_by = None

        details = {"previous_assignee": previous, "unassigned_by": actor_id}
        self._activity.record(task_id, ActivityAction.UNASSIGNED, actor_id, details)
        await self._session.flush()

        self._log_assignment_pattern(task_id, "unassigned", actor_id, details)

        logger.info(f"Task {task_id} unassigned by {actor_id} (was {previous})")
        return task

    # =========================================================================
    # HANDOFF (TWO-PHASE)
    # =========================================================================

    async def initiate_handoff(
        self,
        task_id: UUID,
        to_user_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> HandoffResult:
        """
        Phase 1: offer the task to another user.

        Flow:
        1. Validate recipient and task state
        2. Verify actor holds the task (claimant, or assignee of an unclaimed task)
        3. Release the claim, assign the recipient, set handoff_* fields
        4. INSERT handoff history row (chain of custody)
        5. Log "handed_off"

        The task stays in progress so nobody else can claim it meanwhile.
        """
        # Step 1: Validate
        if not to_user_id:
            raise InvalidInputError("Handoff recipient is required")
        if to_user_id == actor_id:
            raise InvalidInputError("Cannot hand off a task to yourself")

        task = await self._get_task_or_raise(task_id)
        if task.status not in ACTIVE_STATUSES:
            raise ConflictError(
                f"Task {task_id} is {_value(task.status)} and cannot be handed off"
            )
        if task.handoff_to is not None:
            raise ConflictError(f"Task {task_id} already has a pending handoff")

        # Step 2: Holder check
        holds_task = task.claimed_by == actor_id or (
            task.claimed_by is None and task.assigned_to == actor_id
        )
        if not holds_task:
            raise PermissionDeniedError("Only the current holder can hand off this task")

        # Step 3: Release and reassign together
        now = _now()
        task.handoff_to = to_user_id
        task.handoff_from = actor_id
        task.handoff_notes = notes
        task.handoff_at = now
        task.claimed_by = None
        task.claimed_at = None
        task.assigned_to = to_user_id
        task.assigned_at = now
        task.assigned_by = actor_id
        task.status = TaskStatus.IN_PROGRESS

        # Step 4: Chain of custody
        history = TaskHandoffHistory(
            task_id=task_id,
            from_user_id=actor_id,
            to_user_id=to_user_id,
            notes=notes,
            created_at=now,
        )
        self._session.add(history)

        # Step 5: Activity
        self._activity.record(
            task_id,
            ActivityAction.HANDED_OFF,
            actor_id,
            {"from_user_id": actor_id, "to_user_id": to_user_id, "notes": notes},
        )
        await self._session.flush()

        self._notify_assigned(task, to_user_id, actor_id)

        logger.info(f"Task {task_id} handed off from {actor_id} to {to_user_id}")
        return HandoffResult(task=task, history_entry=history)

    async def accept_handoff(self, task_id: UUID, actor_id: UUID) -> HandoffResult:
        """Phase 2: the named recipient takes the claim."""
        task = await self._get_task_or_raise(task_id)

        if task.handoff_to is None:
            raise ConflictError(f"Task {task_id} has no pending handoff")
        if task.handoff_to != actor_id:
            raise PermissionDeniedError("Only the handoff recipient can accept")

        from_user_id = task.handoff_from
        result = await self._session.execute(
            update(Task)
            .where(Task.id == task_id, Task.handoff_to == actor_id)
            .values(
                handoff_to=None,
                handoff_from=None,
                handoff_notes=None,
                handoff_at=None,
                claimed_by=actor_id,
                claimed_at=_now(),
                status=TaskStatus.IN_PROGRESS,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"Handoff for task {task_id} is no longer pending")

        self._activity.record(
            task_id,
            ActivityAction.HANDOFF_ACCEPTED,
            actor_id,
            {"from_user_id": from_user_id},
        )
        await self._session.flush()

        history = await self._session.execute(
            select(TaskHandoffHistory)
            .where(TaskHandoffHistory.task_id == task_id)
            .order_by(TaskHandoffHistory.created_at.desc())
            .limit(1)
        )

        logger.info(f"Handoff of task {task_id} accepted by {actor_id}")
        return HandoffResult(
            task=await self._reload_or_raise(task_id),
            history_entry=history.scalar_one_or_none(),
        )

    async def get_handoff_history(self, task_id: UUID) -> Sequence[TaskHandoffHistory]:
        """Handoff chain for a task, newest first."""
        await self._get_task_or_raise(task_id)
        result = await self._session.execute(
            select(TaskHandoffHistory)
            .where(TaskHandoffHistory.task_id == task_id)
            .order_by(TaskHandoffHistory.created_at.desc())
        )
        return result.scalars().all()

    # =========================================================================
    # COMPLETION & ROUTING
    # =========================================================================

    async def complete(
        self,
        task_id: UUID,
        actor_id: UUID,
        route: RouteSpec | None = None,
    ) -> CompletionResult:
        """
        Complete a task and optionally spawn a follow-up.

        Flow:
        1. Conditional UPDATE to completed (any open or in-progress task)
        2. Log "completed"
        3. If a route is given, create the follow-up inside a SAVEPOINT

        Routing failure rolls back only the savepoint; the completion stands
        and the failure is returned as routing_error.
        """
        # Step 1: Terminal transition
        result = await self._session.execute(
            update(Task)
            .where(
                Task.id == task_id,
                Task.organization_id == self._organization_id,
                Task.status.in_(ACTIVE_STATUSES),
            )
            .values(
                status=TaskStatus.COMPLETED,
                completed_at=_now(),
                handoff_to=None,
                handoff_from=None,
                handoff_notes=None,
                handoff_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            task = await self._reload(task_id)
            if task is None:
                raise TaskNotFoundError(f"Task {task_id} not found")
            raise ConflictError(f"Task {task_id} is already {_value(task.status)}")

        # Step 2: Activity
        self._activity.record(task_id, ActivityAction.COMPLETED, actor_id, {"completed_by": actor_id})
        await self._session.flush()
        completed = await self._reload_or_raise(task_id)
        logger.info(f"Task {task_id} completed by {actor_id}")

        # Step 3: Routing
        if route is None:
            return CompletionResult(completed_task=completed)

        routed, error = await self._route(completed, route, actor_id)
        return CompletionResult(
            completed_task=completed,
            routed_task=routed,
            routing_error=error,
        )

    async def _route(
        self,
        origin: Task,
        route: RouteSpec,
        actor_id: UUID,
    ) -> tuple[Task | None, str | None]:
        action_type = await self._resolve_action_type(route.action_type)
        if action_type is None:
            logger.warning(
                f"Routing from task {origin.id} skipped: unknown action type {route.action_type!r}"
            )
            return None, "invalid action type"

        try:
            async with self._session.begin_nested():
                routed = await self.create_task(
                    CreateTaskInput(
                        title=(route.title or "").strip() or f"Follow-up: {origin.title}",
                        description=route.description or origin.description,
                        priority=origin.priority,
                        action_type_id=action_type.id,
                        client_id=origin.client_id,
                        due_date=origin.due_date,
                        source_type=TaskSourceType.ROUTED,
                        source_metadata={"routed_from_task_id": str(origin.id)},
                        routed_from_task_id=origin.id,
                    ),
                    actor_id,
                )
                self._activity.record(
                    origin.id,
                    ActivityAction.ROUTED,
                    actor_id,
                    {"new_task_id": routed.id, "action_type_id": action_type.id},
                )
                await self._session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Routing from task {origin.id} failed: {e}")
            return None, "failed to create routed task"
        except TaskPoolError as e:
            logger.warning(f"Routing from task {origin.id} rejected: {e}")
            return None, f"failed to create routed task: {e}"

        logger.info(f"Task {origin.id} routed to new task {routed.id} ({action_type.code})")
        return routed, None

    # =========================================================================
    # AI CLASSIFICATION FEEDBACK
    # =========================================================================

    async def submit_ai_feedback(
        self,
        task_id: UUID,
        actor_id: UUID,
        was_correct: bool,
        corrected_action_type_id: UUID | None = None,
        feedback_text: str | None = None,
    ) -> AITrainingFeedback:
        """Record whether the AI picked the right action type, correcting it if not."""
        task = await self._get_task_or_raise(task_id)
        original = task.action_type_id

        if not was_correct and corrected_action_type_id:
            corrected = await self._get_action_type(corrected_action_type_id)
            if corrected is None:
                raise InvalidInputError(
                    f"Action type {corrected_action_type_id} does not exist"
                )

        feedback = AITrainingFeedback(
            task_id=task_id,
            original_action_type_id=original,
            corrected_action_type_id=corrected_action_type_id,
            feedback_text=feedback_text,
            was_correct=was_correct,
            submitted_by=actor_id,
        )
        self._session.add(feedback)

        if was_correct:
            self._activity.record(
                task_id,
                ActivityAction.AI_CONFIRMED,
                actor_id,
                {"ai_confidence": task.ai_confidence},
            )
        else:
            if corrected_action_type_id:
                task.action_type_id = corrected_action_type_id
            task.ai_corrected = True
            self._activity.record(
                task_id,
                ActivityAction.AI_CORRECTED,
                actor_id,
                {
                    "original_action_type_id": original,
                    "corrected_action_type_id": corrected_action_type_id,
                    "feedback_text": feedback_text,
                },
            )

        await self._session.flush()
        return feedback

    # =========================================================================
    # ACTION TYPES
    # =========================================================================

    async def list_action_types(self, include_inactive: bool = False) -> Sequence[TaskActionType]:
        query = select(TaskActionType).where(
            TaskActionType.organization_id == self._organization_id
        )
        if not include_inactive:
            query = query.where(TaskActionType.is_active.is_(True))
        result = await self._session.execute(
            query.order_by(TaskActionType.sort_order, TaskActionType.label)
        )
        return result.scalars().all()

    async def create_action_type(
        self,
        actor_id: UUID,
        code: str,
        label: str,
        description: str | None = None,
        color: str | None = None,
        icon: str | None = None,
        sort_order: int = 0,
    ) -> TaskActionType:
        self._require(actor_id, Permission.TASKS_MANAGE_ACTION_TYPES)

        code = (code or "").strip().upper()
        label = (label or "").strip()
        if not code or not label:
            raise InvalidInputError("Action type code and label are required")

        existing = await self._session.execute(
            select(TaskActionType.id).where(
                TaskActionType.organization_id == self._organization_id,
                TaskActionType.code == code,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"Action type {code} already exists")

        action_type = TaskActionType(
            organization_id=self._organization_id,
            code=code,
            label=label,
            description=description,
            color=color or "#6B7280",
            icon=icon or "clipboard",
            sort_order=sort_order,
            is_active=True,
        )
        self._session.add(action_type)
        await self._session.flush()

        logger.info(f"Action type {code} created by {actor_id}")
        return action_type

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

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

    async def _reload(self, task_id: UUID) -> Task | None:
        """Fetch a task, overwriting any stale copy in the identity map."""
        result = await self._session.execute(
            select(Task)
            .where(Task.id == task_id, Task.organization_id == self._organization_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _reload_or_raise(self, task_id: UUID) -> Task:
        task = await self._reload(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return task

    async def _get_action_type(self, action_type_id: UUID) -> TaskActionType | None:
        result = await self._session.execute(
            select(TaskActionType).where(
                TaskActionType.id == action_type_id,
                TaskActionType.organization_id == self._organization_id,
                TaskActionType.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def _resolve_action_type(self, ref: str | UUID) -> TaskActionType | None:
        """Look up an action type by id, or by code (case-insensitive)."""
        if isinstance(ref, UUID):
            return await self._get_action_type(ref)
        try:
            return await self._get_action_type(UUID(str(ref)))
        except ValueError:
            pass

        result = await self._session.execute(
            select(TaskActionType).where(
                TaskActionType.organization_id == self._organization_id,
                func.upper(TaskActionType.code) == str(ref).strip().upper(),
                TaskActionType.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    def _require(self, actor_id: UUID, permission: Permission) -> None:
        if not self._permissions.can(actor_id, permission.value):
            raise PermissionDeniedError(f"Missing permission: {permission.value}")

    def _notify_assigned(self, task: Task, assignee_id: UUID, actor_id: UUID) -> None:
        self._dispatcher.dispatch_after_commit(
            self._session,
            f"notify_assigned:{task.id}",
            self._notifier.notify_assigned,
            task.id,
            task.title,
            assignee_id,
            actor_id,
            task.client_id,
        )

    def _log_assignment_pattern(
        self,
        task_id: UUID,
        action: str,
        actor_id: UUID,
        details: dict[str, Any],
    ) -> None:
        if self._learning is None:
            return
        self._dispatcher.dispatch_after_commit(
            self._session,
            f"learning:{action}:{task_id}",
            self._learning.log_assignment_pattern,
            task_id,
            action,
            actor_id,
            details,
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _value(status: TaskStatus | str) -> str:
    return status.value if isinstance(status, TaskStatus) else str(status)
