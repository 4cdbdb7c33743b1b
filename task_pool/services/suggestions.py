"""
AI Suggestion Feedback Loop.

An upstream classifier proposes tasks; a human approves (optionally with
overrides) or declines them. Each review is exactly-once: the pending ->
reviewed transition is a conditional UPDATE, so a second review of the same
suggestion returns Conflict and creates nothing.

The per-field diff between what the AI proposed and what the reviewer chose
is the learning signal handed to the Learning Engine.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    DeclineCategory,
    ReviewAction,
    SuggestionStatus,
    Task,
    TaskAISuggestion,
    TaskPriority,
    TaskSourceType,
)
from .activity import to_jsonable
from .dispatch import SideEffectDispatcher
from .errors import ConflictError, InvalidInputError, SuggestionNotFoundError
from .learning import LearningEngine, SuggestionFeedback
from .task_engine import CreateTaskInput, TaskPoolEngine

logger = logging.getLogger(__name__)

REVIEWABLE_FIELDS = (
    "title",
    "description",
    "assigned_to",
    "priority",
    "due_date",
    "client_id",
    "action_type_id",
)


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class SuggestionInput:
    """A proposal handed over by an ingestion pipeline."""
    source_type: str
    title: str
    source_id: str | None = None
    source_metadata: dict[str, Any] = field(default_factory=dict)
    description: str | None = None
    assigned_to: UUID | None = None
    priority: str | None = None
    due_date: date | None = None
    client_id: UUID | None = None
    action_type_id: UUID | None = None
    ai_confidence: float | None = None
    ai_category: str | None = None
    ai_keywords: list[str] = field(default_factory=list)


@dataclass
class SuggestionOverrides:
    """Reviewer overrides. None means "keep the AI value"."""
    title: str | None = None
    description: str | None = None
    assigned_to: UUID | None = None
    priority: TaskPriority | str | None = None
    due_date: date | None = None
    client_id: UUID | None = None
    action_type_id: UUID | None = None


@dataclass
class ApprovalResult:
    task: Task
    was_modified: bool
    modifications: dict[str, dict[str, Any]]

    @property
    def task_id(self) -> UUID:
        return self.task.id


@dataclass
class DeclineResult:
    suggestion_id: UUID
    decline_category: DeclineCategory


# =============================================================================
# REVIEW SERVICE
# =============================================================================


class SuggestionReviewService:
    def __init__(
        self,
        session: AsyncSession,
        engine: TaskPoolEngine,
        learning: LearningEngine | None = None,
        dispatcher: SideEffectDispatcher | None = None,
        suggestion_ttl_hours: int | None = None,
    ):
        self._session = session
        self._engine = engine
        self._organization_id = engine.organization_id
        self._learning = learning
        self._dispatcher = dispatcher or SideEffectDispatcher()
        self._ttl_hours = suggestion_ttl_hours

    async def create_suggestion(self, input: SuggestionInput) -> TaskAISuggestion:
        """Store a proposal for review."""
        title = (input.title or "").strip()
        if not title:
            raise InvalidInputError("Suggested title is required")
        if not input.source_type:
            raise InvalidInputError("Suggestion source type is required")

        expires_at = None
        if self._ttl_hours:
            expires_at = datetime.now(timezone.utc) + timedelta(hours=self._ttl_hours)

        suggestion = TaskAISuggestion(
            organization_id=self._organization_id,
            source_type=input.source_type,
            source_id=input.source_id,
            source_metadata=dict(input.source_metadata or {}),
            suggested_title=title,
            suggested_description=input.description,
            suggested_assigned_to=input.assigned_to,
            suggested_priority=input.priority,
            suggested_due_date=input.due_date,
            suggested_client_id=input.client_id,
            suggested_action_type_id=input.action_type_id,
            ai_confidence=input.ai_confidence,
            ai_category=input.ai_category,
            ai_keywords=list(input.ai_keywords or []),
            status=SuggestionStatus.PENDING,
            expires_at=expires_at,
        )
        self._session.add(suggestion)
        await self._session.flush()
        return suggestion

    async def get_suggestion(self, suggestion_id: UUID) -> TaskAISuggestion:
        return await self._get_suggestion_or_raise(suggestion_id)

    async def list_suggestions(
        self,
        status: SuggestionStatus | None = SuggestionStatus.PENDING,
        source_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[TaskAISuggestion], int, dict[str, int]]:
        """Suggestions, unpaged total, and counts per status for the tenant."""
        conditions = [TaskAISuggestion.organization_id == self._organization_id]
        if status:
            conditions.append(TaskAISuggestion.status == status)
        if source_type:
            conditions.append(TaskAISuggestion.source_type == source_type)

        total_result = await self._session.execute(
            select(func.count()).select_from(TaskAISuggestion).where(*conditions)
        )
        result = await self._session.execute(
            select(TaskAISuggestion)
            .where(*conditions)
            .order_by(TaskAISuggestion.created_at.desc())
            .limit(limit)
            .offset(offset)
        )

        counts_result = await self._session.execute(
            select(TaskAISuggestion.status, func.count())
            .where(TaskAISuggestion.organization_id == self._organization_id)
            .group_by(TaskAISuggestion.status)
        )
        counts = {s.value: 0 for s in SuggestionStatus}
        for row_status, count in counts_result.all():
            counts[SuggestionStatus(row_status).value] = count

        return result.scalars().all(), total_result.scalar_one(), counts

    # =========================================================================
    # APPROVE
    # =========================================================================

    async def approve(
        self,
        suggestion_id: UUID,
        actor_id: UUID,
        overrides: SuggestionOverrides | None = None,
    ) -> ApprovalResult:
        """
        Approve a suggestion, creating a task from the final values.

        Flow:
        1. Fetch suggestion and validate overrides
        2. Compute final values and the field-level diff against the AI values
        3. Conditional UPDATE pending -> approved (Conflict if already reviewed)
        4. Create the task through the normal creation path
        5. Record created_task_id, review_action and modifications
        6. Dispatch learning feedback
        """
        # Step 1: Fetch and validate
        suggestion = await self._get_suggestion_or_raise(suggestion_id)
        overrides = overrides or SuggestionOverrides()
        if overrides.priority is not None:
            overrides.priority = _parse_priority(overrides.priority)
        if overrides.title is not None and not overrides.title.strip():
            raise InvalidInputError("Title override cannot be empty")

        # Step 2: Merge and diff
        ai_values = _ai_values(suggestion)
        final = dict(ai_values)
        modifications: dict[str, dict[str, Any]] = {}
        for name in REVIEWABLE_FIELDS:
            value = getattr(overrides, name)
            if value is None:
                continue
            final[name] = value
            if value != ai_values[name]:
                modifications[name] = to_jsonable({"from": ai_values[name], "to": value})
        was_modified = bool(modifications)

        # Step 3: Exactly-once transition
        now = datetime.now(timezone.utc)
        await self._transition(
            suggestion_id,
            status=SuggestionStatus.APPROVED,
            reviewed_by=actor_id,
            reviewed_at=now,
            review_action=ReviewAction.MODIFIED if was_modified else ReviewAction.APPROVED,
            modifications=modifications or None,
        )

        # Step 4: Create task
        source_type = suggestion.source_type
        if source_type not in (TaskSourceType.PHONE_CALL.value, TaskSourceType.EMAIL.value):
            source_type = TaskSourceType.MANUAL.value

        task = await self._engine.create_task(
            CreateTaskInput(
                title=final["title"],
                description=final["description"],
                priority=_parse_priority(final["priority"], default=TaskPriority.MEDIUM),
                action_type_id=final["action_type_id"],
                client_id=final["client_id"],
                assigned_to=final["assigned_to"],
                due_date=final["due_date"],
                source_type=TaskSourceType(source_type),
                source_metadata={
                    "suggestion_id": str(suggestion_id),
                    "source_id": suggestion.source_id,
                    "ai_category": suggestion.ai_category,
                    "was_modified": was_modified,
                },
                ai_confidence=suggestion.ai_confidence,
                ai_extracted_data={
                    "category": suggestion.ai_category,
                    "keywords": list(suggestion.ai_keywords or []),
                },
            ),
            actor_id,
        )

        # Step 5: Link the task
        suggestion = await self._reload(suggestion_id)
        suggestion.created_task_id = task.id
        await self._session.flush()

        # Step 6: Learning signal
        self._dispatch_feedback(
            SuggestionFeedback.from_suggestion(
                suggestion,
                task_id=task.id,
                user_action="modified" if was_modified else "approved",
                was_ai_correct=not was_modified,
                correction_type=",".join(modifications) or None,
                diff=modifications,
                feedback_by=actor_id,
                user_assigned_to=final["assigned_to"],
                user_priority=_value(final["priority"]),
            )
        )

        logger.info(
            f"Suggestion {suggestion_id} approved by {actor_id} -> task {task.id}"
            f"{' (modified: ' + ', '.join(modifications) + ')' if was_modified else ''}"
        )
        return ApprovalResult(task=task, was_modified=was_modified, modifications=modifications)

    # =========================================================================
    # DECLINE
    # =========================================================================

    async def decline(
        self,
        suggestion_id: UUID,
        actor_id: UUID,
        reason: str,
        category: DeclineCategory | str,
    ) -> DeclineResult:
        """Decline a suggestion. No task is created."""
        try:
            category = DeclineCategory(category)
        except ValueError:
            raise InvalidInputError(f"Invalid decline category: {category}")
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInputError("Decline reason is required")

        suggestion = await self._get_suggestion_or_raise(suggestion_id)

        await self._transition(
            suggestion_id,
            status=SuggestionStatus.DECLINED,
            reviewed_by=actor_id,
            reviewed_at=datetime.now(timezone.utc),
            review_action=ReviewAction.DECLINED,
            decline_reason=reason,
            decline_category=category,
        )
        suggestion = await self._reload(suggestion_id)

        self._dispatch_feedback(
            SuggestionFeedback.from_suggestion(
                suggestion,
                user_action="declined",
                was_ai_correct=False,
                correction_type=category.value,
                correction_reason=reason,
                feedback_by=actor_id,
            )
        )

        logger.info(f"Suggestion {suggestion_id} declined by {actor_id} ({category.value})")
        return DeclineResult(suggestion_id=suggestion_id, decline_category=category)

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    async def _transition(self, suggestion_id: UUID, **values: Any) -> None:
        result = await self._session.execute(
            update(TaskAISuggestion)
            .where(
                TaskAISuggestion.id == suggestion_id,
                TaskAISuggestion.organization_id == self._organization_id,
                TaskAISuggestion.status == SuggestionStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"Suggestion {suggestion_id} has already been reviewed")

    async def _get_suggestion_or_raise(self, suggestion_id: UUID) -> TaskAISuggestion:
        result = await self._session.execute(
            select(TaskAISuggestion).where(
                TaskAISuggestion.id == suggestion_id,
                TaskAISuggestion.organization_id == self._organization_id,
            )
        )
        suggestion = result.scalar_one_or_none()
        if not suggestion:
            raise SuggestionNotFoundError(f"Suggestion {suggestion_id} not found")
        return suggestion

    async def _reload(self, suggestion_id: UUID) -> TaskAISuggestion:
        result = await self._session.execute(
            select(TaskAISuggestion)
            .where(TaskAISuggestion.id == suggestion_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    def _dispatch_feedback(self, feedback: SuggestionFeedback) -> None:
        if self._learning is None:
            return
        self._dispatcher.dispatch_after_commit(
            self._session,
            f"learning:{feedback.user_action}:{feedback.suggestion_id}",
            self._learning.record_feedback,
            feedback,
        )


async def expire_old_suggestions(
    session: AsyncSession,
    now: datetime | None = None,
    organization_id: UUID | None = None,
) -> int:
    """Move pending suggestions past their expiry to expired. Returns the count."""
    now = now or datetime.now(timezone.utc)
    query = update(TaskAISuggestion).where(
        TaskAISuggestion.status == SuggestionStatus.PENDING,
        TaskAISuggestion.expires_at.is_not(None),
        TaskAISuggestion.expires_at < now,
    )
    if organization_id:
        query = query.where(TaskAISuggestion.organization_id == organization_id)

    result = await session.execute(
        query.values(status=SuggestionStatus.EXPIRED).execution_options(
            synchronize_session=False
        )
    )
    expired = result.rowcount or 0
    if expired:
        logger.info(f"Expired {expired} pending suggestions")
    return expired


def _ai_values(suggestion: TaskAISuggestion) -> dict[str, Any]:
    return {
        "title": suggestion.suggested_title,
        "description": suggestion.suggested_description,
        "assigned_to": suggestion.suggested_assigned_to,
        "priority": suggestion.suggested_priority,
        "due_date": suggestion.suggested_due_date,
        "client_id": suggestion.suggested_client_id,
        "action_type_id": suggestion.suggested_action_type_id,
    }


def _parse_priority(
    value: TaskPriority | str | None,
    default: TaskPriority | None = None,
) -> TaskPriority:
    if value is None and default is not None:
        return default
    try:
        return TaskPriority(value)
    except ValueError:
        if default is not None:
            return default
        raise InvalidInputError(f"Invalid priority: {value}")


def _value(value: Any) -> Any:
    return value.value if isinstance(value, TaskPriority) else value
