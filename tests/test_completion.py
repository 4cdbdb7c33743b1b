"""
Tests for completion and follow-up routing.

These tests verify:
1. Completion sets completed_at and is terminal
2. Routing creates a linked follow-up task in the same transaction
3. A routing failure never rolls back the completion
4. AI classification feedback confirms or corrects the action type
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from task_pool.models import (
    ActivityAction,
    AITrainingFeedback,
    Task,
    TaskPriority,
    TaskSourceType,
    TaskStatus,
)
from task_pool.services import (
    ConflictError,
    InvalidInputError,
    PermissionDeniedError,
    PolicyEngine,
    Role,
    RouteSpec,
    TaskNotFoundError,
    TaskPoolEngine,
)


class TestComplete:
    async def test_complete_claimed_task(
        self, task_engine: TaskPoolEngine, make_task, user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)

        result = await task_engine.complete(task.id, user_id)

        assert result.completed_task.status == TaskStatus.COMPLETED
        assert result.completed_task.completed_at is not None
        assert result.routed_task is None
        assert result.routing_error is None

        entries = await task_engine.get_activity(task.id, action=ActivityAction.COMPLETED)
        assert entries[0].details["completed_by"] == str(user_id)

    async def test_complete_open_task(self, task_engine: TaskPoolEngine, make_task, other_user_id):
        task = await make_task()

        result = await task_engine.complete(task.id, other_user_id)
        assert result.completed_task.status == TaskStatus.COMPLETED

    async def test_completing_twice_conflicts(
        self, task_engine: TaskPoolEngine, make_task, user_id
    ):
        task = await make_task()
        await task_engine.complete(task.id, user_id)

        with pytest.raises(ConflictError):
            await task_engine.complete(task.id, user_id)

        entries = await task_engine.get_activity(task.id, action=ActivityAction.COMPLETED)
        assert len(entries) == 1

    async def test_complete_unknown_task(self, task_engine: TaskPoolEngine, user_id):
        with pytest.raises(TaskNotFoundError):
            await task_engine.complete(uuid4(), user_id)


class TestRouting:
    async def test_route_creates_linked_follow_up(
        self, task_engine: TaskPoolEngine, make_task, review_action_type, user_id
    ):
        client_id = uuid4()
        task = await make_task(
            "Collect W-2 forms",
            priority=TaskPriority.HIGH,
            client_id=client_id,
            due_date=date(2026, 12, 1),
        )
        await task_engine.claim(task.id, user_id)

        result = await task_engine.complete(
            task.id, user_id, RouteSpec(action_type="review")
        )

        routed = result.routed_task
        assert result.routing_error is None
        assert routed is not None
        assert routed.title == "Follow-up: Collect W-2 forms"
        assert routed.routed_from_task_id == task.id
        assert routed.action_type_id == review_action_type.id
        assert routed.source_type == TaskSourceType.ROUTED
        assert routed.priority == TaskPriority.HIGH
        assert routed.client_id == client_id
        assert routed.due_date == date(2026, 12, 1)
        assert routed.status == TaskStatus.OPEN
        assert routed.claimed_by is None

        entries = await task_engine.get_activity(task.id, action=ActivityAction.ROUTED)
        assert entries[0].details["new_task_id"] == str(routed.id)

        created = await task_engine.get_activity(routed.id, action=ActivityAction.CREATED)
        assert created[0].details["routed_from_task_id"] == str(task.id)

    async def test_route_by_action_type_id_with_custom_title(
        self, task_engine: TaskPoolEngine, make_task, review_action_type, user_id
    ):
        task = await make_task()

        result = await task_engine.complete(
            task.id,
            user_id,
            RouteSpec(action_type=str(review_action_type.id), title="Partner review"),
        )
        assert result.routed_task.title == "Partner review"

    async def test_unknown_action_type_still_completes(
        self, session: AsyncSession, task_engine: TaskPoolEngine, make_task, user_id
    ):
        """Scenario: completing with route_to "callback" when no such type exists."""
        task = await make_task()
        await task_engine.claim(task.id, user_id)

        result = await task_engine.complete(
            task.id, user_id, RouteSpec(action_type="callback")
        )

        assert result.completed_task.status == TaskStatus.COMPLETED
        assert result.routed_task is None
        assert result.routing_error == "invalid action type"

        count = await session.execute(
            select(Task).where(Task.routed_from_task_id == task.id)
        )
        assert count.scalars().all() == []
        assert await task_engine.get_activity(task.id, action=ActivityAction.ROUTED) == []

    async def test_blank_route_title_falls_back_to_default(
        self, task_engine: TaskPoolEngine, make_task, review_action_type, user_id
    ):
        task = await make_task(title="Reconcile March statements")

        result = await task_engine.complete(
            task.id, user_id, RouteSpec(action_type="REVIEW", title="   ")
        )

        assert result.completed_task.status == TaskStatus.COMPLETED
        assert result.routing_error is None
        assert result.routed_task.title == "Follow-up: Reconcile March statements"

    async def test_inactive_action_type_not_routable(
        self, task_engine: TaskPoolEngine, make_task, review_action_type, user_id
    ):
        review_action_type.is_active = False
        task = await make_task()

        result = await task_engine.complete(task.id, user_id, RouteSpec(action_type="REVIEW"))
        assert result.routing_error == "invalid action type"


class TestAIFeedback:
    async def test_confirm_classification(
        self, session: AsyncSession, task_engine: TaskPoolEngine, make_task, user_id
    ):
        task = await make_task(ai_confidence=0.82)

        feedback = await task_engine.submit_ai_feedback(task.id, user_id, was_correct=True)

        assert feedback.was_correct is True
        current = await task_engine.get_task(task.id)
        assert current.ai_corrected is False
        entries = await task_engine.get_activity(task.id, action=ActivityAction.AI_CONFIRMED)
        assert entries[0].details["ai_confidence"] == 0.82

    async def test_correct_classification_updates_action_type(
        self, session: AsyncSession, task_engine: TaskPoolEngine, make_task,
        review_action_type, user_id,
    ):
        task = await make_task()

        await task_engine.submit_ai_feedback(
            task.id,
            user_id,
            was_correct=False,
            corrected_action_type_id=review_action_type.id,
            feedback_text="This is a review, not a callback",
        )

        current = await task_engine.get_task(task.id)
        assert current.action_type_id == review_action_type.id
        assert current.ai_corrected is True

        rows = await session.execute(
            select(AITrainingFeedback).where(AITrainingFeedback.task_id == task.id)
        )
        stored = rows.scalar_one()
        assert stored.corrected_action_type_id == review_action_type.id
        assert stored.feedback_text == "This is a review, not a callback"

    async def test_correction_to_unknown_type_rejected(
        self, task_engine: TaskPoolEngine, make_task, user_id
    ):
        task = await make_task()

        with pytest.raises(InvalidInputError):
            await task_engine.submit_ai_feedback(
                task.id, user_id, was_correct=False, corrected_action_type_id=uuid4()
            )


class TestActionTypes:
    async def test_create_requires_permission(
        self, task_engine: TaskPoolEngine, user_id
    ):
        # Managers may assign but not manage action types
        with pytest.raises(PermissionDeniedError):
            await task_engine.create_action_type(user_id, code="callback", label="Callback")

    async def test_admin_creates_and_lists(
        self, session: AsyncSession, org_id, user_id
    ):
        engine = TaskPoolEngine(
            session,
            organization_id=org_id,
            permissions=PolicyEngine(roles={user_id: Role.ADMIN}),
        )
        created = await engine.create_action_type(user_id, code="callback", label="Callback")
        assert created.code == "CALLBACK"

        with pytest.raises(ConflictError):
            await engine.create_action_type(user_id, code="Callback", label="Again")

        listed = await engine.list_action_types()
        assert [a.code for a in listed] == ["CALLBACK"]
