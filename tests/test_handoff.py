"""
Tests for the two-phase handoff.

These tests verify:
1. Initiating releases the claim, assigns the recipient and keeps the task in progress
2. Only the recipient can accept, which sets the claim and clears handoff fields
3. Chain of custody is appended to handoff history
4. Invalid handoffs leave the task unchanged
"""

import pytest

from task_pool.models import ActivityAction, TaskStatus
from task_pool.services import (
    ConflictError,
    InvalidInputError,
    PermissionDeniedError,
    TaskPoolEngine,
)


class TestInitiateHandoff:
    async def test_initiate_releases_claim_and_assigns_recipient(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)

        result = await task_engine.initiate_handoff(
            task.id, other_user_id, user_id, notes="Client prefers mornings"
        )

        handed = result.task
        assert handed.claimed_by is None
        assert handed.assigned_to == other_user_id
        assert handed.handoff_to == other_user_id
        assert handed.handoff_from == user_id
        assert handed.handoff_notes == "Client prefers mornings"
        assert handed.handoff_at is not None
        assert handed.status == TaskStatus.IN_PROGRESS

        assert result.history_entry.from_user_id == user_id
        assert result.history_entry.to_user_id == other_user_id

        entries = await task_engine.get_activity(task.id, action=ActivityAction.HANDED_OFF)
        assert len(entries) == 1
        assert entries[0].details["to_user_id"] == str(other_user_id)
        assert entries[0].details["notes"] == "Client prefers mornings"

    async def test_pending_handoff_blocks_claims(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id, third_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)
        await task_engine.initiate_handoff(task.id, other_user_id, user_id)

        with pytest.raises(ConflictError):
            await task_engine.claim(task.id, third_user_id)

    async def test_handoff_notifies_recipient(
        self, session, task_engine: TaskPoolEngine, dispatcher, notifier,
        make_task, user_id, other_user_id,
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)
        await task_engine.initiate_handoff(task.id, other_user_id, user_id)
        await session.commit()
        await dispatcher.drain()

        assert [c["assignee_id"] for c in notifier.calls] == [other_user_id]

    async def test_assignee_of_unclaimed_task_can_hand_off(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id, third_user_id
    ):
        task = await make_task()
        await task_engine.assign(task.id, other_user_id, user_id)

        result = await task_engine.initiate_handoff(task.id, third_user_id, other_user_id)
        assert result.task.handoff_to == third_user_id

    async def test_non_holder_cannot_hand_off(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id, third_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)

        with pytest.raises(PermissionDeniedError):
            await task_engine.initiate_handoff(task.id, third_user_id, other_user_id)

        current = await task_engine.get_task(task.id)
        assert current.claimed_by == user_id
        assert current.handoff_to is None

    async def test_cannot_hand_off_to_self(
        self, task_engine: TaskPoolEngine, make_task, user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)

        with pytest.raises(InvalidInputError):
            await task_engine.initiate_handoff(task.id, user_id, user_id)

    async def test_second_handoff_while_pending_conflicts(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id, third_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)
        await task_engine.initiate_handoff(task.id, other_user_id, user_id)

        with pytest.raises(ConflictError):
            await task_engine.initiate_handoff(task.id, third_user_id, other_user_id)

    async def test_completed_task_cannot_be_handed_off(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)
        await task_engine.complete(task.id, user_id)

        with pytest.raises(ConflictError):
            await task_engine.initiate_handoff(task.id, other_user_id, user_id)


class TestAcceptHandoff:
    async def test_recipient_accepts(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)
        await task_engine.initiate_handoff(task.id, other_user_id, user_id, notes="Over to you")

        result = await task_engine.accept_handoff(task.id, other_user_id)

        accepted = result.task
        assert accepted.claimed_by == other_user_id
        assert accepted.claimed_at is not None
        assert accepted.assigned_to == other_user_id
        assert accepted.status == TaskStatus.IN_PROGRESS
        assert accepted.handoff_to is None
        assert accepted.handoff_from is None
        assert accepted.handoff_notes is None
        assert accepted.handoff_at is None
        assert result.history_entry.notes == "Over to you"

        entries = await task_engine.get_activity(
            task.id, action=ActivityAction.HANDOFF_ACCEPTED
        )
        assert entries[0].details["from_user_id"] == str(user_id)

    async def test_only_recipient_can_accept(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id, third_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)
        await task_engine.initiate_handoff(task.id, other_user_id, user_id)

        with pytest.raises(PermissionDeniedError):
            await task_engine.accept_handoff(task.id, third_user_id)

        current = await task_engine.get_task(task.id)
        assert current.handoff_to == other_user_id
        assert current.claimed_by is None

    async def test_accept_without_pending_handoff_conflicts(
        self, task_engine: TaskPoolEngine, make_task, user_id
    ):
        task = await make_task()

        with pytest.raises(ConflictError):
            await task_engine.accept_handoff(task.id, user_id)

    async def test_completion_clears_pending_handoff(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)
        await task_engine.initiate_handoff(task.id, other_user_id, user_id)

        result = await task_engine.complete(task.id, user_id)

        assert result.completed_task.handoff_to is None
        with pytest.raises(ConflictError):
            await task_engine.accept_handoff(task.id, other_user_id)


class TestHandoffHistory:
    async def test_history_is_newest_first(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id, third_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)
        await task_engine.initiate_handoff(task.id, other_user_id, user_id)
        await task_engine.accept_handoff(task.id, other_user_id)
        await task_engine.initiate_handoff(task.id, third_user_id, other_user_id)

        history = await task_engine.get_handoff_history(task.id)

        assert [(h.from_user_id, h.to_user_id) for h in history] == [
            (other_user_id, third_user_id),
            (user_id, other_user_id),
        ]
