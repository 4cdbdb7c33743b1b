"""
Tests for claiming and releasing tasks.

These tests verify:
1. Exactly one concurrent claimant wins; the others get ConflictError
2. A claimed task moves to in_progress and logs "claimed"
3. Only the claimant can release, which reopens the task
4. Non-open tasks cannot be claimed
"""

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from task_pool.models import ActivityAction, TaskActivityLog, TaskStatus
from task_pool.services import (
    ConflictError,
    PermissionDeniedError,
    TaskNotAvailableError,
    TaskNotFoundError,
    TaskPoolEngine,
)


class TestClaim:
    async def test_claim_open_task(self, task_engine: TaskPoolEngine, make_task, other_user_id):
        task = await make_task()

        claimed = await task_engine.claim(task.id, other_user_id)

        assert claimed.claimed_by == other_user_id
        assert claimed.claimed_at is not None
        assert claimed.status == TaskStatus.IN_PROGRESS

        activity = await task_engine.get_activity(task.id, action=ActivityAction.CLAIMED)
        assert len(activity) == 1
        assert activity[0].performed_by == other_user_id
        assert activity[0].details["claimed_by"] == str(other_user_id)

    async def test_second_claim_conflicts(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id
    ):
        """Scenario: A claims, then B tries and gets Conflict."""
        task = await make_task()
        await task_engine.claim(task.id, user_id)

        with pytest.raises(ConflictError):
            await task_engine.claim(task.id, other_user_id)

        current = await task_engine.get_task(task.id)
        assert current.claimed_by == user_id

        claims = await task_engine.get_activity(task.id, action=ActivityAction.CLAIMED)
        assert len(claims) == 1

    async def test_claiming_own_task_again_conflicts(
        self, task_engine: TaskPoolEngine, make_task, user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)

        with pytest.raises(ConflictError):
            await task_engine.claim(task.id, user_id)

    async def test_claim_completed_task_not_available(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id
    ):
        task = await make_task()
        await task_engine.complete(task.id, user_id)

        with pytest.raises(TaskNotAvailableError):
            await task_engine.claim(task.id, other_user_id)

    async def test_claim_unknown_task(self, task_engine: TaskPoolEngine, user_id):
        with pytest.raises(TaskNotFoundError):
            await task_engine.claim(uuid4(), user_id)

    async def test_claim_other_tenant_task_not_found(
        self, session: AsyncSession, task_engine: TaskPoolEngine, make_task, policy, user_id
    ):
        task = await make_task()
        foreign_engine = TaskPoolEngine(session, organization_id=uuid4(), permissions=policy)

        with pytest.raises(TaskNotFoundError):
            await foreign_engine.claim(task.id, user_id)


class TestConcurrentClaims:
    async def test_exactly_one_concurrent_claim_wins(
        self, session: AsyncSession, session_factory, make_task, org_id, policy
    ):
        """
        Five users race to claim the same task, each in its own transaction.
        """
        task = await make_task()
        await session.commit()

        claimants = [uuid4() for _ in range(5)]

        async def attempt(claimant):
            async with session_factory() as claim_session:
                engine = TaskPoolEngine(claim_session, organization_id=org_id, permissions=policy)
                try:
                    await engine.claim(task.id, claimant)
                    await claim_session.commit()
                    return claimant
                except ConflictError:
                    await claim_session.rollback()
                    return None

        results = await asyncio.gather(*(attempt(c) for c in claimants))
        winners = [r for r in results if r is not None]
        assert len(winners) == 1

        async with session_factory() as check:
            engine = TaskPoolEngine(check, organization_id=org_id, permissions=policy)
            stored = await engine.get_task(task.id)
            assert stored.claimed_by == winners[0]
            assert stored.status == TaskStatus.IN_PROGRESS

            result = await check.execute(
                select(TaskActivityLog).where(
                    TaskActivityLog.task_id == task.id,
                    TaskActivityLog.action == ActivityAction.CLAIMED,
                )
            )
            claims = result.scalars().all()
            assert len(claims) == 1
            assert claims[0].performed_by == winners[0]


class TestRelease:
    async def test_release_reopens_task(
        self, task_engine: TaskPoolEngine, make_task, other_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, other_user_id)

        released = await task_engine.release(task.id, other_user_id)

        assert released.claimed_by is None
        assert released.claimed_at is None
        assert released.status == TaskStatus.OPEN

        entries = await task_engine.get_activity(task.id, action=ActivityAction.RELEASED)
        assert len(entries) == 1
        assert entries[0].details["released_by"] == str(other_user_id)

    async def test_released_task_can_be_claimed_again(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)
        await task_engine.release(task.id, user_id)

        claimed = await task_engine.claim(task.id, other_user_id)
        assert claimed.claimed_by == other_user_id

    async def test_only_claimant_can_release(
        self, task_engine: TaskPoolEngine, make_task, user_id, other_user_id
    ):
        task = await make_task()
        await task_engine.claim(task.id, user_id)

        with pytest.raises(PermissionDeniedError):
            await task_engine.release(task.id, other_user_id)

        current = await task_engine.get_task(task.id)
        assert current.claimed_by == user_id
        assert current.status == TaskStatus.IN_PROGRESS

    async def test_release_unclaimed_task_denied(
        self, task_engine: TaskPoolEngine, make_task, user_id
    ):
        task = await make_task()

        with pytest.raises(PermissionDeniedError):
            await task_engine.release(task.id, user_id)
