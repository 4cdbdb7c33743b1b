"""
Tests for pool statistics.

These tests verify:
1. Counts by status, pool, personal queues and overdue
2. Every active action type appears in by_action_type, even at zero
3. The optional cache serves repeated reads until its TTL passes
"""

from datetime import date, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from task_pool.models import TaskPriority, TaskSourceType
from task_pool.services import StatsAggregator, StatsCache, TaskPoolEngine, TaskPoolStats


class TestStatsAggregator:
    async def test_counts(
        self, session: AsyncSession, task_engine: TaskPoolEngine, make_task,
        review_action_type, org_id, user_id, other_user_id,
    ):
        await make_task("Pool task", priority=TaskPriority.HIGH)
        await make_task("Review", action_type_id=review_action_type.id)
        claimed = await make_task("Claimed")
        await task_engine.claim(claimed.id, other_user_id)
        assigned = await make_task("Assigned")
        await task_engine.assign(assigned.id, other_user_id, user_id)
        done = await make_task("Done", source_type=TaskSourceType.EMAIL)
        await task_engine.complete(done.id, user_id)
        await make_task("Late", due_date=date.today() - timedelta(days=1))

        stats = await StatsAggregator(session, org_id).get_stats(other_user_id)

        assert stats.total == 6
        assert stats.by_status == {
            "open": 4,
            "in_progress": 1,
            "completed": 1,
            "cancelled": 0,
        }
        assert stats.pool == 3
        assert stats.my_claimed == 1
        assert stats.my_assigned == 1
        assert stats.overdue == 1
        assert stats.ai_extracted == 1
        assert stats.completed_today == 1
        assert stats.by_action_type == {"REVIEW": 1}
        assert stats.by_priority["high"] == 1
        assert stats.by_priority["medium"] == 3

    async def test_action_types_with_no_work_report_zero(
        self, session: AsyncSession, review_action_type, org_id, user_id
    ):
        stats = await StatsAggregator(session, org_id).get_stats(user_id)

        assert stats.total == 0
        assert stats.by_action_type == {"REVIEW": 0}


class TestStatsCache:
    async def test_cached_until_ttl(
        self, session: AsyncSession, make_task, org_id, user_id
    ):
        cache = StatsCache(ttl_seconds=300)
        aggregator = StatsAggregator(session, org_id, cache=cache)

        first = await aggregator.get_stats(user_id)
        await make_task()
        second = await aggregator.get_stats(user_id)

        assert second is first
        assert second.total == 0

        cache.clear()
        assert (await aggregator.get_stats(user_id)).total == 1

    async def test_zero_ttl_disables_cache(
        self, session: AsyncSession, make_task, org_id, user_id
    ):
        aggregator = StatsAggregator(session, org_id, cache=StatsCache(ttl_seconds=0))

        await aggregator.get_stats(user_id)
        await make_task()

        assert (await aggregator.get_stats(user_id)).total == 1

    def test_expired_entry_is_dropped(self, org_id, user_id):
        clock = [1000.0]
        cache = StatsCache(ttl_seconds=30, clock=lambda: clock[0])
        cache.put((org_id, user_id), TaskPoolStats(total=7))

        clock[0] += 29
        assert cache.get((org_id, user_id)).total == 7
        clock[0] += 2
        assert cache.get((org_id, user_id)) is None

    def test_put_sweeps_expired_entries(self, org_id, user_id, other_user_id, third_user_id):
        clock = [1000.0]
        cache = StatsCache(ttl_seconds=30, clock=lambda: clock[0])
        cache.put((org_id, user_id), TaskPoolStats(total=1))
        cache.put((org_id, other_user_id), TaskPoolStats(total=2))

        clock[0] += 31
        cache.put((org_id, third_user_id), TaskPoolStats(total=3))

        assert cache.size == 1
        assert cache.get((org_id, third_user_id)).total == 3
