"""Read-only counts over the current task pool."""

import time
from dataclasses import dataclass, field
from datetime import datetime, time as dt_time, timezone
from typing import Callable
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Task, TaskActionType, TaskPriority, TaskSourceType, TaskStatus


@dataclass
class TaskPoolStats:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    pool: int = 0
    my_claimed: int = 0
    my_assigned: int = 0
    overdue: int = 0
    by_action_type: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    ai_extracted: int = 0
    completed_today: int = 0


class StatsCache:
    """Per-(organization, user) cache with a fixed TTL. A TTL of 0 disables it."""

    def __init__(self, ttl_seconds: float = 0.0, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[UUID, UUID], tuple[float, TaskPoolStats]] = {}

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    def get(self, key: tuple[UUID, UUID]) -> TaskPoolStats | None:
        if not self.enabled:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, stats = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return stats

    def put(self, key: tuple[UUID, UUID], stats: TaskPoolStats) -> None:
        if not self.enabled:
            return
        now = self._clock()
        # Expired entries are swept on every write
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        self._entries[key] = (now + self._ttl, stats)

    @property
    def size(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class StatsAggregator:
    def __init__(
        self,
        session: AsyncSession,
        organization_id: UUID,
        cache: StatsCache | None = None,
    ):
        self._session = session
        self._organization_id = organization_id
        self._cache = cache if cache is not None else StatsCache()

    async def get_stats(self, user_id: UUID) -> TaskPoolStats:
        key = (self._organization_id, user_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        stats = await self._compute(user_id)
        self._cache.put(key, stats)
        return stats

    async def _compute(self, user_id: UUID) -> TaskPoolStats:
        in_org = Task.organization_id == self._organization_id
        not_completed = Task.status != TaskStatus.COMPLETED
        now = datetime.now(timezone.utc)
        start_of_day = datetime.combine(now.date(), dt_time.min, tzinfo=timezone.utc)

        stats = TaskPoolStats()

        # Totals by status
        result = await self._session.execute(
            select(Task.status, func.count()).where(in_org).group_by(Task.status)
        )
        stats.by_status = {s.value: 0 for s in TaskStatus}
        for status, count in result.all():
            stats.by_status[TaskStatus(status).value] = count
        stats.total = sum(stats.by_status.values())

        stats.pool = await self._count(
            in_org,
            Task.status == TaskStatus.OPEN,
            Task.claimed_by.is_(None),
            Task.assigned_to.is_(None),
        )
        stats.my_claimed = await self._count(in_org, Task.claimed_by == user_id, not_completed)
        stats.my_assigned = await self._count(in_org, Task.assigned_to == user_id, not_completed)
        stats.overdue = await self._count(in_org, Task.due_date < now.date(), not_completed)
        stats.ai_extracted = await self._count(
            in_org,
            Task.source_type.in_([TaskSourceType.EMAIL, TaskSourceType.PHONE_CALL]),
        )
        stats.completed_today = await self._count(
            in_org,
            Task.status == TaskStatus.COMPLETED,
            Task.completed_at >= start_of_day,
        )

        # Open, unclaimed work per action type (every active type, even at zero)
        result = await self._session.execute(
            select(TaskActionType.code, func.count(Task.id))
            .outerjoin(
                Task,
                and_(
                    Task.action_type_id == TaskActionType.id,
                    Task.status == TaskStatus.OPEN,
                    Task.claimed_by.is_(None),
                ),
            )
            .where(
                TaskActionType.organization_id == self._organization_id,
                TaskActionType.is_active.is_(True),
            )
            .group_by(TaskActionType.code)
        )
        stats.by_action_type = {code: count for code, count in result.all()}

        # Open work per priority
        result = await self._session.execute(
            select(Task.priority, func.count())
            .where(in_org, Task.status == TaskStatus.OPEN)
            .group_by(Task.priority)
        )
        stats.by_priority = {p.value: 0 for p in TaskPriority}
        for priority, count in result.all():
            stats.by_priority[TaskPriority(priority).value] = count

        return stats

    async def _count(self, *conditions) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(Task).where(*conditions)
        )
        return result.scalar_one()
