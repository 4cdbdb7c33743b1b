"""Activity log: the append-only audit trail for tasks."""

from enum import Enum
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import ActivityAction, TaskActivityLog


class ActivityLog:
    """Writes and reads task activity.

    Entries are added to the caller's session so they commit or roll back
    together with the state change they describe. Nothing here updates or
    deletes an existing entry.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        task_id: UUID,
        action: ActivityAction,
        performed_by: UUID,
        details: dict[str, Any] | None = None,
    ) -> TaskActivityLog:
        entry = TaskActivityLog(
            task_id=task_id,
            action=action,
            performed_by=performed_by,
            details=to_jsonable(details or {}),
        )
        self.session.add(entry)
        return entry

    async def get_activity(
        self,
        task_id: UUID,
        action: ActivityAction | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[TaskActivityLog]:
        """Activity for a task, newest first."""
        query = select(TaskActivityLog).where(TaskActivityLog.task_id == task_id)
        if action:
            query = query.where(TaskActivityLog.action == action)

        query = (
            query.order_by(TaskActivityLog.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return result.scalars().all()


def to_jsonable(value: Any) -> Any:
    """Details are stored as JSON, so UUIDs, dates and enums become strings."""
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
