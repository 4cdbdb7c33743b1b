"""Assignment notifications.

Delivery is owned by another system; this module only hands the event over.
Calls are dispatched fire-and-forget by the task engine, so implementations
may raise freely and the dispatcher will retry and log.
"""

import logging
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

import httpx

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify_assigned(
        self,
        task_id: UUID,
        title: str,
        assignee_id: UUID,
        actor_id: UUID,
        client_id: UUID | None,
    ) -> None: ...


class LoggingNotificationSink:
    """Default sink: records the event in the application log."""

    async def notify_assigned(
        self,
        task_id: UUID,
        title: str,
        assignee_id: UUID,
        actor_id: UUID,
        client_id: UUID | None,
    ) -> None:
        logger.info(
            f"[NOTIFY] Task {task_id} '{title}' assigned to {assignee_id} by {actor_id}"
        )


class WebhookNotificationSink:
    """Posts assignment events as JSON to a configured URL."""

    def __init__(self, url: str, timeout_seconds: float = 10.0):
        self._url = url
        self._timeout = timeout_seconds

    async def notify_assigned(
        self,
        task_id: UUID,
        title: str,
        assignee_id: UUID,
        actor_id: UUID,
        client_id: UUID | None,
    ) -> None:
        payload = {
            "type": "task_assigned",
            "task_id": str(task_id),
            "title": title,
            "assignee_id": str(assignee_id),
            "assigned_by": str(actor_id),
            "client_id": str(client_id) if client_id else None,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._url, json=payload)
            response.raise_for_status()
        logger.info(f"Assignment webhook delivered for task {task_id}")
