"""
Fire-and-forget dispatch for best-effort side effects.

Notifications and learning feedback must never fail or roll back the state
transition that triggered them. The dispatcher runs each one as its own
asyncio task, retries a bounded number of times, and logs the final failure.
Effects tied to a database write are queued on the session and only
dispatched once the outermost transaction commits; a rollback drops them.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

logger = logging.getLogger(__name__)

# Session.info key holding side effects waiting for the transaction to commit
_QUEUE_KEY = "task_pool.after_commit"


class SideEffectDispatcher:
    """Schedules coroutine functions outside the caller's control flow."""

    def __init__(self, max_retries: int = 3, retry_delay_seconds: float = 1.0):
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._pending: set[asyncio.Task] = set()
        self.failures: int = 0

    def dispatch(
        self,
        label: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> asyncio.Task | None:
        """Schedule ``func(*args, **kwargs)``. Never raises."""
        try:
            task = asyncio.get_running_loop().create_task(
                self._run(label, func, args, kwargs)
            )
        except RuntimeError:
            logger.error(f"Side effect '{label}' dropped: no running event loop")
            self.failures += 1
            return None

        # Keep a reference until done, otherwise the task can be collected
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def dispatch_after_commit(
        self,
        session: AsyncSession,
        label: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        """
        Queue ``func(*args, **kwargs)`` until ``session`` commits.

        Flow:
        1. Entry is tagged with the innermost open transaction (savepoint or root)
        2. Outermost commit hands every queued entry to dispatch()
        3. Rolling back a savepoint drops the entries it queued; rolling back
           the root transaction drops everything
        """
        sync_session = session.sync_session
        queue = sync_session.info.get(_QUEUE_KEY)
        if queue is None:
            queue = sync_session.info[_QUEUE_KEY] = []
            event.listen(sync_session, "after_commit", _run_queued)
            event.listen(sync_session, "after_soft_rollback", _drop_queued)

        owner = sync_session.get_nested_transaction() or sync_session.get_transaction()
        queue.append((owner, self, label, func, args, kwargs))

    async def _run(
        self,
        label: str,
        func: Callable[..., Awaitable[Any]],
        args: tuple,
        kwargs: dict,
    ) -> None:
        attempts = self._max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                await func(*args, **kwargs)
                return
            except asyncio.CancelledError:
                logger.warning(f"Side effect '{label}' cancelled")
                raise
            except Exception as e:
                if attempt < attempts:
                    logger.warning(
                        f"Side effect '{label}' failed (attempt {attempt}/{attempts}): {e}"
                    )
                    await asyncio.sleep(self._retry_delay * attempt)
                else:
                    self.failures += 1
                    logger.error(
                        f"Side effect '{label}' gave up after {attempts} attempts: {e}",
                        exc_info=True,
                    )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled side effect to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def _run_queued(session: Session) -> None:
    # Savepoint releases also fire after_commit; only the outermost commit counts
    if session.in_nested_transaction():
        return
    queue = session.info.get(_QUEUE_KEY)
    if not queue:
        return

    entries = list(queue)
    queue.clear()
    for _, dispatcher, label, func, args, kwargs in entries:
        dispatcher.dispatch(label, func, *args, **kwargs)


def _drop_queued(session: Session, previous_transaction: SessionTransaction) -> None:
    queue = session.info.get(_QUEUE_KEY)
    if not queue:
        return

    if previous_transaction.nested:
        kept = [entry for entry in queue if entry[0] is not previous_transaction]
    else:
        kept = []
    if len(kept) != len(queue):
        logger.info(f"Dropped {len(queue) - len(kept)} side effect(s) after rollback")
    queue[:] = kept
