"""Shared fixtures: a throwaway SQLite database and recording collaborators."""

from typing import Any
from uuid import UUID, uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from task_pool.models import Base, TaskActionType, TaskPriority
from task_pool.services import (
    CreateTaskInput,
    PolicyEngine,
    Role,
    SideEffectDispatcher,
    StepChecklist,
    SuggestionFeedback,
    SuggestionReviewService,
    TaskPoolEngine,
)


# =============================================================================
# RECORDING COLLABORATORS
# =============================================================================


class RecordingNotifier:
    def __init__(self):
        self.calls: list[dict[str, Any]] = []

    async def notify_assigned(self, task_id, title, assignee_id, actor_id, client_id):
        self.calls.append({
            "task_id": task_id,
            "title": title,
            "assignee_id": assignee_id,
            "actor_id": actor_id,
            "client_id": client_id,
        })


class RecordingLearningEngine:
    def __init__(self):
        self.feedback: list[SuggestionFeedback] = []
        self.patterns: list[tuple[UUID, str, UUID, dict]] = []

    async def record_feedback(self, feedback: SuggestionFeedback) -> None:
        self.feedback.append(feedback)

    async def log_assignment_pattern(self, task_id, action, actor_id, details) -> None:
        self.patterns.append((task_id, action, actor_id, details))


class FailingNotifier:
    def __init__(self):
        self.attempts = 0

    async def notify_assigned(self, *args, **kwargs):
        self.attempts += 1
        raise ConnectionError("notification service unavailable")


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'task_pool.db'}")

    # pysqlite defers BEGIN on its own; take over so SAVEPOINT behaves
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# =============================================================================
# IDENTITIES
# =============================================================================


@pytest.fixture
def org_id() -> UUID:
    return uuid4()


@pytest.fixture
def user_id() -> UUID:
    """A manager: may assign."""
    return uuid4()


@pytest.fixture
def other_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def third_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def policy(user_id, other_user_id, third_user_id) -> PolicyEngine:
    return PolicyEngine(roles={
        user_id: Role.MANAGER,
        other_user_id: Role.STAFF,
        third_user_id: Role.STAFF,
    })


# =============================================================================
# SERVICES
# =============================================================================


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def learning() -> RecordingLearningEngine:
    return RecordingLearningEngine()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


@pytest.fixture
def dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher(max_retries=1, retry_delay_seconds=0)


@pytest.fixture
def task_engine(session, org_id, policy, notifier, learning, dispatcher) -> TaskPoolEngine:
    return TaskPoolEngine(
        session,
        organization_id=org_id,
        permissions=policy,
        notifier=notifier,
        learning=learning,
        dispatcher=dispatcher,
    )


@pytest.fixture
def checklist(session, org_id) -> StepChecklist:
    return StepChecklist(session, org_id)


@pytest.fixture
def review_service(session, task_engine, learning, dispatcher) -> SuggestionReviewService:
    return SuggestionReviewService(
        session,
        task_engine,
        learning=learning,
        dispatcher=dispatcher,
        suggestion_ttl_hours=72,
    )


@pytest.fixture
def make_task(task_engine, user_id):
    """Factory for open, unclaimed tasks."""

    async def _make_task(title: str = "Call back client about invoice", **kwargs):
        kwargs.setdefault("priority", TaskPriority.MEDIUM)
        return await task_engine.create_task(CreateTaskInput(title=title, **kwargs), user_id)

    return _make_task


@pytest.fixture
async def review_action_type(session, org_id) -> TaskActionType:
    action_type = TaskActionType(
        organization_id=org_id,
        code="REVIEW",
        label="Review",
        sort_order=1,
        is_active=True,
    )
    session.add(action_type)
    await session.flush()
    return action_type
