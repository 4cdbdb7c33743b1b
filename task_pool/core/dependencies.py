"""FastAPI dependencies for authentication, collaborators and services."""

import logging
from functools import lru_cache
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..services import (
    LearningEngine,
    LoggingNotificationSink,
    NotificationSink,
    PermissionOverride,
    PolicyEngine,
    Role,
    SideEffectDispatcher,
    SQLLearningEngine,
    StatsAggregator,
    StatsCache,
    StepChecklist,
    SuggestionReviewService,
    TaskPoolEngine,
    WebhookNotificationSink,
)
from .config import get_settings
from .database import async_session_factory, get_session
from .security import decode_token

logger = logging.getLogger(__name__)
settings = get_settings()

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser:
    """Represents the authenticated caller."""

    def __init__(
        self,
        id: UUID,
        organization_id: UUID,
        role: Role = Role.STAFF,
        overrides: list[PermissionOverride] | None = None,
    ):
        self.id = id
        self.organization_id = organization_id
        self.role = role
        self.overrides = overrides or []

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.OWNER, Role.ADMIN)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> CurrentUser:
    """Dependency to get the current authenticated user from a bearer token."""
    if not credentials:
        raise _unauthenticated("Not authenticated")

    payload = decode_token(credentials.credentials)
    if not payload:
        raise _unauthenticated("Invalid or expired token")

    if payload.type != "access":
        raise _unauthenticated("Invalid token type")

    try:
        user_id = UUID(payload.sub)
        organization_id = UUID(payload.org)
        role = Role(payload.role)
    except ValueError:
        logger.warning(f"Rejected token with malformed identity claims (sub={payload.sub})")
        raise _unauthenticated("Invalid token claims")

    overrides = [
        PermissionOverride(
            user_id=user_id,
            permission=claim.permission,
            granted=claim.granted,
            expires_at=claim.expires_at,
        )
        for claim in payload.overrides
    ]
    return CurrentUser(
        id=user_id,
        organization_id=organization_id,
        role=role,
        overrides=overrides,
    )


# =============================================================================
# COLLABORATORS (process-wide)
# =============================================================================


@lru_cache
def get_dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher(
        max_retries=settings.side_effect_max_retries,
        retry_delay_seconds=settings.side_effect_retry_delay_seconds,
    )


@lru_cache
def get_notifier() -> NotificationSink:
    if settings.webhook_notifications_enabled:
        return WebhookNotificationSink(
            settings.notification_webhook_url,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    return LoggingNotificationSink()


@lru_cache
def get_learning_engine() -> LearningEngine:
    return SQLLearningEngine(async_session_factory)


@lru_cache
def get_stats_cache() -> StatsCache:
    return StatsCache(ttl_seconds=settings.stats_cache_ttl_seconds)


# =============================================================================
# PER-REQUEST SERVICES
# =============================================================================


SessionDep = Annotated[AsyncSession, Depends(get_session)]
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
DispatcherDep = Annotated[SideEffectDispatcher, Depends(get_dispatcher)]
NotifierDep = Annotated[NotificationSink, Depends(get_notifier)]
LearningDep = Annotated[LearningEngine, Depends(get_learning_engine)]


def get_policy(current_user: CurrentUserDep) -> PolicyEngine:
    """Policy engine that knows the caller's role and overrides."""
    return PolicyEngine().with_actor(
        current_user.id,
        current_user.role,
        current_user.overrides,
    )


PolicyDep = Annotated[PolicyEngine, Depends(get_policy)]


def get_task_engine(
    session: SessionDep,
    current_user: CurrentUserDep,
    policy: PolicyDep,
    notifier: NotifierDep,
    learning: LearningDep,
    dispatcher: DispatcherDep,
) -> TaskPoolEngine:
    return TaskPoolEngine(
        session,
        organization_id=current_user.organization_id,
        permissions=policy,
        notifier=notifier,
        learning=learning,
        dispatcher=dispatcher,
    )


EngineDep = Annotated[TaskPoolEngine, Depends(get_task_engine)]


def get_step_checklist(session: SessionDep, current_user: CurrentUserDep) -> StepChecklist:
    return StepChecklist(session, current_user.organization_id)


def get_suggestion_service(
    session: SessionDep,
    engine: EngineDep,
    learning: LearningDep,
    dispatcher: DispatcherDep,
) -> SuggestionReviewService:
    return SuggestionReviewService(
        session,
        engine,
        learning=learning,
        dispatcher=dispatcher,
        suggestion_ttl_hours=settings.suggestion_ttl_hours,
    )


def get_stats_aggregator(
    session: SessionDep,
    current_user: CurrentUserDep,
    cache: Annotated[StatsCache, Depends(get_stats_cache)],
) -> StatsAggregator:
    return StatsAggregator(session, current_user.organization_id, cache=cache)


StepsDep = Annotated[StepChecklist, Depends(get_step_checklist)]
SuggestionServiceDep = Annotated[SuggestionReviewService, Depends(get_suggestion_service)]
StatsDep = Annotated[StatsAggregator, Depends(get_stats_aggregator)]
