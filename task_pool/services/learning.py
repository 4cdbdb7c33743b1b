"""
Learning Engine: turns review outcomes into routing patterns.

Learns from:
- Approvals (the AI proposal was right)
- Modifications (which fields a human overrode, and to what)
- Declines (the proposal was wrong, and why)
- Reassignments (who actually ended up owning the work)

Every call runs in its own session, separate from the request transaction
that triggered it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import Task, TaskAIFeedback, TaskAIPattern, TaskAISuggestion

logger = logging.getLogger(__name__)

LEARNABLE_ACTIONS = {"approved", "declined", "modified", "reassigned"}
MAX_FEEDBACK_IDS = 100
VOLUME_SATURATION = 20


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class SuggestionFeedback:
    """What a reviewer did with an AI proposal."""
    user_action: str  # approved | modified | declined | reassigned
    was_ai_correct: bool
    feedback_by: UUID
    suggestion_id: UUID | None = None
    task_id: UUID | None = None
    organization_id: UUID | None = None
    feedback_type: str = "suggestion_reviewed"
    correction_type: str | None = None
    correction_reason: str | None = None
    diff: dict[str, dict[str, Any]] = field(default_factory=dict)
    # Snapshot of the AI proposal
    source_type: str | None = None
    ai_category: str | None = None
    ai_confidence: float | None = None
    client_id: UUID | None = None
    ai_suggested_assignee: UUID | None = None
    ai_suggested_priority: str | None = None
    # What the human settled on
    user_assigned_to: UUID | None = None
    user_priority: str | None = None

    @classmethod
    def from_suggestion(
        cls,
        suggestion: TaskAISuggestion,
        **kwargs: Any,
    ) -> "SuggestionFeedback":
        kwargs.setdefault("user_assigned_to", suggestion.suggested_assigned_to)
        kwargs.setdefault("user_priority", suggestion.suggested_priority)
        return cls(
            suggestion_id=suggestion.id,
            organization_id=suggestion.organization_id,
            source_type=suggestion.source_type,
            ai_category=suggestion.ai_category,
            ai_confidence=suggestion.ai_confidence,
            client_id=suggestion.suggested_client_id,
            ai_suggested_assignee=suggestion.suggested_assigned_to,
            ai_suggested_priority=suggestion.suggested_priority,
            **kwargs,
        )


class LearningEngine(Protocol):
    async def record_feedback(self, feedback: SuggestionFeedback) -> None: ...

    async def log_assignment_pattern(
        self,
        task_id: UUID,
        action: str,
        actor_id: UUID,
        details: dict[str, Any],
    ) -> None: ...


# =============================================================================
# SQL-BACKED ENGINE
# =============================================================================


class SQLLearningEngine:
    """Persists feedback and maintains patterns in the task database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record_feedback(self, feedback: SuggestionFeedback) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                row = TaskAIFeedback(
                    organization_id=feedback.organization_id,
                    feedback_type=feedback.feedback_type,
                    suggestion_id=feedback.suggestion_id,
                    task_id=feedback.task_id,
                    source_type=feedback.source_type,
                    ai_category=feedback.ai_category,
                    client_id=feedback.client_id,
                    ai_suggested_assignee=feedback.ai_suggested_assignee,
                    ai_suggested_priority=feedback.ai_suggested_priority,
                    ai_confidence=feedback.ai_confidence,
                    user_action=feedback.user_action,
                    user_assigned_to=feedback.user_assigned_to,
                    user_priority=feedback.user_priority,
                    was_ai_correct=feedback.was_ai_correct,
                    correction_type=feedback.correction_type,
                    correction_reason=feedback.correction_reason,
                    diff=feedback.diff or None,
                    feedback_by=feedback.feedback_by,
                )
                session.add(row)
                await session.flush()
                await self._extract_patterns(session, row)

        logger.info(
            f"Recorded {feedback.user_action} feedback "
            f"(suggestion={feedback.suggestion_id}, ai_correct={feedback.was_ai_correct})"
        )

    async def log_assignment_pattern(
        self,
        task_id: UUID,
        action: str,
        actor_id: UUID,
        details: dict[str, Any],
    ) -> None:
        """Record an assignment change; reassigning an AI-suggested task is a correction."""
        if action != "assigned":
            logger.debug(f"Assignment pattern {action} on task {task_id} by {actor_id}")
            return

        async with self._session_factory() as session:
            task = await session.get(Task, task_id)
            if task is None:
                return
            suggestion_id = (task.source_metadata or {}).get("suggestion_id")
            if not suggestion_id:
                return
            suggestion = await session.get(TaskAISuggestion, UUID(str(suggestion_id)))

        previous = details.get("previous_assignee")
        new_assignee = details.get("assigned_to")
        base = dict(
            task_id=task_id,
            feedback_type="task_reassigned",
            user_action="reassigned",
            was_ai_correct=False,
            correction_type="assignee",
            correction_reason=f"Reassigned from {previous or 'unassigned'} to {new_assignee}",
            feedback_by=actor_id,
            user_assigned_to=_as_uuid(new_assignee),
            diff={"assigned_to": {"from": _as_str(previous), "to": _as_str(new_assignee)}},
        )
        if suggestion is not None:
            feedback = SuggestionFeedback.from_suggestion(suggestion, **base)
        else:
            feedback = SuggestionFeedback(organization_id=task.organization_id, **base)
        await self.record_feedback(feedback)

    async def pattern_stats(self, organization_id: UUID | None = None) -> dict[str, Any]:
        async with self._session_factory() as session:
            query = select(TaskAIPattern).order_by(TaskAIPattern.confidence_score.desc())
            if organization_id:
                query = query.where(TaskAIPattern.organization_id == organization_id)
            patterns = (await session.execute(query)).scalars().all()

        if not patterns:
            return {
                "total_patterns": 0,
                "active_patterns": 0,
                "average_acceptance": 0,
                "top_patterns": [],
            }

        average = sum(p.acceptance_rate or 0 for p in patterns) / len(patterns)
        return {
            "total_patterns": len(patterns),
            "active_patterns": sum(1 for p in patterns if p.is_active),
            "average_acceptance": round(average * 100),
            "top_patterns": [
                {
                    "id": str(p.id),
                    "type": p.pattern_type,
                    "category": p.match_category,
                    "confidence": p.confidence_score,
                    "acceptance": p.acceptance_rate,
                }
                for p in patterns[:10]
            ],
        }

    # =========================================================================
    # PATTERN EXTRACTION
    # =========================================================================

    async def _extract_patterns(self, session: AsyncSession, feedback: TaskAIFeedback) -> None:
        if feedback.user_action not in LEARNABLE_ACTIONS or not feedback.user_assigned_to:
            return

        candidates: list[dict[str, Any]] = []
        if feedback.ai_category:
            candidates.append({
                "pattern_type": "category_to_user",
                "match_category": feedback.ai_category,
                "match_client_id": None,
            })
        if feedback.client_id:
            candidates.append({
                "pattern_type": "client_to_user",
                "match_category": None,
                "match_client_id": feedback.client_id,
            })

        for candidate in candidates:
            await self._update_or_create_pattern(session, candidate, feedback)

    async def _update_or_create_pattern(
        self,
        session: AsyncSession,
        candidate: dict[str, Any],
        feedback: TaskAIFeedback,
    ) -> None:
        query = select(TaskAIPattern).where(
            TaskAIPattern.pattern_type == candidate["pattern_type"],
            TaskAIPattern.organization_id == feedback.organization_id,
        )
        if candidate["match_category"]:
            query = query.where(TaskAIPattern.match_category == candidate["match_category"])
        if candidate["match_client_id"]:
            query = query.where(TaskAIPattern.match_client_id == candidate["match_client_id"])
        pattern = (await session.execute(query.limit(1))).scalar_one_or_none()

        was_rejected = feedback.user_action == "declined"
        was_accepted = not was_rejected

        if pattern is None:
            if was_rejected:
                return
            session.add(TaskAIPattern(
                organization_id=feedback.organization_id,
                pattern_type=candidate["pattern_type"],
                match_category=candidate["match_category"],
                match_client_id=candidate["match_client_id"],
                suggest_assigned_to=feedback.user_assigned_to,
                suggest_priority=feedback.user_priority,
                times_accepted=1,
                times_rejected=0,
                acceptance_rate=1.0,
                confidence_score=0.3,  # Start with low confidence
                learned_from_feedback_ids=[str(feedback.id)],
            ))
            return

        pattern.times_accepted = (pattern.times_accepted or 0) + (1 if was_accepted else 0)
        pattern.times_rejected = (pattern.times_rejected or 0) + (1 if was_rejected else 0)
        total = pattern.times_accepted + pattern.times_rejected
        rate, confidence = score_pattern(pattern.times_accepted, total)
        pattern.acceptance_rate = rate
        pattern.confidence_score = confidence
        if was_accepted:
            pattern.suggest_assigned_to = feedback.user_assigned_to
            pattern.suggest_priority = feedback.user_priority or pattern.suggest_priority
        pattern.learned_from_feedback_ids = [
            *(pattern.learned_from_feedback_ids or []),
            str(feedback.id),
        ][-MAX_FEEDBACK_IDS:]


def score_pattern(times_accepted: int, total: int) -> tuple[float, float]:
    """Acceptance rate and confidence; more volume means more confidence."""
    rate = times_accepted / total if total > 0 else 0.5
    volume = min(total / VOLUME_SATURATION, 1)
    return round(rate, 2), round(rate * 0.7 + volume * 0.3, 2)


def _as_uuid(value: Any) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


def _as_str(value: Any) -> str | None:
    return None if value is None else str(value)
