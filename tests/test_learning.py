"""
Tests for the SQL-backed learning engine.

These tests verify:
1. Feedback rows are persisted in their own transaction
2. Approvals create or strengthen routing patterns
3. Declines weaken existing patterns but never create new ones
4. Reassigning an AI-suggested task is recorded as a correction
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from task_pool.models import TaskAIFeedback, TaskAIPattern
from task_pool.services import (
    SQLLearningEngine,
    SuggestionFeedback,
    SuggestionInput,
    SuggestionReviewService,
    TaskPoolEngine,
)
from task_pool.services.learning import score_pattern


@pytest.fixture
def learning_engine(session_factory) -> SQLLearningEngine:
    return SQLLearningEngine(session_factory)


def make_feedback(org_id, actor_id, assignee, user_action="approved", **kwargs):
    kwargs.setdefault("ai_category", "billing")
    return SuggestionFeedback(
        user_action=user_action,
        was_ai_correct=user_action == "approved",
        feedback_by=actor_id,
        organization_id=org_id,
        suggestion_id=uuid4(),
        user_assigned_to=assignee,
        user_priority="high",
        **kwargs,
    )


async def load_patterns(session_factory, org_id):
    async with session_factory() as session:
        result = await session.execute(
            select(TaskAIPattern)
            .where(TaskAIPattern.organization_id == org_id)
            .order_by(TaskAIPattern.pattern_type)
        )
        return result.scalars().all()


class TestScorePattern:
    def test_no_history_is_neutral(self):
        assert score_pattern(0, 0) == (0.5, 0.35)

    def test_volume_raises_confidence(self):
        rate, low_volume = score_pattern(2, 2)
        _, high_volume = score_pattern(20, 20)

        assert rate == 1.0
        assert low_volume == pytest.approx(0.73)
        assert high_volume == pytest.approx(1.0)

    def test_rejections_lower_rate(self):
        rate, confidence = score_pattern(10, 20)

        assert rate == 0.5
        assert confidence == pytest.approx(0.65)


class TestRecordFeedback:
    async def test_feedback_persisted(
        self, learning_engine: SQLLearningEngine, session_factory, org_id, user_id
    ):
        feedback = make_feedback(org_id, user_id, uuid4(), diff={"priority": {"from": "low", "to": "high"}})

        await learning_engine.record_feedback(feedback)

        async with session_factory() as session:
            stored = (await session.execute(select(TaskAIFeedback))).scalar_one()
        assert stored.suggestion_id == feedback.suggestion_id
        assert stored.user_action == "approved"
        assert stored.was_ai_correct is True
        assert stored.diff == {"priority": {"from": "low", "to": "high"}}

    async def test_first_approval_creates_low_confidence_patterns(
        self, learning_engine: SQLLearningEngine, session_factory, org_id, user_id
    ):
        assignee, client_id = uuid4(), uuid4()

        await learning_engine.record_feedback(
            make_feedback(org_id, user_id, assignee, client_id=client_id)
        )

        patterns = await load_patterns(session_factory, org_id)
        assert [p.pattern_type for p in patterns] == ["category_to_user", "client_to_user"]
        for pattern in patterns:
            assert pattern.suggest_assigned_to == assignee
            assert pattern.times_accepted == 1
            assert pattern.acceptance_rate == 1.0
            assert pattern.confidence_score == 0.3
            assert len(pattern.learned_from_feedback_ids) == 1

    async def test_repeat_approval_strengthens_pattern(
        self, learning_engine: SQLLearningEngine, session_factory, org_id, user_id
    ):
        first, second = uuid4(), uuid4()

        await learning_engine.record_feedback(make_feedback(org_id, user_id, first))
        await learning_engine.record_feedback(make_feedback(org_id, user_id, second))

        (pattern,) = await load_patterns(session_factory, org_id)
        assert pattern.times_accepted == 2
        assert pattern.confidence_score == pytest.approx(0.73)
        assert pattern.suggest_assigned_to == second
        assert len(pattern.learned_from_feedback_ids) == 2

    async def test_decline_weakens_existing_pattern(
        self, learning_engine: SQLLearningEngine, session_factory, org_id, user_id
    ):
        assignee = uuid4()
        await learning_engine.record_feedback(make_feedback(org_id, user_id, assignee))

        await learning_engine.record_feedback(
            make_feedback(org_id, user_id, uuid4(), user_action="declined")
        )

        (pattern,) = await load_patterns(session_factory, org_id)
        assert pattern.times_accepted == 1
        assert pattern.times_rejected == 1
        assert pattern.acceptance_rate == 0.5
        assert pattern.suggest_assigned_to == assignee

    async def test_decline_never_creates_pattern(
        self, learning_engine: SQLLearningEngine, session_factory, org_id, user_id
    ):
        await learning_engine.record_feedback(
            make_feedback(org_id, user_id, uuid4(), user_action="declined")
        )

        assert await load_patterns(session_factory, org_id) == []

    async def test_feedback_without_assignee_learns_nothing(
        self, learning_engine: SQLLearningEngine, session_factory, org_id, user_id
    ):
        await learning_engine.record_feedback(make_feedback(org_id, user_id, None))

        assert await load_patterns(session_factory, org_id) == []

    async def test_pattern_stats(
        self, learning_engine: SQLLearningEngine, org_id, user_id
    ):
        await learning_engine.record_feedback(make_feedback(org_id, user_id, uuid4()))

        stats = await learning_engine.pattern_stats(org_id)

        assert stats["total_patterns"] == 1
        assert stats["active_patterns"] == 1
        assert stats["average_acceptance"] == 100
        assert stats["top_patterns"][0]["category"] == "billing"


class TestAssignmentPatterns:
    async def test_reassigning_suggested_task_is_a_correction(
        self, session, session_factory, learning_engine: SQLLearningEngine,
        org_id, policy, user_id, other_user_id, third_user_id,
    ):
        engine = TaskPoolEngine(session, organization_id=org_id, permissions=policy)
        reviews = SuggestionReviewService(session, engine)
        suggestion = await reviews.create_suggestion(
            SuggestionInput(
                source_type="email",
                title="Send organizer",
                assigned_to=other_user_id,
                priority="low",
                ai_category="onboarding",
            )
        )
        approved = await reviews.approve(suggestion.id, user_id)
        await session.commit()

        await learning_engine.log_assignment_pattern(
            approved.task_id,
            "assigned",
            user_id,
            {"assigned_to": third_user_id, "previous_assignee": other_user_id},
        )

        async with session_factory() as check:
            result = await check.execute(
                select(TaskAIFeedback).where(TaskAIFeedback.feedback_type == "task_reassigned")
            )
            stored = result.scalar_one()
        assert stored.task_id == approved.task_id
        assert stored.suggestion_id == suggestion.id
        assert stored.user_action == "reassigned"
        assert stored.was_ai_correct is False
        assert stored.correction_type == "assignee"
        assert stored.user_assigned_to == third_user_id
        assert stored.diff == {
            "assigned_to": {"from": str(other_user_id), "to": str(third_user_id)}
        }

        patterns = await load_patterns(session_factory, org_id)
        assert [p.suggest_assigned_to for p in patterns] == [third_user_id]

    async def test_manual_task_assignment_is_ignored(
        self, session, session_factory, learning_engine: SQLLearningEngine,
        make_task, user_id, other_user_id,
    ):
        task = await make_task()
        await session.commit()

        await learning_engine.log_assignment_pattern(
            task.id, "assigned", user_id, {"assigned_to": other_user_id, "previous_assignee": None}
        )

        async with session_factory() as check:
            rows = (await check.execute(select(TaskAIFeedback))).scalars().all()
        assert rows == []
