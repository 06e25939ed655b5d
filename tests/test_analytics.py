# ============================================================================
# Session Analytics Tests
# ============================================================================
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from uuid import uuid4
from sqlalchemy import select, func

from app.core.exceptions import MetricsNotFound, SessionNotFound
from app.models.practice import SessionStats, UserMetric
from app.services.analytics.session_analytics import (
    MetricSnapshot,
    SessionAnalyticsAggregator,
    SessionStatsResult,
    compute_session_stats,
    generate_recommendations,
)

START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

def make_records(outcomes, difficulties=None, times=None, topics=None, spacing=30):
    """Build a time-ordered answer log from a list of correct/incorrect flags"""
    n = len(outcomes)
    difficulties = difficulties or ["medium"] * n
    times = times or [45] * n
    topics = topics or ["Percentages"] * n
    return [
        MetricSnapshot(
            is_correct=outcomes[i],
            time_taken_seconds=times[i],
            difficulty=difficulties[i],
            created_at=START + timedelta(seconds=spacing * i),
            topic=topics[i],
        )
        for i in range(n)
    ]

def make_stats(**overrides):
    values = dict(
        avg_accuracy=65.0,
        avg_time_seconds=60,
        improvement_rate=0.0,
        difficulty_transitions=0,
        session_duration_seconds=600,
        total_questions=10,
        correct_questions=6,
        topic_wise_accuracy={"Percentages": 65.0},
    )
    values.update(overrides)
    return SessionStatsResult(**values)


class TestComputeSessionStats:
    """Tests for the pure statistics rollup"""

    def test_accuracy_seven_of_ten(self):
        outcomes = [True] * 7 + [False] * 3
        stats = compute_session_stats(make_records(outcomes))
        assert stats.avg_accuracy == 70.0
        assert stats.total_questions == 10
        assert stats.correct_questions == 7

    def test_improvement_rate_twelve_records(self):
        # First five: 2/5 correct; last five: 5/5 correct
        outcomes = [False, False, False, True, True, True, False, True, True, True, True, True]
        stats = compute_session_stats(make_records(outcomes))
        assert stats.improvement_rate == 60.0

    def test_improvement_rate_overlapping_windows(self):
        """Six records: windows share the middle four answers"""
        outcomes = [False, True, True, True, True, True]
        stats = compute_session_stats(make_records(outcomes))
        # first five 80%, last five 100%
        assert stats.improvement_rate == 20.0

    def test_improvement_rate_short_session(self):
        stats = compute_session_stats(make_records([True, False]))
        assert stats.improvement_rate == 0.0

    def test_decline_is_negative(self):
        outcomes = [True] * 5 + [False] * 5
        stats = compute_session_stats(make_records(outcomes))
        assert stats.improvement_rate == -100.0

    def test_difficulty_transitions(self):
        difficulties = ["medium", "medium", "hard", "hard", "medium", "easy"]
        stats = compute_session_stats(make_records([True] * 6, difficulties=difficulties))
        assert stats.difficulty_transitions == 3

    def test_average_time_is_rounded(self):
        stats = compute_session_stats(make_records([True] * 3, times=[40, 41, 41]))
        assert stats.avg_time_seconds == 41

    def test_session_duration_includes_last_answer(self):
        records = make_records([True] * 5, times=[10, 10, 10, 10, 20], spacing=25)
        stats = compute_session_stats(records)
        # 100 seconds between first and last record, plus 20 for the last answer
        assert stats.session_duration_seconds == 120

    def test_topic_wise_accuracy(self):
        outcomes = [True, False, True, True]
        topics = ["Percentages", "Percentages", "Time and Work", None]
        stats = compute_session_stats(make_records(outcomes, topics=topics))
        assert stats.topic_wise_accuracy == {"Percentages": 50.0, "Time and Work": 100.0}

    def test_empty_log_rejected(self):
        with pytest.raises(ValueError):
            compute_session_stats([])


class TestRecommendations:
    """Tests for rule-based recommendations"""

    def test_generic_when_nothing_fires(self):
        recommendations = generate_recommendations(make_stats())
        assert len(recommendations) == 1
        assert "practice session" in recommendations[0]

    def test_weak_topics_listed(self):
        stats = make_stats(topic_wise_accuracy={"Percentages": 40.0, "Ratios": 55.0, "Averages": 90.0})
        recommendations = generate_recommendations(stats)
        assert recommendations[0] == "Focus on improving: Percentages, Ratios"

    def test_progress_praise(self):
        recommendations = generate_recommendations(make_stats(improvement_rate=40.0))
        assert recommendations == ["Great progress! You improved 40.0% during this session"]

    def test_decline_suggests_break(self):
        recommendations = generate_recommendations(make_stats(improvement_rate=-20.0))
        assert "Take a break" in recommendations[0]

    def test_time_rules(self):
        slow = generate_recommendations(make_stats(avg_time_seconds=150))
        fast = generate_recommendations(make_stats(avg_time_seconds=12))
        assert "time management" in slow[0]
        assert "read questions carefully" in fast[0]

    def test_accuracy_rules(self):
        high = generate_recommendations(make_stats(avg_accuracy=85.0, topic_wise_accuracy={}))
        low = generate_recommendations(make_stats(avg_accuracy=30.0, topic_wise_accuracy={}))
        assert "harder difficulty" in high[0]
        assert "Review the basics" in low[0]

    def test_at_most_five(self):
        stats = make_stats(
            avg_accuracy=20.0,
            avg_time_seconds=200,
            improvement_rate=-50.0,
            topic_wise_accuracy={"Percentages": 20.0},
        )
        recommendations = generate_recommendations(stats)
        assert len(recommendations) == 4
        assert len(generate_recommendations(stats, limit=2)) == 2


class TestSessionAnalyticsAggregator:
    """Tests for loading, storing and idempotency"""

    async def _log_answers(self, db_session, practice_session, question_bank, user_id, outcomes):
        question = question_bank["questions"][3]
        for i, is_correct in enumerate(outcomes):
            db_session.add(UserMetric(
                user_id=user_id,
                session_id=practice_session.id,
                question_id=question.id,
                subcategory_id=question_bank["percentages"].id,
                is_correct=is_correct,
                time_taken_seconds=40,
                difficulty="medium",
                previous_difficulty="medium",
                mastery_score_before=0.5,
                mastery_score_after=0.55,
                created_at=START + timedelta(seconds=60 * i),
            ))
        await db_session.commit()

    async def test_summarize_session(self, db_session, practice_session, question_bank, user_id):
        await self._log_answers(db_session, practice_session, question_bank, user_id, [True] * 7 + [False] * 3)

        aggregator = SessionAnalyticsAggregator(db_session)
        stats, recommendations = await aggregator.summarize_session(practice_session.id, user_id)

        assert stats.avg_accuracy == 70.0
        assert stats.avg_time_seconds == 40
        assert stats.session_duration_seconds == 9 * 60 + 40
        assert stats.topic_wise_accuracy == {"Percentages": 70.0}
        assert 1 <= len(recommendations) <= 5

        row = (await db_session.execute(
            select(SessionStats).where(SessionStats.session_id == practice_session.id)
        )).scalar_one()
        assert row.avg_accuracy == 70.0
        assert row.category_id == question_bank["category"].id

    async def test_second_call_does_not_duplicate(self, db_session, practice_session, question_bank, user_id):
        await self._log_answers(db_session, practice_session, question_bank, user_id, [True, False, True])

        aggregator = SessionAnalyticsAggregator(db_session)
        first, _ = await aggregator.summarize_session(practice_session.id, user_id)
        second, _ = await aggregator.summarize_session(practice_session.id, user_id)

        assert first == second
        count = await db_session.execute(
            select(func.count(SessionStats.id)).where(SessionStats.session_id == practice_session.id)
        )
        assert count.scalar() == 1

    async def test_concurrent_insert_is_skipped(self, db_session, practice_session, question_bank, user_id, monkeypatch):
        """The unique constraint catches a writer that slipped past the existence check"""
        await self._log_answers(db_session, practice_session, question_bank, user_id, [True, True, False])
        aggregator = SessionAnalyticsAggregator(db_session)
        first, _ = await aggregator.summarize_session(practice_session.id, user_id)

        real_execute = db_session.execute

        async def execute(statement, *args, **kwargs):
            if str(statement).startswith("SELECT session_stats.id"):
                missing = MagicMock()
                missing.scalar_one_or_none.return_value = None
                return missing
            return await real_execute(statement, *args, **kwargs)

        monkeypatch.setattr(db_session, "execute", execute)

        second, recommendations = await aggregator.summarize_session(practice_session.id, user_id)
        await db_session.commit()

        assert second == first
        assert recommendations
        assert practice_session.status == "in_progress"
        count = await db_session.execute(
            select(func.count(SessionStats.id)).where(SessionStats.session_id == practice_session.id)
        )
        assert count.scalar() == 1

    async def test_session_without_answers(self, db_session, practice_session, user_id):
        aggregator = SessionAnalyticsAggregator(db_session)
        with pytest.raises(MetricsNotFound):
            await aggregator.summarize_session(practice_session.id, user_id)

    async def test_unknown_session(self, db_session, user_id):
        aggregator = SessionAnalyticsAggregator(db_session)
        with pytest.raises(SessionNotFound):
            await aggregator.summarize_session(uuid4(), user_id)

    async def test_other_users_session(self, db_session, practice_session, question_bank, user_id):
        await self._log_answers(db_session, practice_session, question_bank, user_id, [True])
        aggregator = SessionAnalyticsAggregator(db_session)
        with pytest.raises(SessionNotFound):
            await aggregator.summarize_session(practice_session.id, uuid4())
