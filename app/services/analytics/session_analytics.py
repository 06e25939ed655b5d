# ============================================================================
# Session Analytics
# ============================================================================
"""
End-of-session rollup for adaptive practice.

Reads the answer log of one session, computes summary statistics, stores them
once in session_stats and derives short textual recommendations from fixed
threshold rules.
"""
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from datetime import datetime
from collections import defaultdict
from uuid import UUID
import logging

from app.config import get_settings
from app.core.exceptions import MetricsNotFound, SessionNotFound
from app.models.curriculum import Subcategory
from app.models.practice import PracticeSession, SessionStats, UserMetric

logger = logging.getLogger(__name__)

# Recommendation thresholds
WEAK_TOPIC_ACCURACY = 60
IMPROVEMENT_THRESHOLD = 10
SLOW_ANSWER_SECONDS = 120
FAST_ANSWER_SECONDS = 30
HIGH_ACCURACY = 80
LOW_ACCURACY = 50

@dataclass(frozen=True)
class MetricSnapshot:
    """One answered question as seen by the aggregator"""
    is_correct: bool
    time_taken_seconds: int
    difficulty: str
    created_at: datetime
    topic: Optional[str] = None

@dataclass
class SessionStatsResult:
    avg_accuracy: float
    avg_time_seconds: int
    improvement_rate: float
    difficulty_transitions: int
    session_duration_seconds: int
    total_questions: int
    correct_questions: int
    topic_wise_accuracy: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)

def _accuracy(records: Sequence[MetricSnapshot]) -> float:
    if not records:
        return 0.0
    correct = sum(1 for r in records if r.is_correct)
    return correct * 100 / len(records)

def compute_session_stats(
    records: Sequence[MetricSnapshot],
    improvement_window: int = 5
) -> SessionStatsResult:
    """Summarize a non-empty, time-ordered answer log"""
    if not records:
        raise ValueError("Cannot compute statistics for an empty session")

    total = len(records)
    correct = sum(1 for r in records if r.is_correct)

    avg_time = round(sum(r.time_taken_seconds for r in records) / total)

    # Windows overlap when the session is shorter than twice the window
    window = min(improvement_window, total)
    improvement_rate = _accuracy(records[-window:]) - _accuracy(records[:window])

    transitions = sum(
        1 for previous, current in zip(records, records[1:])
        if current.difficulty != previous.difficulty
    )

    by_topic: Dict[str, List[MetricSnapshot]] = defaultdict(list)
    for record in records:
        if record.topic:
            by_topic[record.topic].append(record)
    topic_wise_accuracy = {topic: _accuracy(items) for topic, items in by_topic.items()}

    first, last = records[0], records[-1]
    elapsed = round((last.created_at - first.created_at).total_seconds())

    return SessionStatsResult(
        avg_accuracy=correct * 100 / total,
        avg_time_seconds=avg_time,
        improvement_rate=improvement_rate,
        difficulty_transitions=transitions,
        session_duration_seconds=elapsed + last.time_taken_seconds,
        total_questions=total,
        correct_questions=correct,
        topic_wise_accuracy=topic_wise_accuracy,
    )

def generate_recommendations(stats: SessionStatsResult, limit: int = 5) -> List[str]:
    recommendations = []

    weak_topics = [
        topic for topic, accuracy in stats.topic_wise_accuracy.items()
        if accuracy < WEAK_TOPIC_ACCURACY
    ]
    if weak_topics:
        recommendations.append(f"Focus on improving: {', '.join(weak_topics)}")

    if stats.improvement_rate > IMPROVEMENT_THRESHOLD:
        recommendations.append(
            f"Great progress! You improved {stats.improvement_rate:.1f}% during this session"
        )
    elif stats.improvement_rate < -IMPROVEMENT_THRESHOLD:
        recommendations.append("Take a break and come back refreshed. Consistency is key!")

    if stats.avg_time_seconds > SLOW_ANSWER_SECONDS:
        recommendations.append("Try to work on time management. Aim for under 2 minutes per question")
    elif stats.avg_time_seconds < FAST_ANSWER_SECONDS:
        recommendations.append("You're answering quickly! Make sure to read questions carefully")

    if stats.avg_accuracy >= HIGH_ACCURACY:
        recommendations.append("Excellent work! Consider trying harder difficulty questions")
    elif stats.avg_accuracy < LOW_ACCURACY:
        recommendations.append("Review the basics and practice more easy questions to build confidence")

    if not recommendations:
        recommendations.append("Keep it up! Start another practice session to continue building mastery")

    return recommendations[:limit]

class SessionAnalyticsAggregator:
    """Computes and stores the one-time summary of a practice session"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def summarize_session(
        self,
        session_id: UUID,
        user_id: UUID
    ) -> Tuple[SessionStatsResult, List[str]]:
        session = await self.db.get(PracticeSession, session_id)
        if not session or session.user_id != user_id:
            raise SessionNotFound(str(session_id))

        records = await self._load_records(session_id)
        if not records:
            raise MetricsNotFound(str(session_id))

        stats = compute_session_stats(records, self.settings.IMPROVEMENT_WINDOW)
        await self._store_stats(session, stats)

        recommendations = generate_recommendations(stats, self.settings.MAX_RECOMMENDATIONS)
        return stats, recommendations

    async def _load_records(self, session_id: UUID) -> List[MetricSnapshot]:
        result = await self.db.execute(
            select(UserMetric, Subcategory.name)
            .outerjoin(Subcategory, UserMetric.subcategory_id == Subcategory.id)
            .where(UserMetric.session_id == session_id)
            .order_by(UserMetric.created_at.asc())
        )
        return [
            MetricSnapshot(
                is_correct=bool(metric.is_correct),
                time_taken_seconds=metric.time_taken_seconds or 0,
                difficulty=metric.difficulty,
                created_at=metric.created_at,
                topic=topic,
            )
            for metric, topic in result.all()
        ]

    async def _store_stats(self, session: PracticeSession, stats: SessionStatsResult) -> None:
        """Insert the stats row unless the session already has one"""
        session_id = session.id
        existing = await self.db.execute(
            select(SessionStats.id).where(SessionStats.session_id == session_id)
        )
        if existing.scalar_one_or_none() is not None:
            logger.info(f"Stats already stored for session {session_id}")
            return

        try:
            async with self.db.begin_nested():
                self.db.add(SessionStats(
                    session_id=session_id,
                    user_id=session.user_id,
                    category_id=session.category_id,
                    **stats.to_dict(),
                ))
        except IntegrityError:
            # Concurrent summary for the same session won the insert
            logger.info(f"Stats for session {session_id} were stored concurrently")
