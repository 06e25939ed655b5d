# ============================================================================
# Practice Session Models
# ============================================================================
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy import Float, JSON, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
import uuid
from app.core.database import Base

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class PracticeSession(Base):
    __tablename__ = "practice_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    category_id = Column(Uuid, ForeignKey("categories.id"), nullable=False)

    config = Column(JSON, default=dict)  # selected_subcategories, mode
    status = Column(String(20), default="in_progress")  # in_progress, completed, abandoned
    started_at = Column(DateTime(timezone=True), default=utcnow)
    ended_at = Column(DateTime(timezone=True))

    total_questions = Column(Integer, default=0)
    correct_answers = Column(Integer, default=0)

    metrics = relationship("UserMetric", back_populates="session", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<PracticeSession {self.id} ({self.status})>"

class AdaptiveState(Base):
    """Current mastery for one (user, category) pair, mutated in place"""
    __tablename__ = "adaptive_state"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)
    category_id = Column(Uuid, ForeignKey("categories.id"), nullable=False)

    mastery_score = Column(Float, nullable=False, default=0.50)
    current_difficulty = Column(String(20), nullable=False, default="medium")

    # Auxiliary counters refreshed on every answer
    recent_accuracy = Column(JSON, default=list)  # last N outcomes as 1/0
    avg_time_seconds = Column(Float, default=0.0)
    questions_answered = Column(Integer, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'category_id', name='unique_user_category_state'),
    )

    def __repr__(self):
        return f"<AdaptiveState {self.user_id}/{self.category_id} {self.mastery_score:.2f}>"

class UserMetric(Base):
    """Append-only record of one answered question"""
    __tablename__ = "user_metrics"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    session_id = Column(Uuid, ForeignKey("practice_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Uuid, nullable=False)
    subcategory_id = Column(Uuid, ForeignKey("subcategories.id"), nullable=True)

    is_correct = Column(Boolean, nullable=False)
    time_taken_seconds = Column(Integer, nullable=False, default=0)
    difficulty = Column(String(20), nullable=False)
    previous_difficulty = Column(String(20))
    mastery_score_before = Column(Float)
    mastery_score_after = Column(Float)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    session = relationship("PracticeSession", back_populates="metrics")
    subcategory = relationship("Subcategory")

    def __repr__(self):
        return f"<UserMetric {self.id} ({'✓' if self.is_correct else '✗'})>"

class SessionStats(Base):
    __tablename__ = "session_stats"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("practice_sessions.id", ondelete="CASCADE"), nullable=False, unique=True)
    user_id = Column(Uuid, nullable=False)
    category_id = Column(Uuid, ForeignKey("categories.id"), nullable=True)

    avg_accuracy = Column(Float, nullable=False)
    avg_time_seconds = Column(Integer, nullable=False)
    improvement_rate = Column(Float, nullable=False)
    difficulty_transitions = Column(Integer, nullable=False, default=0)
    session_duration_seconds = Column(Integer, nullable=False)
    topic_wise_accuracy = Column(JSON, default=dict)
    total_questions = Column(Integer, nullable=False)
    correct_questions = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    def __repr__(self):
        return f"<SessionStats {self.session_id} {self.avg_accuracy:.1f}%>"
