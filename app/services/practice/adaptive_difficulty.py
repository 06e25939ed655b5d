# ============================================================================
# Adaptive Difficulty System
# ============================================================================
from dataclasses import dataclass
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from uuid import UUID
from enum import Enum
import logging

from app.config import get_settings
from app.models.curriculum import Question
from app.models.practice import AdaptiveState, UserMetric

logger = logging.getLogger(__name__)

class DifficultyLevel(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

# Mastery moves by a fixed step per answer
MASTERY_STEP = 0.05
INITIAL_MASTERY = 0.50
INITIAL_DIFFICULTY = DifficultyLevel.MEDIUM

# Thresholds for difficulty adjustment (strict on both sides)
HARD_THRESHOLD = 0.75
EASY_THRESHOLD = 0.35

def apply_mastery_delta(mastery: float, is_correct: bool) -> float:
    """Step mastery up or down and clamp it to [0, 1]"""
    delta = MASTERY_STEP if is_correct else -MASTERY_STEP
    # Rounded so repeated steps land exactly on the thresholds
    return round(max(0.0, min(1.0, mastery + delta)), 4)

def difficulty_for_mastery(mastery: float) -> DifficultyLevel:
    if mastery > HARD_THRESHOLD:
        return DifficultyLevel.HARD
    if mastery < EASY_THRESHOLD:
        return DifficultyLevel.EASY
    return DifficultyLevel.MEDIUM

@dataclass(frozen=True)
class MasteryUpdate:
    mastery_before: float
    mastery_after: float
    previous_difficulty: DifficultyLevel
    new_difficulty: DifficultyLevel

class AdaptiveDifficultySystem:
    """Per-category mastery tracking that drives the next question's difficulty"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.recent_window = get_settings().RECENT_ACCURACY_WINDOW

    async def get_state(self, user_id: UUID, category_id: UUID) -> Optional[AdaptiveState]:
        result = await self.db.execute(
            select(AdaptiveState)
            .where(AdaptiveState.user_id == user_id)
            .where(AdaptiveState.category_id == category_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_state(
        self,
        user_id: UUID,
        category_id: UUID
    ) -> Tuple[AdaptiveState, bool]:
        """Load the learner's state, creating it at the starting mastery if absent"""
        state = await self.get_state(user_id, category_id)
        if state:
            return state, False

        state = AdaptiveState(
            user_id=user_id,
            category_id=category_id,
            mastery_score=INITIAL_MASTERY,
            current_difficulty=INITIAL_DIFFICULTY.value,
            recent_accuracy=[],
            avg_time_seconds=0.0,
            questions_answered=0,
        )
        self.db.add(state)
        await self.db.flush()
        logger.info(f"Initialized adaptive state for user {user_id} in category {category_id}")
        return state, True

    async def record_answer(
        self,
        user_id: UUID,
        category_id: UUID,
        session_id: UUID,
        question_id: UUID,
        is_correct: bool,
        time_taken_seconds: float,
        presented_difficulty: str
    ) -> MasteryUpdate:
        """
        Apply the outcome of the just-answered question.

        The state row is overwritten with the new mastery and difficulty, then
        a UserMetric is appended capturing both sides of the update.
        """
        state, _ = await self.get_or_create_state(user_id, category_id)
        time_taken_seconds = round(time_taken_seconds)

        mastery_before = float(state.mastery_score)
        previous_difficulty = DifficultyLevel(state.current_difficulty)

        mastery_after = apply_mastery_delta(mastery_before, is_correct)
        new_difficulty = difficulty_for_mastery(mastery_after)

        state.mastery_score = mastery_after
        state.current_difficulty = new_difficulty.value
        self._update_counters(state, is_correct, time_taken_seconds)

        question = await self.db.get(Question, question_id)
        if question is None:
            logger.warning(f"Answered question {question_id} not found; recording without subcategory")

        self.db.add(UserMetric(
            user_id=user_id,
            session_id=session_id,
            question_id=question_id,
            subcategory_id=question.subcategory_id if question else None,
            is_correct=is_correct,
            time_taken_seconds=time_taken_seconds,
            difficulty=presented_difficulty,
            previous_difficulty=previous_difficulty.value,
            mastery_score_before=mastery_before,
            mastery_score_after=mastery_after,
        ))
        await self.db.flush()

        if new_difficulty != previous_difficulty:
            logger.info(
                f"User {user_id} category {category_id}: "
                f"{previous_difficulty.value} -> {new_difficulty.value} (mastery {mastery_after:.2f})"
            )

        return MasteryUpdate(
            mastery_before=mastery_before,
            mastery_after=mastery_after,
            previous_difficulty=previous_difficulty,
            new_difficulty=new_difficulty,
        )

    def _update_counters(self, state: AdaptiveState, is_correct: bool, time_taken_seconds: int) -> None:
        answered = (state.questions_answered or 0) + 1
        previous_avg = float(state.avg_time_seconds or 0.0)

        # New list so the JSON column is flagged dirty
        recent = list(state.recent_accuracy or []) + [1 if is_correct else 0]
        state.recent_accuracy = recent[-self.recent_window:]
        state.avg_time_seconds = round(previous_avg + (time_taken_seconds - previous_avg) / answered, 2)
        state.questions_answered = answered
