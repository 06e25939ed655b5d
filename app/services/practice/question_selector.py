# ============================================================================
# Question Selection with Difficulty Fallback
# ============================================================================
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select
from uuid import UUID
import random
import logging

from app.config import get_settings
from app.models.curriculum import Question
from app.services.practice.adaptive_difficulty import DifficultyLevel

logger = logging.getLogger(__name__)

# Tiers tried after the target, in this order
FALLBACK_ORDER = (DifficultyLevel.MEDIUM, DifficultyLevel.EASY, DifficultyLevel.HARD)

def difficulty_fallback_order(target: DifficultyLevel) -> List[DifficultyLevel]:
    """Target difficulty first, then the remaining tiers without repeats"""
    order = [DifficultyLevel(target)]
    for difficulty in FALLBACK_ORDER:
        if difficulty not in order:
            order.append(difficulty)
    return order

class QuestionSelector:
    """Pick one unseen question, preferring the learner's target difficulty"""

    def __init__(self, db: AsyncSession, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng or random.Random()
        self.batch_size = get_settings().QUESTION_BATCH_SIZE

    async def select_question(
        self,
        target_difficulty: DifficultyLevel,
        subcategory_ids: Iterable[UUID],
        excluded_question_ids: Iterable[UUID] = ()
    ) -> Optional[Question]:
        """
        Walk the difficulty tiers starting at the target and return a random
        unseen question from the first tier that has one.

        Returns None when every tier is empty or fully excluded; callers treat
        that as the topic selection being exhausted.
        """
        target_difficulty = DifficultyLevel(target_difficulty)
        subcategory_ids = list(dict.fromkeys(subcategory_ids))
        excluded = set(excluded_question_ids)

        if not subcategory_ids:
            return None

        for difficulty in difficulty_fallback_order(target_difficulty):
            candidates = await self._candidates_for_tier(difficulty, subcategory_ids, excluded)
            if candidates:
                if difficulty != target_difficulty:
                    logger.info(f"No {target_difficulty.value} questions left, falling back to {difficulty.value}")
                return self.rng.choice(candidates)

        logger.info(f"Question pool exhausted for subcategories {subcategory_ids}")
        return None

    async def _candidates_for_tier(
        self,
        difficulty: DifficultyLevel,
        subcategory_ids: List[UUID],
        excluded: set
    ) -> List[Question]:
        query = (
            select(Question)
            .where(Question.is_active == True)
            .where(Question.subcategory_id.in_(subcategory_ids))
            .where(Question.difficulty == difficulty.value)
        )
        if excluded:
            query = query.where(~Question.id.in_(excluded))
        query = query.limit(self.batch_size)

        # Savepoint per tier; a failed query must not abort the request transaction
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(query)
                questions = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Question query failed for difficulty {difficulty.value}: {e}")
            return []

        return [q for q in questions if q.id not in excluded]
