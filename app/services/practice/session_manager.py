# ============================================================================
# Practice Session Management Service
# ============================================================================
"""
Drives adaptive practice sessions.

Each answer submission runs the mastery update for the answered question,
then selects the next unseen question at the learner's new target difficulty.
Sessions are opened with a fixed topic selection and closed when the learner
finishes or walks away.
"""
from typing import Dict, Any, List, Optional, Sequence, Union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, timezone
from uuid import UUID
import random
import logging

from app.config import get_settings
from app.core.exceptions import AdaptiveStateNotFound, InvalidRequest, SessionNotFound
from app.models.curriculum import Category, Question, Subcategory
from app.models.practice import AdaptiveState, PracticeSession, UserMetric
from app.schemas.practice import (
    AnalyticsSnapshot,
    CategoryInfo,
    ExhaustedResponse,
    NextQuestionRequest,
    NextQuestionResponse,
    QuestionPayload,
    SubcategoryInfo,
)
from app.services.practice.adaptive_difficulty import AdaptiveDifficultySystem, DifficultyLevel
from app.services.practice.question_selector import QuestionSelector

logger = logging.getLogger(__name__)


class PracticeSessionManager:
    """
    Manages adaptive practice sessions.

    Features:
    - Mastery update and difficulty adjustment per answer
    - Unseen-question selection with difficulty fallback
    - Live analytics snapshot for the practice screen
    - Session open/close bookkeeping
    """

    def __init__(self, db: AsyncSession, rng: Optional[random.Random] = None):
        self.db = db
        self.settings = get_settings()
        self.adaptive = AdaptiveDifficultySystem(db)
        self.selector = QuestionSelector(db, rng)

    # ==================== Session Lifecycle ====================

    async def start_session(
        self,
        user_id: UUID,
        category_id: UUID,
        selected_subcategories: Sequence[UUID]
    ) -> PracticeSession:
        """Open an in-progress adaptive session over the chosen topics"""
        if not selected_subcategories:
            raise InvalidRequest("Please select at least one topic")

        category = await self.db.get(Category, category_id)
        if not category:
            raise InvalidRequest(f"Unknown category: {category_id}")
        await self._check_topics(category_id, selected_subcategories)

        session = PracticeSession(
            user_id=user_id,
            category_id=category_id,
            config={
                "selected_subcategories": [str(s) for s in dict.fromkeys(selected_subcategories)],
                "mode": "adaptive",
            },
            status="in_progress",
            total_questions=0,
            correct_answers=0,
        )
        self.db.add(session)
        await self.db.flush()

        logger.info(f"Started practice session {session.id} for user {user_id}")
        return session

    async def end_session(
        self,
        session_id: UUID,
        user_id: UUID,
        abandoned: bool = False
    ) -> PracticeSession:
        """Close a session and store its answer totals"""
        session = await self._get_owned_session(session_id, user_id)

        result = await self.db.execute(
            select(
                func.count(UserMetric.id),
                func.count(UserMetric.id).filter(UserMetric.is_correct == True)
            )
            .where(UserMetric.session_id == session_id)
        )
        total, correct = result.one()

        session.total_questions = total or 0
        session.correct_answers = correct or 0
        session.status = "abandoned" if abandoned else "completed"
        session.ended_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(f"Session {session_id} {session.status}: {session.correct_answers}/{session.total_questions}")
        return session

    async def get_session_history(self, user_id: UUID, limit: Optional[int] = None) -> List[PracticeSession]:
        result = await self.db.execute(
            select(PracticeSession)
            .where(PracticeSession.user_id == user_id)
            .order_by(PracticeSession.started_at.desc())
            .limit(limit or self.settings.SESSION_HISTORY_LIMIT)
        )
        return list(result.scalars().all())

    # ==================== Question Flow ====================

    async def next_question(
        self,
        request: NextQuestionRequest
    ) -> Union[NextQuestionResponse, ExhaustedResponse]:
        """
        Process the previous answer (if any) and serve the next question.

        Returns ExhaustedResponse when no unseen question remains in the
        selected topics at any difficulty.
        """
        session = await self._get_owned_session(request.session_id, request.user_id)
        if session.category_id != request.category_id:
            raise InvalidRequest("Session does not belong to this category")
        await self._check_topics(session.category_id, request.selected_subcategories)

        excluded = set(request.answered_question_ids)
        last = request.last_question

        if last:
            update = await self.adaptive.record_answer(
                user_id=request.user_id,
                category_id=request.category_id,
                session_id=request.session_id,
                question_id=last.question_id,
                is_correct=last.is_correct,
                time_taken_seconds=last.time_taken,
                presented_difficulty=last.difficulty.value,
            )
            mastery = update.mastery_after
            target = update.new_difficulty
            excluded.add(last.question_id)
        else:
            state, _ = await self.adaptive.get_or_create_state(request.user_id, request.category_id)
            mastery = float(state.mastery_score)
            target = DifficultyLevel(state.current_difficulty)

        question = await self.selector.select_question(
            target_difficulty=target,
            subcategory_ids=request.selected_subcategories,
            excluded_question_ids=excluded,
        )
        if question is None:
            return ExhaustedResponse()

        analytics = await self._build_snapshot(request.session_id, mastery, target)
        return NextQuestionResponse(
            question=await self._format_question(question),
            analytics=analytics,
        )

    async def _build_snapshot(
        self,
        session_id: UUID,
        mastery: float,
        difficulty: DifficultyLevel
    ) -> AnalyticsSnapshot:
        answered = await self.db.execute(
            select(func.count(UserMetric.id)).where(UserMetric.session_id == session_id)
        )

        recent = await self.db.execute(
            select(UserMetric.is_correct)
            .where(UserMetric.session_id == session_id)
            .order_by(UserMetric.created_at.desc())
            .limit(self.settings.RECENT_ACCURACY_WINDOW)
        )
        outcomes = [bool(row[0]) for row in recent.all()]
        recent_accuracy = round(sum(outcomes) * 100 / len(outcomes)) if outcomes else 0

        return AnalyticsSnapshot(
            mastery_score=mastery,
            current_difficulty=difficulty.value,
            recent_accuracy=recent_accuracy,
            questions_answered=answered.scalar() or 0,
        )

    async def _format_question(self, question: Question) -> QuestionPayload:
        subcategory_info = None
        result = await self.db.execute(
            select(Subcategory.id, Subcategory.name, Category.name)
            .join(Category, Subcategory.category_id == Category.id)
            .where(Subcategory.id == question.subcategory_id)
        )
        row = result.first()
        if row:
            subcategory_info = SubcategoryInfo(
                id=row[0],
                name=row[1],
                category=CategoryInfo(name=row[2]),
            )

        return QuestionPayload(
            id=question.id,
            text=question.question_text,
            type=question.question_type,
            options=[opt for opt in (question.options or []) if opt],
            difficulty=question.difficulty,
            subcategory=subcategory_info,
        )

    # ==================== Adaptive State ====================

    async def initialize_adaptive_state(
        self,
        user_id: UUID,
        category_ids: Sequence[UUID]
    ) -> List[AdaptiveState]:
        """Create starting states for categories the learner has none for"""
        result = await self.db.execute(
            select(Category.id).where(Category.id.in_(list(category_ids)))
        )
        known = {row[0] for row in result.all()}
        unknown = [str(c) for c in category_ids if c not in known]
        if unknown:
            raise InvalidRequest(f"Unknown categories: {', '.join(unknown)}")

        states = []
        for category_id in dict.fromkeys(category_ids):
            state, _ = await self.adaptive.get_or_create_state(user_id, category_id)
            states.append(state)
        return states

    async def get_adaptive_state(self, user_id: UUID, category_id: UUID) -> AdaptiveState:
        state = await self.adaptive.get_state(user_id, category_id)
        if not state:
            raise AdaptiveStateNotFound(str(category_id))
        return state

    # ==================== Helpers ====================

    async def _check_topics(self, category_id: UUID, subcategory_ids: Sequence[UUID]) -> None:
        """Every selected topic must be a subcategory of the session's category"""
        result = await self.db.execute(
            select(Subcategory.id)
            .where(Subcategory.id.in_(list(subcategory_ids)))
            .where(Subcategory.category_id == category_id)
        )
        known = {row[0] for row in result.all()}
        foreign = [str(s) for s in subcategory_ids if s not in known]
        if foreign:
            raise InvalidRequest(f"Topics not in this category: {', '.join(foreign)}")

    async def _get_owned_session(self, session_id: UUID, user_id: UUID) -> PracticeSession:
        session = await self.db.get(PracticeSession, session_id)
        if not session or session.user_id != user_id:
            raise SessionNotFound(str(session_id))
        return session

    @staticmethod
    def session_to_dict(session: PracticeSession) -> Dict[str, Any]:
        return {
            "id": session.id,
            "category_id": session.category_id,
            "status": session.status,
            "selected_subcategories": (session.config or {}).get("selected_subcategories", []),
            "started_at": session.started_at,
            "ended_at": session.ended_at,
            "total_questions": session.total_questions or 0,
            "correct_answers": session.correct_answers or 0,
        }
