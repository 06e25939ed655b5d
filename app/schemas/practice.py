# ============================================================================
# Practice Schemas
# ============================================================================
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from uuid import UUID
from enum import Enum

class QuestionTypeEnum(str, Enum):
    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"

class DifficultyEnum(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class SessionStatusEnum(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

# ==================== Advance session ====================

class LastQuestion(BaseModel):
    question_id: UUID
    is_correct: bool
    time_taken: float = Field(..., ge=0)
    difficulty: DifficultyEnum

class NextQuestionRequest(BaseModel):
    user_id: UUID
    category_id: UUID
    session_id: UUID
    selected_subcategories: List[UUID] = Field(..., min_length=1)
    answered_question_ids: List[UUID] = Field(default_factory=list)
    last_question: Optional[LastQuestion] = None

class CategoryInfo(BaseModel):
    name: str

class SubcategoryInfo(BaseModel):
    id: UUID
    name: str
    category: CategoryInfo

class QuestionPayload(BaseModel):
    id: UUID
    text: str
    type: str
    options: List[str] = Field(default_factory=list)
    difficulty: DifficultyEnum
    subcategory: Optional[SubcategoryInfo] = None

class AnalyticsSnapshot(BaseModel):
    mastery_score: float
    current_difficulty: DifficultyEnum
    recent_accuracy: int
    questions_answered: int

class NextQuestionResponse(BaseModel):
    question: QuestionPayload
    analytics: AnalyticsSnapshot

class ExhaustedResponse(BaseModel):
    error: str = "No more questions available for selected topics"
    exhausted: bool = True

# ==================== Session summary ====================

class SessionSummaryRequest(BaseModel):
    session_id: UUID
    user_id: UUID

class SessionStatsPayload(BaseModel):
    avg_accuracy: float
    avg_time_seconds: int
    improvement_rate: float
    difficulty_transitions: int
    session_duration_seconds: int
    topic_wise_accuracy: Dict[str, float]
    total_questions: int
    correct_questions: int

class SessionSummaryResponse(BaseModel):
    success: bool = True
    stats: SessionStatsPayload
    recommendations: List[str]

# ==================== Session lifecycle ====================

class StartSessionRequest(BaseModel):
    category_id: UUID
    selected_subcategories: List[UUID] = Field(..., min_length=1)

class SessionResponse(BaseModel):
    id: UUID
    category_id: UUID
    status: SessionStatusEnum
    selected_subcategories: List[UUID]
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    total_questions: int = 0
    correct_answers: int = 0

# ==================== Adaptive state ====================

class InitializeAdaptiveRequest(BaseModel):
    category_ids: List[UUID] = Field(..., min_length=1)

class AdaptiveStateResponse(BaseModel):
    category_id: UUID
    mastery_score: float
    current_difficulty: DifficultyEnum
    recent_accuracy: List[int]
    avg_time_seconds: float
    questions_answered: int

    class Config:
        from_attributes = True
