from app.models.curriculum import Category, Subcategory, Question
from app.models.practice import PracticeSession, AdaptiveState, UserMetric, SessionStats

__all__ = [
    "Category", "Subcategory", "Question",
    "PracticeSession", "AdaptiveState", "UserMetric", "SessionStats"
]
