# ============================================================================
# API Dependencies
# ============================================================================
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.core.database import get_db
from app.core.exceptions import UserMismatch
from app.core.security import get_current_user_id
from app.services.practice.session_manager import PracticeSessionManager
from app.services.analytics.session_analytics import SessionAnalyticsAggregator


# ============================================================================
# Service Dependencies
# ============================================================================
async def get_session_manager(db: AsyncSession = Depends(get_db)) -> PracticeSessionManager:
    return PracticeSessionManager(db)


async def get_analytics_aggregator(db: AsyncSession = Depends(get_db)) -> SessionAnalyticsAggregator:
    return SessionAnalyticsAggregator(db)


# ============================================================================
# Identity Checks
# ============================================================================
def ensure_same_user(body_user_id: UUID, current_user_id: UUID) -> UUID:
    """The user named in a request body must be the authenticated user"""
    if body_user_id != current_user_id:
        raise UserMismatch()
    return current_user_id


__all__ = ["get_current_user_id", "get_session_manager", "get_analytics_aggregator", "ensure_same_user"]
