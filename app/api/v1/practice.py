# ============================================================================
# Adaptive Practice Endpoints
# ============================================================================
from fastapi import APIRouter, Depends
from typing import Optional, Union
from uuid import UUID

from app.api.deps import (
    ensure_same_user,
    get_analytics_aggregator,
    get_current_user_id,
    get_session_manager,
)
from app.schemas.practice import (
    AdaptiveStateResponse,
    ExhaustedResponse,
    InitializeAdaptiveRequest,
    NextQuestionRequest,
    NextQuestionResponse,
    SessionResponse,
    SessionStatsPayload,
    SessionSummaryRequest,
    SessionSummaryResponse,
    StartSessionRequest,
)
from app.services.analytics.session_analytics import SessionAnalyticsAggregator
from app.services.practice.session_manager import PracticeSessionManager

router = APIRouter(prefix="/practice", tags=["practice"])

@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def start_practice_session(
    request: StartSessionRequest,
    user_id: UUID = Depends(get_current_user_id),
    manager: PracticeSessionManager = Depends(get_session_manager)
):
    """Start a new adaptive practice session"""
    session = await manager.start_session(
        user_id=user_id,
        category_id=request.category_id,
        selected_subcategories=request.selected_subcategories
    )
    return manager.session_to_dict(session)

@router.post("/next-question", response_model=Union[NextQuestionResponse, ExhaustedResponse])
async def next_question(
    request: NextQuestionRequest,
    user_id: UUID = Depends(get_current_user_id),
    manager: PracticeSessionManager = Depends(get_session_manager)
):
    """Record the previous answer and serve the next question"""
    ensure_same_user(request.user_id, user_id)
    return await manager.next_question(request)

@router.post("/sessions/{session_id}/end", response_model=SessionResponse)
async def end_session(
    session_id: UUID,
    abandoned: bool = False,
    user_id: UUID = Depends(get_current_user_id),
    manager: PracticeSessionManager = Depends(get_session_manager)
):
    """Close a practice session"""
    session = await manager.end_session(session_id, user_id, abandoned=abandoned)
    return manager.session_to_dict(session)

@router.post("/session-summary", response_model=SessionSummaryResponse)
async def session_summary(
    request: SessionSummaryRequest,
    user_id: UUID = Depends(get_current_user_id),
    aggregator: SessionAnalyticsAggregator = Depends(get_analytics_aggregator)
):
    """Compute (once) and return the session's statistics and recommendations"""
    ensure_same_user(request.user_id, user_id)
    stats, recommendations = await aggregator.summarize_session(request.session_id, user_id)
    return SessionSummaryResponse(
        stats=SessionStatsPayload(**stats.to_dict()),
        recommendations=recommendations
    )

@router.get("/sessions/history")
async def get_session_history(
    limit: Optional[int] = None,
    user_id: UUID = Depends(get_current_user_id),
    manager: PracticeSessionManager = Depends(get_session_manager)
):
    """Get practice session history"""
    sessions = await manager.get_session_history(user_id, limit)
    return {
        "sessions": [
            SessionResponse(**manager.session_to_dict(s)).model_dump(mode="json")
            for s in sessions
        ]
    }

@router.post("/adaptive/initialize")
async def initialize_adaptive(
    request: InitializeAdaptiveRequest,
    user_id: UUID = Depends(get_current_user_id),
    manager: PracticeSessionManager = Depends(get_session_manager)
):
    """Create starting adaptive state for the given categories"""
    states = await manager.initialize_adaptive_state(user_id, request.category_ids)
    count = len(states)
    return {
        "success": True,
        "message": f"Initialized adaptive state for {count} categor{'y' if count == 1 else 'ies'}",
        "states": [AdaptiveStateResponse.model_validate(s).model_dump(mode="json") for s in states]
    }

@router.get("/adaptive/{category_id}", response_model=AdaptiveStateResponse)
async def get_adaptive_state(
    category_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    manager: PracticeSessionManager = Depends(get_session_manager)
):
    """Current mastery and difficulty for one category"""
    return await manager.get_adaptive_state(user_id, category_id)
