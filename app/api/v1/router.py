# ============================================================================
# Main API Router
# ============================================================================
from fastapi import APIRouter

from app.api.v1 import practice

api_router = APIRouter()

# Adaptive practice: sessions, next question, summaries, adaptive state
api_router.include_router(practice.router)
