# ============================================================================
# Custom Exceptions
# ============================================================================
from typing import Optional

class PracticeEngineException(Exception):
    """Base exception for the practice engine"""
    def __init__(
        self,
        detail: str,
        status_code: int = 400,
        error_code: Optional[str] = None
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code or "PRACTICE_ERROR"
        super().__init__(self.detail)

class InvalidRequest(PracticeEngineException):
    def __init__(self, message: str = "Missing required fields"):
        super().__init__(
            detail=message,
            status_code=400,
            error_code="VALIDATION_ERROR"
        )

class SessionNotFound(PracticeEngineException):
    def __init__(self, session_id: str):
        super().__init__(
            detail=f"Session not found: {session_id}",
            status_code=404,
            error_code="SESSION_NOT_FOUND"
        )

class MetricsNotFound(PracticeEngineException):
    def __init__(self, session_id: str):
        super().__init__(
            detail=f"No metrics found for session: {session_id}",
            status_code=404,
            error_code="METRICS_NOT_FOUND"
        )

class AdaptiveStateNotFound(PracticeEngineException):
    def __init__(self, category_id: str):
        super().__init__(
            detail=f"No adaptive state for category: {category_id}",
            status_code=404,
            error_code="ADAPTIVE_STATE_NOT_FOUND"
        )

class UserMismatch(PracticeEngineException):
    def __init__(self):
        super().__init__(
            detail="user_id does not match the authenticated user",
            status_code=403,
            error_code="USER_MISMATCH"
        )
