from .session_guard import (
    AccessDeniedError,
    AuthRequestError,
    RouteDecision,
    SessionExpiredError,
    SessionGuard,
)
from .session_store import SessionStore

__all__ = [
    "AccessDeniedError",
    "AuthRequestError",
    "RouteDecision",
    "SessionExpiredError",
    "SessionGuard",
    "SessionStore",
]
