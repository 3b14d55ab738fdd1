"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes:
request-scoped managers, the token issuer, and the access control
dependencies ``authenticate`` and ``require_role``.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    DEFAULT_JWT_SECRET_KEY,
    JWT_ALGORITHM,
    JWT_SECRET_KEY,
    ROLES,
)
from core.database import get_db
from core.exceptions import ForbiddenError, MissingTokenError
from core.security import TokenIssuer
from utils import user_manager
from utils.email_sender import EmailSender, LoggingEmailSender

logger = logging.getLogger(__name__)

# auto_error is off so a missing header is reported in our own error format
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity attached to a request once its bearer token is verified."""

    user_id: str
    role: str


@lru_cache(maxsize=1)
def get_token_issuer() -> TokenIssuer:
    """Get the process-wide TokenIssuer built from configuration.

    Returns:
        TokenIssuer instance (singleton).
    """
    if JWT_SECRET_KEY == DEFAULT_JWT_SECRET_KEY:
        logger.warning("JWT_SECRET_KEY is not set, using the development default")
    return TokenIssuer(
        JWT_SECRET_KEY,
        algorithm=JWT_ALGORITHM,
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )


@lru_cache(maxsize=1)
def get_email_sender() -> EmailSender:
    """Get the EmailSender used for password reset links."""
    return LoggingEmailSender()


def get_user_manager(
    db: Session = Depends(get_db),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    email_sender: EmailSender = Depends(get_email_sender),
) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.
        token_issuer: Injected TokenIssuer.
        email_sender: Injected EmailSender.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db, token_issuer, email_sender)


def authenticate(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthContext:
    """Verify the bearer token from the Authorization header.

    Args:
        credentials: HTTP Bearer token credentials, if any.
        token_issuer: Injected TokenIssuer.

    Returns:
        AuthContext with the verified user_id and role.

    Raises:
        MissingTokenError: If no bearer token was sent.
        TokenVerificationError: If the token is malformed, forged or expired.
    """
    if credentials is None or not credentials.credentials:
        raise MissingTokenError()
    claims = token_issuer.verify(credentials.credentials)
    return AuthContext(user_id=claims.user_id, role=claims.role)


def require_role(*allowed_roles: str):
    """Build a dependency that only lets the given roles through.

    The returned dependency runs ``authenticate`` first, so a request with a
    missing or invalid token is rejected before any role check.

    Example:
        @router.get("/users")
        def list_users(ctx: AuthContext = Depends(require_role("admin"))): ...
    """
    unknown = set(allowed_roles) - set(ROLES)
    if unknown:
        raise ValueError(f"Unknown roles: {sorted(unknown)}")
    allowed = frozenset(allowed_roles)

    def check_role(context: AuthContext = Depends(authenticate)) -> AuthContext:
        if context.role not in allowed:
            raise ForbiddenError(role=context.role)
        return context

    return check_role


# Type aliases for dependency injection
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
CurrentUser = Annotated[AuthContext, Depends(authenticate)]
AdminUser = Annotated[AuthContext, Depends(require_role("admin"))]
