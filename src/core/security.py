"""Bearer token issuing and verification.

Tokens are HS256 JWTs carrying the user id (``sub``), the role and an expiry.
They are self-contained: verification never touches the database, so a
token keeps the role it was issued with until it expires.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import pytz
from jose import ExpiredSignatureError, JWTError, jwt

from config import ROLES
from core.exceptions import (
    BadSignatureError,
    MalformedTokenError,
    TokenExpiredError,
)


@dataclass(frozen=True)
class TokenClaims:
    """Identity decoded from a verified bearer token."""

    user_id: str
    role: str


class TokenIssuer:
    """Creates and validates signed, time-limited bearer tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expires_delta: timedelta = timedelta(days=7),
    ):
        """Initialize TokenIssuer.

        Args:
            secret_key: Server-held signing secret.
            algorithm: JWT signing algorithm.
            expires_delta: Validity window of issued tokens.
        """
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expires_delta = expires_delta

    def issue(
        self,
        user_id: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """Create a signed token for a user.

        Args:
            user_id: Identifier stored in the ``sub`` claim.
            role: Role stored in the ``role`` claim.
            expires_delta: Optional override of the validity window.
            now: Optional issue instant, defaults to the current UTC time.

        Returns:
            Encoded JWT token string.
        """
        issued_at = now or datetime.now(pytz.utc)
        expire = issued_at + (expires_delta if expires_delta is not None else self._expires_delta)
        to_encode = {
            "sub": user_id,
            "role": role,
            "iat": int(issued_at.timestamp()),
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Verify a token and return the identity it carries.

        Args:
            token: Externally supplied token string.

        Returns:
            TokenClaims with user_id and role.

        Raises:
            MalformedTokenError: If the token cannot be parsed or lacks claims.
            BadSignatureError: If the signature does not match.
            TokenExpiredError: If the token is past its expiry.
        """
        if not token or not isinstance(token, str):
            raise MalformedTokenError()
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError:
            raise MalformedTokenError()

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError:
            raise BadSignatureError()

        user_id = payload.get("sub")
        role = payload.get("role")
        if not isinstance(user_id, str) or not user_id or role not in ROLES:
            raise MalformedTokenError()
        return TokenClaims(user_id=user_id, role=role)
