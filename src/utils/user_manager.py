"""User management utilities.

This module provides the Auth Service: signup, login, password reset and
profile updates. ``UserManager`` is the only code that writes password
hashes and reset tokens.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import bcrypt
import pytz
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import (
    AUTH_PROVIDERS,
    BCRYPT_ROUNDS,
    FRONTEND_URL,
    PASSWORD_MIN_LENGTH,
    RESET_TOKEN_EXPIRE_MINUTES,
    ROLES,
)
from core.exceptions import (
    AccountDeactivatedError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidOrExpiredTokenError,
    UserNotFoundError,
)
from core.security import TokenIssuer
from models.user import UserModel
from schemas.user import User
from utils.email_sender import EmailSender

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "bio",
    "location",
    "website",
    "github",
    "linkedin",
    "twitter",
)

# Compared against when the email is unknown so both login failures cost a bcrypt check
_dummy_hash: Optional[bytes] = None


def _utcnow() -> datetime:
    return datetime.now(pytz.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


class UserManager:
    """Manages user credentials and profiles using SQLAlchemy."""

    def __init__(
        self,
        db: Session,
        token_issuer: TokenIssuer,
        email_sender: EmailSender,
        reset_token_ttl: timedelta = timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES),
    ):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
            token_issuer: Issuer used to mint bearer tokens.
            email_sender: Collaborator used to deliver reset links.
            reset_token_ttl: Validity window of password reset tokens.
        """
        self.db = db
        self.token_issuer = token_issuer
        self.email_sender = email_sender
        self.reset_token_ttl = reset_token_ttl

    # --- Passwords ---

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            plain_password: Plain text password to verify.
            hashed_password: Bcrypt hash string to verify against.

        Returns:
            True if password matches, False otherwise.
        """
        global _dummy_hash
        if not hashed_password:
            if _dummy_hash is None:
                _dummy_hash = bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
            bcrypt.checkpw(_password_bytes(plain_password), _dummy_hash)
            return False
        try:
            return bcrypt.checkpw(
                _password_bytes(plain_password), hashed_password.encode("utf-8")
            )
        except ValueError as e:
            logger.error("Password verification error: %s", e)
            return False

    def _validate_password(self, password: Optional[str]) -> str:
        if not password or len(password) < PASSWORD_MIN_LENGTH:
            raise InvalidInputError(
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
            )
        return password

    # --- Lookups ---

    def _get_model_by_id(self, user_id: str) -> UserModel:
        model = self.db.query(UserModel).filter(UserModel.user_id == user_id).first()
        if model is None:
            raise UserNotFoundError(user_id)
        return model

    def _get_model_by_email(self, email: str) -> Optional[UserModel]:
        return (
            self.db.query(UserModel)
            .filter(UserModel.email == _normalize_email(email))
            .first()
        )

    def get_user_by_id(self, user_id: str) -> User:
        """Get a user by user ID.

        Raises:
            UserNotFoundError: If no user has this ID.
        """
        return User.model_validate(self._get_model_by_id(user_id))

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email (case-insensitive), or None."""
        model = self._get_model_by_email(email)
        if model:
            return User.model_validate(model)
        return None

    def list_users(self) -> List[User]:
        """List all users, newest first."""
        models = self.db.query(UserModel).order_by(UserModel.created_at.desc()).all()
        return [User.model_validate(m) for m in models]

    def issue_token(self, user: User) -> str:
        return self.token_issuer.issue(user.user_id, user.role)

    # --- Account creation ---

    def _create(self, model: UserModel) -> User:
        # Two concurrent signups can both pass the lookup; the unique index decides
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
        except IntegrityError as e:
            self.db.rollback()
            if "email" in str(e).lower() or "unique" in str(e).lower():
                raise DuplicateEmailError() from e
            raise
        logger.info("Created %s user: %s", model.auth_provider, model.email)
        return User.model_validate(model)

    def signup(
        self,
        email: str,
        password: Optional[str],
        first_name: Optional[str],
        last_name: Optional[str],
    ) -> Tuple[str, User]:
        """Register a local account.

        Args:
            email: Email address, stored lower-cased.
            password: Plain text password.
            first_name: First name.
            last_name: Last name.

        Returns:
            Tuple of (bearer token, created User).

        Raises:
            InvalidInputError: If a field is missing or the password is too short.
            DuplicateEmailError: If the email is already registered.
        """
        email = _normalize_email(email)
        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        if not email or not first_name or not last_name or not password:
            raise InvalidInputError(
                "Please provide all required fields: firstName, lastName, email, password"
            )
        self._validate_password(password)

        if self._get_model_by_email(email) is not None:
            raise DuplicateEmailError()

        user = self._create(
            UserModel(
                user_id=str(uuid4()),
                email=email,
                password_hash=self.hash_password(password),
                first_name=first_name,
                last_name=last_name,
                role="viewer",
                auth_provider="local",
                is_active=True,
                created_at=_utcnow(),
            )
        )
        return self.issue_token(user), user

    def get_or_create_oauth_user(
        self,
        email: str,
        provider: str,
        first_name: str,
        last_name: str = "",
    ) -> User:
        """Return the account for a federated login, creating it on first use.

        OAuth accounts never carry a password hash.

        Raises:
            InvalidInputError: If the provider is not a federated one.
        """
        if provider not in AUTH_PROVIDERS or provider == "local":
            raise InvalidInputError(f"Unsupported auth provider: {provider}")
        existing = self._get_model_by_email(email)
        if existing is not None:
            return User.model_validate(existing)
        return self._create(
            UserModel(
                user_id=str(uuid4()),
                email=_normalize_email(email),
                password_hash=None,
                first_name=(first_name or "").strip() or _normalize_email(email).split("@")[0],
                last_name=(last_name or "").strip(),
                role="viewer",
                auth_provider=provider,
                is_active=True,
                created_at=_utcnow(),
            )
        )

    def ensure_admin(self, email: str, password: str) -> User:
        """Create the bootstrap admin account if it does not exist yet."""
        existing = self._get_model_by_email(email)
        if existing is not None:
            return User.model_validate(existing)
        self._validate_password(password)
        user = self._create(
            UserModel(
                user_id=str(uuid4()),
                email=_normalize_email(email),
                password_hash=self.hash_password(password),
                first_name="Site",
                last_name="Admin",
                role="admin",
                auth_provider="local",
                is_active=True,
                created_at=_utcnow(),
            )
        )
        logger.info("Bootstrap admin created: %s", user.email)
        return user

    # --- Login ---

    def login(self, email: Optional[str], password: Optional[str]) -> Tuple[str, User]:
        """Authenticate with email and password.

        Returns:
            Tuple of (bearer token, User).

        Raises:
            InvalidInputError: If email or password is missing.
            InvalidCredentialsError: For unknown email, OAuth-only account or
                wrong password alike.
            AccountDeactivatedError: If the credentials are right but the
                account is deactivated.
        """
        if not email or not password:
            raise InvalidInputError("Please provide email and password")

        model = self._get_model_by_email(email)
        password_hash = None
        if model is not None and model.auth_provider == "local":
            password_hash = model.password_hash

        if not self.verify_password(password, password_hash):
            logger.info("Failed login for %s", _normalize_email(email))
            raise InvalidCredentialsError()

        if not model.is_active:
            raise AccountDeactivatedError()

        user = User.model_validate(model)
        return self.issue_token(user), user

    # --- Password reset ---

    def forgot_password(self, email: Optional[str]) -> None:
        """Start a password reset.

        Stores a fresh reset token on the account and emails the link. Does
        nothing for unknown or OAuth-only emails; callers respond the same way
        in every case.
        """
        model = self._get_model_by_email(email or "")
        if model is None or model.auth_provider != "local":
            logger.info("Password reset requested for unknown or non-local email")
            return

        token = secrets.token_urlsafe(32)
        model.reset_password_token = _digest(token)
        model.reset_password_expires = _utcnow() + self.reset_token_ttl
        self.db.commit()
        logger.info("Password reset requested for %s", model.email)

        reset_url = f"{FRONTEND_URL}/reset-password/{token}"
        body = (
            f"Hi {model.first_name},\n\n"
            "We received a request to reset your password. Open the link below "
            f"to choose a new one. It expires in "
            f"{int(self.reset_token_ttl.total_seconds() // 60)} minutes.\n\n"
            f"{reset_url}\n\n"
            "If you did not ask for this, you can ignore this email."
        )
        try:
            sent = self.email_sender.send(model.email, "Reset your password", body)
        except Exception:
            logger.exception("Failed to send password reset email to %s", model.email)
            return
        if not sent:
            logger.error("Failed to send password reset email to %s", model.email)

    def _find_by_reset_token(self, token: str) -> Optional[UserModel]:
        if not token:
            return None
        return (
            self.db.query(UserModel)
            .filter(UserModel.reset_password_token == _digest(token))
            .first()
        )

    def verify_reset_token(self, token: str) -> bool:
        """Check whether a reset token is known and unexpired. Read-only."""
        model = self._find_by_reset_token(token)
        if model is None:
            return False
        expires = _as_utc(model.reset_password_expires)
        return expires is not None and expires > _utcnow()

    def reset_password(self, token: str, new_password: Optional[str]) -> Tuple[str, User]:
        """Consume a reset token and set a new password.

        The token is consumed by a single conditional update, so two
        concurrent resets with the same token cannot both succeed.

        Returns:
            Tuple of (bearer token, User).

        Raises:
            InvalidInputError: If the new password is too short.
            InvalidOrExpiredTokenError: If the token is unknown, used or expired.
        """
        self._validate_password(new_password)

        model = self._find_by_reset_token(token)
        if model is None:
            raise InvalidOrExpiredTokenError()
        user_id = model.user_id

        now = _utcnow()
        expires = _as_utc(model.reset_password_expires)
        if expires is None or expires <= now:
            model.reset_password_token = None
            model.reset_password_expires = None
            self.db.commit()
            logger.info("Rejected expired password reset token for %s", model.email)
            raise InvalidOrExpiredTokenError()

        new_hash = self.hash_password(new_password)
        result = self.db.execute(
            update(UserModel)
            .where(
                UserModel.user_id == user_id,
                UserModel.reset_password_token == _digest(token),
                UserModel.reset_password_expires > now,
            )
            .values(
                password_hash=new_hash,
                reset_password_token=None,
                reset_password_expires=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise InvalidOrExpiredTokenError()
        self.db.commit()

        user = self.get_user_by_id(user_id)
        logger.info("Password reset completed for %s", user.email)
        return self.issue_token(user), user

    # --- Profile and roles ---

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> User:
        """Update the caller's own display fields.

        Args:
            user_id: ID of the authenticated user.
            fields: Submitted fields. ``email`` may only repeat the current one.

        Returns:
            Updated User object.

        Raises:
            UserNotFoundError: If the user no longer exists.
            InvalidInputError: If the email differs or a name is blank.
        """
        model = self._get_model_by_id(user_id)

        if "email" in fields and fields["email"] is not None:
            if _normalize_email(fields["email"]) != model.email:
                raise InvalidInputError("Email cannot be changed")

        for name in PROFILE_FIELDS:
            if name not in fields:
                continue
            value = fields[name]
            if isinstance(value, str):
                value = value.strip()
            if name in ("first_name", "last_name"):
                if not value:
                    raise InvalidInputError("First and last name cannot be empty")
            elif value == "":
                value = None
            setattr(model, name, value)

        self.db.commit()
        self.db.refresh(model)
        logger.info("Updated profile for %s", model.email)
        return User.model_validate(model)

    def update_user_role(self, user_id: str, role: Optional[str]) -> User:
        """Change a user's role.

        Tokens already issued keep the role they were minted with until
        they expire.

        Raises:
            InvalidInputError: If the role is not one of viewer, editor, admin.
            UserNotFoundError: If no user has this ID.
        """
        if role not in ROLES:
            raise InvalidInputError("Invalid role. Must be admin, editor, or viewer")
        model = self._get_model_by_id(user_id)
        model.role = role
        self.db.commit()
        self.db.refresh(model)
        logger.info("Role of %s changed to %s", model.email, role)
        return User.model_validate(model)
