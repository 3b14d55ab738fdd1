"""User database model.

This module defines the User database model using SQLAlchemy. It is the
Credential Store: one row per account, keyed by a unique lower-cased email.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String, Text

from .base import Base


class UserModel(Base):
    """User database model."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "role IN ('viewer', 'editor', 'admin')", name="ck_users_role"
        ),
        CheckConstraint(
            "auth_provider IN ('local', 'google', 'github')",
            name="ck_users_auth_provider",
        ),
        # A password hash exists if and only if the account is local
        CheckConstraint(
            "(auth_provider = 'local' AND password_hash IS NOT NULL) OR "
            "(auth_provider != 'local' AND password_hash IS NULL)",
            name="ck_users_password_hash_provider",
        ),
    )

    user_id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)  # lower-cased
    password_hash = Column(String, nullable=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    role = Column(String, nullable=False, default="viewer")
    auth_provider = Column(String, nullable=False, default="local")

    bio = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    website = Column(String, nullable=True)
    github = Column(String, nullable=True)
    linkedin = Column(String, nullable=True)
    twitter = Column(String, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    # SHA-256 digest of the emailed reset token, never the token itself
    reset_password_token = Column(String, nullable=True, index=True)
    reset_password_expires = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<UserModel {self.email} ({self.role})>"
