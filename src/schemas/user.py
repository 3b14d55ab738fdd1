"""User schema definitions.

This module defines the request and response models of the auth API and
the ``User`` record returned by ``UserManager``. Wire models use camelCase
keys (``firstName``, ``isAdmin``...) and accept snake_case on input too.
"""

from datetime import datetime
from typing import List, Literal, Optional

import pytz
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

Role = Literal["viewer", "editor", "admin"]
AuthProvider = Literal["local", "google", "github"]


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(BaseModel):
    """User record as stored in the Credential Store."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    password_hash: Optional[str] = None
    first_name: str
    last_name: str
    role: Role = "viewer"
    auth_provider: AuthProvider = "local"
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    is_active: bool = True
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; they are always stored in UTC
        if value.tzinfo is None:
            return pytz.utc.localize(value)
        return value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_public(self) -> "UserPublic":
        """Strip credential fields and build the client-facing profile."""
        return UserPublic(
            id=self.user_id,
            first_name=self.first_name,
            last_name=self.last_name,
            full_name=self.full_name,
            email=self.email,
            role=self.role,
            is_admin=self.role == "admin",
            auth_provider=self.auth_provider,
            bio=self.bio,
            location=self.location,
            website=self.website,
            github=self.github,
            linkedin=self.linkedin,
            twitter=self.twitter,
            is_active=self.is_active,
            created_at=self.created_at,
        )


class UserPublic(CamelModel):
    """Public profile, safe to send to clients and cache in the browser."""

    id: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    role: Role
    is_admin: bool
    auth_provider: AuthProvider
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    is_active: bool = True
    created_at: datetime


# --- Requests ---


class SignupRequest(CamelModel):
    email: EmailStr
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    password: Optional[str] = None


class UpdateProfileRequest(CamelModel):
    """Editable profile fields.

    ``email`` is accepted so clients can send the whole form back, but it
    must match the current address.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None


class UpdateRoleRequest(CamelModel):
    role: Optional[str] = None


# --- Responses ---


class AuthData(CamelModel):
    user: UserPublic
    token: str


class AuthResponse(CamelModel):
    success: bool = True
    message: str
    data: AuthData


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class VerifyResetTokenResponse(CamelModel):
    success: bool = True
    valid: bool


class UserData(CamelModel):
    user: UserPublic


class UserResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: UserData


class UserListData(CamelModel):
    users: List[UserPublic]


class UserListResponse(CamelModel):
    success: bool = True
    count: int
    data: UserListData


class CheckAdminResponse(CamelModel):
    success: bool = True
    message: str
    has_access: bool
    data: UserData
