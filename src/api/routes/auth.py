"""Authentication routes.

This module handles HTTP endpoints for signup, login, password reset,
profile updates and admin user management. Route handlers are plain
functions, so FastAPI runs them (and their bcrypt and database work) in its
threadpool.
"""

import logging

from fastapi import APIRouter, status

from core.dependencies import AdminUser, CurrentUser, UserManagerDep
from core.exceptions import NotAuthenticatedError
from schemas.user import (
    AuthData,
    AuthResponse,
    CheckAdminResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    UpdateProfileRequest,
    UpdateRoleRequest,
    User,
    UserData,
    UserListData,
    UserListResponse,
    UserResponse,
    VerifyResetTokenResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

FORGOT_PASSWORD_MESSAGE = (
    "If an account exists for that email, a password reset link has been sent."
)


def _auth_response(message: str, token: str, user: User) -> AuthResponse:
    return AuthResponse(message=message, data=AuthData(user=user.to_public(), token=token))


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
def signup(req: SignupRequest, user_manager: UserManagerDep) -> AuthResponse:
    """Register a new viewer account and log it in.

    Args:
        req: Signup request with email, password, firstName and lastName.
        user_manager: Injected UserManager instance.

    Returns:
        AuthResponse with the public profile and a bearer token.
    """
    token, user = user_manager.signup(
        email=req.email,
        password=req.password,
        first_name=req.first_name,
        last_name=req.last_name,
    )
    return _auth_response("Account created successfully!", token, user)


@router.post("/login", response_model=AuthResponse, summary="Log in")
def login(req: LoginRequest, user_manager: UserManagerDep) -> AuthResponse:
    """Login with email and password.

    Args:
        req: Login request with email and password.
        user_manager: Injected UserManager instance.

    Returns:
        AuthResponse with the public profile (including role) and a token.
    """
    token, user = user_manager.login(req.email, req.password)
    return _auth_response("Login successful!", token, user)


@router.post("/logout", response_model=MessageResponse, summary="Log out")
def logout() -> MessageResponse:
    """Logout endpoint.

    Note: Since we're using stateless JWT tokens, logout is handled
    client-side by removing the token. This endpoint exists for API
    consistency.
    """
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset email",
)
def forgot_password(
    req: ForgotPasswordRequest, user_manager: UserManagerDep
) -> MessageResponse:
    """Send a reset link if the account exists.

    The response is the same whether or not the email is registered.
    """
    user_manager.forgot_password(req.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.get(
    "/reset-password/{token}/verify",
    response_model=VerifyResetTokenResponse,
    summary="Check a password reset token",
)
def verify_reset_token(token: str, user_manager: UserManagerDep) -> VerifyResetTokenResponse:
    return VerifyResetTokenResponse(valid=user_manager.verify_reset_token(token))


@router.post(
    "/reset-password/{token}",
    response_model=AuthResponse,
    summary="Set a new password with a reset token",
)
def reset_password(
    token: str, req: ResetPasswordRequest, user_manager: UserManagerDep
) -> AuthResponse:
    """Consume a reset token, set the new password and log the user in.

    Args:
        token: Reset token from the emailed link.
        req: Request with the new password.
        user_manager: Injected UserManager instance.

    Returns:
        AuthResponse with a fresh bearer token.
    """
    access_token, user = user_manager.reset_password(token, req.password)
    return _auth_response("Password reset successful!", access_token, user)


@router.get("/me", response_model=UserResponse, summary="Get the current user")
def get_me(current_user: CurrentUser, user_manager: UserManagerDep) -> UserResponse:
    user = user_manager.get_user_by_id(current_user.user_id)
    return UserResponse(data=UserData(user=user.to_public()))


@router.put("/profile", response_model=UserResponse, summary="Update own profile")
def update_profile(
    req: UpdateProfileRequest,
    current_user: CurrentUser,
    user_manager: UserManagerDep,
) -> UserResponse:
    """Update the caller's display fields.

    Args:
        req: Fields to change. Email may only repeat the current address.
        current_user: Verified identity from the bearer token.
        user_manager: Injected UserManager instance.

    Returns:
        UserResponse with the updated profile.
    """
    if current_user is None:
        logger.error("Profile update reached without an authenticated identity")
        raise NotAuthenticatedError()
    user = user_manager.update_profile(
        current_user.user_id, req.model_dump(exclude_unset=True)
    )
    return UserResponse(
        message="Profile updated successfully!", data=UserData(user=user.to_public())
    )


@router.get(
    "/check-admin",
    response_model=CheckAdminResponse,
    summary="Verify dashboard access",
)
def check_admin_access(
    current_user: AdminUser, user_manager: UserManagerDep
) -> CheckAdminResponse:
    user = user_manager.get_user_by_id(current_user.user_id)
    return CheckAdminResponse(
        message="Admin access granted",
        has_access=True,
        data=UserData(user=user.to_public()),
    )


@router.get("/users", response_model=UserListResponse, summary="List users")
def list_users(current_user: AdminUser, user_manager: UserManagerDep) -> UserListResponse:
    users = [user.to_public() for user in user_manager.list_users()]
    return UserListResponse(count=len(users), data=UserListData(users=users))


@router.put(
    "/users/{user_id}/role",
    response_model=UserResponse,
    summary="Change a user's role",
)
def update_user_role(
    user_id: str,
    req: UpdateRoleRequest,
    current_user: AdminUser,
    user_manager: UserManagerDep,
) -> UserResponse:
    """Promote or demote a user.

    Args:
        user_id: The user whose role changes.
        req: Request with the new role.
        current_user: Verified admin identity.
        user_manager: Injected UserManager instance.

    Returns:
        UserResponse with the updated profile.
    """
    user = user_manager.update_user_role(user_id, req.role)
    logger.info("Admin %s set role of %s to %s", current_user.user_id, user_id, user.role)
    return UserResponse(
        message=f"User role updated to {user.role}",
        data=UserData(user=user.to_public()),
    )
