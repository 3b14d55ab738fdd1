"""Custom exception classes for the community site API.

Every authentication or authorization failure is raised as a subclass of
``AuthError``. The application turns them into an HTTP status plus a
``{"success": false, "message": ...}`` body, so none of them escape a
request as an unhandled fault.
"""

from fastapi import status


class AuthError(Exception):
    """Base exception for all authentication and authorization errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request could not be processed"

    def __init__(self, message: str = None):
        """Initialize the exception.

        Args:
            message: Client-facing message. Falls back to the class default.
        """
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(AuthError):
    """Raised when a request body is missing fields or has malformed values."""

    default_message = "Invalid input"


class DuplicateEmailError(AuthError):
    """Raised when signing up with an email that is already registered."""

    default_message = "This email is already registered. Please login instead."


class InvalidCredentialsError(AuthError):
    """Raised for any failed login.

    Unknown email, wrong password and OAuth-only accounts all produce this
    same error so the response never reveals which accounts exist.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password"


class AccountDeactivatedError(AuthError):
    """Raised when correct credentials belong to a deactivated account."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Your account has been deactivated. Please contact support."


class InvalidOrExpiredTokenError(AuthError):
    """Raised when a password reset token is unknown, used or expired."""

    default_message = "Password reset link is invalid or has expired"


class MissingTokenError(AuthError):
    """Raised when a protected route is called without a bearer token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized. Please log in."


class TokenVerificationError(AuthError):
    """Base class for bearer tokens that fail verification."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized. Invalid token."


class MalformedTokenError(TokenVerificationError):
    """Raised when a bearer token cannot be parsed."""

    pass


class BadSignatureError(TokenVerificationError):
    """Raised when a bearer token signature does not match the server secret."""

    pass


class TokenExpiredError(TokenVerificationError):
    """Raised when a bearer token is past its embedded expiry."""

    pass


class ForbiddenError(AuthError):
    """Raised when the authenticated role is not allowed on a route."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"

    def __init__(self, role: str = None, message: str = None):
        """Initialize the exception.

        Args:
            role: The role that was denied.
            message: Optional explicit message.
        """
        self.role = role
        if message is None and role is not None:
            message = f"Role '{role}' is not authorized to access this"
        super().__init__(message)


class NotAuthenticatedError(AuthError):
    """Raised when an operation needing an identity runs without one."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized. Please log in."


class UserNotFoundError(AuthError):
    """Raised when a requested user cannot be found."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"

    def __init__(self, user_id: str = None):
        """Initialize the exception.

        Args:
            user_id: The ID of the user that was not found.
        """
        self.user_id = user_id
        super().__init__()
