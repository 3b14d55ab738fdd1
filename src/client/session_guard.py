"""Client-side session handling for the auth API.

``SessionGuard`` mirrors what the site's frontend does with a login: it keeps
the issued token and profile, sends the token with protected calls, and
decides whether a route may be shown. It is a convenience for the user
interface only. The server verifies every request on its own, and the guard
never checks the token itself: an expired session is noticed when the API
answers 401.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from client.session_store import SessionStore

logger = logging.getLogger(__name__)

LOGIN_ROUTE = "/login"
HOME_ROUTE = "/"
ACCESS_DENIED_REDIRECT_DELAY = 2.0
SERVER_ERROR_MESSAGE = "Server error. Please try again later."


class AuthRequestError(Exception):
    """Raised when the API rejects a request; carries the server message."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SessionExpiredError(AuthRequestError):
    """Raised when a protected call comes back 401; the session is cleared."""

    pass


class AccessDeniedError(AuthRequestError):
    """Raised when a protected call comes back 403."""

    pass


@dataclass(frozen=True)
class RouteDecision:
    """What the client should do when navigating to a route."""

    allowed: bool
    redirect_to: Optional[str] = None
    access_denied: bool = False
    redirect_delay: float = 0.0


def _json(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class SessionGuard:
    """Persists the session and attaches it to outgoing API requests."""

    def __init__(
        self,
        http_client: httpx.Client,
        store: SessionStore,
        api_prefix: str = "/api/auth",
        access_denied_delay: float = ACCESS_DENIED_REDIRECT_DELAY,
    ):
        """Initialize SessionGuard.

        Args:
            http_client: Client pointed at the API base URL.
            store: Durable storage for token and profile.
            api_prefix: Path prefix of the auth routes.
            access_denied_delay: Seconds to show the access-denied state
                before redirecting home.
        """
        self.http = http_client
        self.store = store
        self.api_prefix = api_prefix.rstrip("/")
        self.access_denied_delay = access_denied_delay

    @property
    def token(self) -> Optional[str]:
        return self.store.load()[0]

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.store.load()[1]

    @property
    def is_logged_in(self) -> bool:
        token, user = self.store.load()
        return bool(token and user)

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Request %s %s failed: %s", method, url, e)
            raise AuthRequestError(SERVER_ERROR_MESSAGE) from e

    def _call_public(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = self._send(method, f"{self.api_prefix}{path}", **kwargs)
        body = _json(response)
        if response.is_error or not body.get("success"):
            raise AuthRequestError(
                body.get("message") or SERVER_ERROR_MESSAGE, response.status_code
            )
        return body

    def _start_session(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = self._call_public("POST", path, json=payload)
        data = body["data"]
        self.store.save(data["token"], data["user"])
        return data["user"]

    # --- Credential flows ---

    def signup(self, email: str, password: str, first_name: str, last_name: str) -> Dict[str, Any]:
        """Create an account and keep the returned session."""
        return self._start_session(
            "/signup",
            {
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
            },
        )

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """Log in and keep the returned session."""
        return self._start_session("/login", {"email": email, "password": password})

    def forgot_password(self, email: str) -> str:
        """Request a reset email; returns the server's generic message."""
        body = self._call_public("POST", "/forgot-password", json={"email": email})
        return body["message"]

    def verify_reset_token(self, reset_token: str) -> bool:
        body = self._call_public("GET", f"/reset-password/{reset_token}/verify")
        return bool(body.get("valid"))

    def reset_password(self, reset_token: str, password: str) -> Dict[str, Any]:
        """Set a new password; the user is logged in on success."""
        return self._start_session(f"/reset-password/{reset_token}", {"password": password})

    def logout(self) -> str:
        """Forget the session and return the route to show next."""
        self.store.clear()
        return LOGIN_ROUTE

    # --- Route guarding ---

    def check_route(self, *required_roles: str) -> RouteDecision:
        """Decide whether a protected route may render.

        Args:
            required_roles: Roles allowed on the route. Empty means any
                logged-in user.

        Returns:
            RouteDecision. Without a session the client goes to the login
            screen; with a role that is not allowed it shows access denied
            and goes home after ``access_denied_delay`` seconds.
        """
        token, user = self.store.load()
        if not token or not user:
            return RouteDecision(allowed=False, redirect_to=LOGIN_ROUTE)
        if required_roles and user.get("role") not in required_roles:
            return RouteDecision(
                allowed=False,
                redirect_to=HOME_ROUTE,
                access_denied=True,
                redirect_delay=self.access_denied_delay,
            )
        return RouteDecision(allowed=True)

    # --- Authenticated calls ---

    def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request with the stored bearer token.

        Raises:
            SessionExpiredError: On 401; the stored session is cleared.
            AccessDeniedError: On 403.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        token = self.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        response = self._send(method, url, headers=headers, **kwargs)

        if response.status_code == httpx.codes.UNAUTHORIZED:
            self.store.clear()
            raise SessionExpiredError(
                _json(response).get("message") or "Session expired. Please log in again.",
                response.status_code,
            )
        if response.status_code == httpx.codes.FORBIDDEN:
            raise AccessDeniedError(
                _json(response).get("message") or "Access denied",
                response.status_code,
            )
        return response

    def update_profile(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Save profile fields and refresh the cached profile."""
        response = self.request("PUT", f"{self.api_prefix}/profile", json=fields)
        body = _json(response)
        if response.is_error or not body.get("success"):
            raise AuthRequestError(
                body.get("message") or "Failed to update profile", response.status_code
            )
        user = body["data"]["user"]
        self.store.update_user(user)
        return user
