"""Authentication service for pairgallery."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import requests

from ..config import get_env, get_supabase_anon_key, get_supabase_url, is_development
from ..error_handling import AuthenticationError, NetworkError
from ..logging_config import get_logger, log_security_event, log_user_action

logger = get_logger(__name__)


@dataclass
class UserInfo:
    """Represents the signed-in user."""

    user_id: str
    email: str
    name: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email.split("@")[0]


@dataclass
class AuthSession:
    """Tokens issued by the auth endpoint."""

    access_token: str
    refresh_token: str | None
    expires_at: datetime | None
    user: UserInfo

    def is_expired(self, leeway_seconds: int = 30) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(UTC) + timedelta(seconds=leeway_seconds) >= self.expires_at


def read_token_claims(access_token: str) -> dict[str, Any]:
    """
    Read the claims of an access token without verifying its signature.

    The gateway verifies tokens; the client only needs ``sub`` and ``exp``.

    Raises:
        AuthenticationError: If the token is not a decodable JWT
    """
    try:
        return jwt.decode(access_token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise AuthenticationError(
            f"Invalid access token: {e}", code="invalid_token", original_exception=e
        ) from e


class AuthService:
    """
    Password sign-in and session handling against the gateway's auth endpoint.

    In development mode without a configured gateway URL, a development user
    is signed in automatically.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        http: requests.Session | None = None,
        development_mode: bool | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url if base_url is not None else get_supabase_url()
        self.api_key = api_key if api_key is not None else get_supabase_anon_key()
        self._http = http or requests.Session()
        self.timeout = timeout
        self._session: AuthSession | None = None
        self._current_user: UserInfo | None = None
        self._development_mode = is_development() if development_mode is None else development_mode

        if self._development_mode and not self.base_url:
            logger.info("development_auth_mode_enabled", message="Using development authentication mode")

    @property
    def uses_development_user(self) -> bool:
        return self._development_mode and not self.base_url

    def _get_development_user(self) -> UserInfo:
        """Get development user for local testing."""
        dev_email = get_env("DEV_USER_EMAIL", "dev@example.com")
        dev_name = get_env("DEV_USER_NAME", "Development User")
        dev_user_id = get_env("DEV_USER_ID", "dev-user-123")

        if not dev_email or "@" not in dev_email:
            logger.warning("invalid_dev_user_email", email=dev_email, message="Using default email")
            dev_email = "dev@example.com"

        if not dev_user_id or not dev_user_id.strip():
            logger.warning("invalid_dev_user_id", user_id=dev_user_id, message="Using default user ID")
            dev_user_id = "dev-user-123"

        return UserInfo(user_id=dev_user_id, email=dev_email, name=dev_name or None)

    # Gateway auth endpoint

    def _auth_url(self, path: str) -> str:
        if not self.base_url:
            raise AuthenticationError("Authentication endpoint is not configured", code="auth_not_configured")
        return f"{self.base_url}/auth/v1/{path}"

    def _post(self, path: str, body: dict[str, Any], token: str | None = None) -> requests.Response:
        headers = {"apikey": self.api_key or "", "Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return self._http.post(self._auth_url(path), json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(
                f"Auth request failed: {e}", code="auth_unreachable", details={"path": path}, original_exception=e
            ) from e

    def _session_from_response(self, body: dict[str, Any]) -> AuthSession:
        access_token = body.get("access_token")
        if not access_token:
            raise AuthenticationError("Auth response did not include an access token", code="missing_token")

        claims = read_token_claims(access_token)
        user_body = body.get("user") or {}
        metadata = user_body.get("user_metadata") or {}

        user_id = user_body.get("id") or claims.get("sub")
        if not user_id:
            raise AuthenticationError("Subject (user ID) not found in token", code="missing_subject")

        expires_at = None
        if claims.get("exp"):
            expires_at = datetime.fromtimestamp(int(claims["exp"]), UTC)

        user = UserInfo(
            user_id=str(user_id),
            email=user_body.get("email") or claims.get("email") or "",
            name=metadata.get("name") or metadata.get("full_name"),
        )
        return AuthSession(
            access_token=access_token,
            refresh_token=body.get("refresh_token"),
            expires_at=expires_at,
            user=user,
        )

    def sign_in_with_password(self, email: str, password: str) -> UserInfo:
        """
        Sign in with email and password.

        Raises:
            AuthenticationError: If the credentials are rejected
            NetworkError: If the auth endpoint cannot be reached
        """
        if self.uses_development_user:
            user = self._get_development_user()
            self.set_current_user(user)
            log_user_action(user.user_id, "development_authentication", email=user.email, mode="development")
            return user

        response = self._post("token?grant_type=password", {"email": email, "password": password})
        if response.status_code >= 400:
            log_security_event("authentication_failure", context={"email": email, "status": response.status_code})
            raise AuthenticationError(
                "Sign-in rejected", code="invalid_credentials", details={"status": response.status_code}
            )

        self._session = self._session_from_response(response.json())
        self._current_user = self._session.user
        log_user_action(self._current_user.user_id, "authentication_success", email=self._current_user.email)
        return self._current_user

    def refresh_session(self) -> UserInfo:
        """
        Exchange the refresh token for a new session.

        Raises:
            AuthenticationError: If there is no session or the refresh is rejected
        """
        if self._session is None or not self._session.refresh_token:
            raise AuthenticationError("No session to refresh", code="no_session")

        response = self._post("token?grant_type=refresh_token", {"refresh_token": self._session.refresh_token})
        if response.status_code >= 400:
            self.clear_authentication()
            raise AuthenticationError(
                "Session refresh rejected", code="refresh_rejected", details={"status": response.status_code}
            )

        self._session = self._session_from_response(response.json())
        self._current_user = self._session.user
        logger.info("session_refreshed", user_id=self._current_user.user_id)
        return self._current_user

    def sign_out(self) -> None:
        """Sign out locally and revoke the session at the endpoint when possible."""
        session = self._session
        if session is not None and self.base_url:
            try:
                response = self._post("logout", {}, token=session.access_token)
                if response.status_code >= 400:
                    logger.warning("sign_out_rejected", status=response.status_code)
            except NetworkError:
                logger.warning("sign_out_unreachable")
        self.clear_authentication()

    # Current user

    def get_current_user(self) -> UserInfo | None:
        """Get the signed-in user, refreshing an expired session once."""
        if self._current_user is None and self.uses_development_user:
            self._current_user = self._get_development_user()

        if self._session is not None and self._session.is_expired():
            try:
                return self.refresh_session()
            except (AuthenticationError, NetworkError):
                return None

        return self._current_user

    def get_access_token(self) -> str | None:
        return self._session.access_token if self._session else None

    def is_authenticated(self) -> bool:
        return self.get_current_user() is not None

    def get_user_id(self) -> str | None:
        user = self.get_current_user()
        return user.user_id if user else None

    def clear_authentication(self) -> None:
        """Clear the current authentication state."""
        user_id = self._current_user.user_id if self._current_user else None
        self._session = None
        self._current_user = None
        log_user_action(user_id or "unknown", "authentication_cleared")

    def set_current_user(self, user_info: UserInfo | None) -> None:
        """Set the current user (for testing/development purposes)."""
        self._current_user = user_info

    def ensure_authenticated(self) -> UserInfo:
        """
        Ensure user is authenticated, raise exception if not.

        Returns:
            UserInfo: Current authenticated user information

        Raises:
            AuthenticationError: If user is not authenticated
        """
        user = self.get_current_user()
        if user is None:
            raise AuthenticationError(
                "User is not authenticated",
                code="user_not_authenticated",
                details={"operation": "ensure_authenticated"},
            )
        return user


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get the global authentication service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service


def reset_auth_service() -> None:
    global _auth_service
    _auth_service = None
