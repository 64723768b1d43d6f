"""Service layer for authentication and protected-resource operations."""

import logging
import webbrowser

import requests

from oauthclient.core.models import (
    ActionResult,
    AuthStatus,
    OAuthProvider,
    ProtectedData,
    PublicData,
)
from oauthclient.core.navigation import DEFAULT_LOGIN_REDIRECT, PUBLIC_ROOT
from oauthclient.http.client import ApiClient

logger = logging.getLogger(__name__)

_ACTION_MAX_LENGTH = 50


class AuthService:
    """Business-logic operations on top of an :class:`ApiClient`.

    Session refresh is handled entirely by the client; this layer only maps
    payloads to domain models, applies the fallbacks the UI relies on, and
    drives navigation after login, signup and logout.
    """

    def __init__(self, client: ApiClient):
        """Initialise the service.

        Args:
            client: The authenticated API client.
        """
        self.client = client

    @property
    def navigator(self):
        return self.client.navigator

    # -------------------------
    # Session
    # -------------------------

    def check_status(self) -> AuthStatus:
        """Return the backend's view of the current session.

        Any failure is logged and reported as unauthenticated, so callers can
        always render something.

        Returns:
            An :class:`AuthStatus` instance.
        """
        try:
            r = self.client.get("/api/auth/status")
        except requests.RequestException as e:
            logger.error("Auth status check failed: %s", e)
            return AuthStatus(authenticated=False)
        return AuthStatus.from_dict(r.json())

    def login_with_email(self, email: str, password: str) -> None:
        """Exchange local credentials for a session cookie.

        Navigates to the post-login destination on success.

        Raises:
            requests.HTTPError: If the backend rejects the credentials
                (401) or local login is disabled (403).
        """
        self.client.post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        self.navigator.go(DEFAULT_LOGIN_REDIRECT)

    def signup_with_email(self, email: str, password: str, name: str) -> None:
        """Create a local account; the backend logs it in immediately.

        Raises:
            requests.HTTPError: If the account cannot be created.
        """
        self.client.post(
            "/api/auth/signup",
            json={"email": email, "password": password, "name": name},
        )
        self.navigator.go(DEFAULT_LOGIN_REDIRECT)

    def logout(self) -> bool:
        """End the session and return to the public root.

        Navigation happens even when the request fails so stale state does
        not linger.

        Returns:
            ``True`` if the backend acknowledged the logout.
        """
        try:
            self.client.post("/logout")
        except requests.RequestException as e:
            logger.error("Logout failed: %s", e)
            self.navigator.go(PUBLIC_ROOT)
            return False
        self.navigator.go(PUBLIC_ROOT)
        return True

    # -------------------------
    # OAuth providers
    # -------------------------

    def fetch_providers(self) -> list[OAuthProvider]:
        """Return the OAuth providers enabled on the backend.

        Returns:
            A list of :class:`OAuthProvider`; empty when the request fails.
        """
        try:
            r = self.client.get("/api/auth/providers")
        except requests.RequestException as e:
            logger.error("Failed to fetch providers: %s", e)
            return []
        return [OAuthProvider.from_dict(p) for p in r.json()]

    def provider_authorization_url(self, provider_key: str) -> str:
        """Return the backend URL that starts the OAuth flow for a provider.

        Args:
            provider_key: Provider identifier such as ``"github"`` or
                ``"azure"``.
        """
        return f"{self.client.base_url}/oauth2/authorization/{provider_key}"

    def login_with_provider(self, provider_key: str) -> str:
        """Open the provider's authorization page in the user's browser.

        This is a full-page redirect, not an API call: the backend completes
        the flow and sets the session cookie in the browser.

        Returns:
            The URL that was opened.
        """
        url = self.provider_authorization_url(provider_key)
        webbrowser.open(url)
        return url

    # -------------------------
    # Data
    # -------------------------

    def fetch_protected_data(self) -> ProtectedData:
        """Return data only available to an authenticated session.

        Raises:
            requests.HTTPError: If the session is invalid and could not be
                refreshed, or the backend fails.
            RefreshFailedError: If the request waited on a failed refresh.
        """
        r = self.client.get("/api/protected/data")
        return ProtectedData.from_dict(r.json())

    def perform_action(self, action: str) -> ActionResult:
        """Run a protected action on the backend.

        Args:
            action: Action name, 1 to 50 characters.

        Raises:
            ValueError: If *action* is blank or too long.  No request is
                sent in that case.
            requests.HTTPError: See :meth:`fetch_protected_data`.
        """
        action = action.strip()
        if not action:
            raise ValueError("Action cannot be blank")
        if len(action) > _ACTION_MAX_LENGTH:
            raise ValueError(
                f"Action must be less than {_ACTION_MAX_LENGTH} characters"
            )
        r = self.client.post("/api/protected/action", json={"action": action})
        return ActionResult.from_dict(r.json())

    def fetch_public_data(self) -> PublicData:
        """Return the public health payload (no session needed)."""
        r = self.client.get("/api/public/health")
        return PublicData.from_dict(r.json())
