"""Authenticated API client for the backend."""

import requests

from oauthclient.auth.announcer import SessionAnnouncer, default_announcer
from oauthclient.auth.refresh import RefreshCoordinator
from oauthclient.core.navigation import Navigator
from oauthclient.http.transport import Transport


class ApiClient:
    """HTTP client that transparently refreshes an expired session.

    Composes a :class:`~oauthclient.http.transport.Transport` (base address,
    JSON defaults, cookie jar) with a
    :class:`~oauthclient.auth.refresh.RefreshCoordinator` that intercepts
    every failure.  Callers only ever see the final outcome.

    Usage::

        client = ApiClient()
        data = client.get("/api/protected/data").json()
    """

    def __init__(
        self,
        base_url: str | None = None,
        announcer: SessionAnnouncer | None = None,
        navigator: Navigator | None = None,
        session: requests.Session | None = None,
        timeout: float | None = 30,
    ):
        """Initialise the client.

        Args:
            base_url: Backend address; defaults to ``OAUTHCLIENT_API_URL``
                or ``http://localhost:8080``.
            announcer: Receives the session-expired signal.  Defaults to
                the process-wide
                :data:`~oauthclient.auth.announcer.default_announcer`.
            navigator: The current location.  A fresh one at ``/`` is
                created when omitted.
            session: Optional pre-built :class:`requests.Session`.
            timeout: Per-request timeout in seconds.
        """
        self.transport = Transport(base_url, session=session, timeout=timeout)
        self.announcer = announcer if announcer is not None else default_announcer
        self.navigator = navigator if navigator is not None else Navigator()
        self.coordinator = RefreshCoordinator(
            self.transport, self.announcer, self.navigator
        )

    @property
    def base_url(self) -> str:
        return self.transport.base_url

    @property
    def cookies(self) -> requests.cookies.RequestsCookieJar:
        """The session cookie jar (opaque session credentials)."""
        return self.transport.session.cookies

    def request(
        self,
        method: str,
        path: str,
        json: object | None = None,
        params: dict | None = None,
    ) -> requests.Response:
        """Send a request and return the successful response.

        Raises:
            requests.HTTPError: On a non-2xx status that could not be
                recovered by a session refresh.
            requests.RequestException: On network failures.
            RefreshFailedError: When the request waited on a refresh that
                failed.
        """
        outgoing = self.transport.build(method, path, json=json, params=params)
        return self.coordinator.execute(outgoing)

    def get(self, path: str, params: dict | None = None) -> requests.Response:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: object | None = None) -> requests.Response:
        return self.request("POST", path, json=json)

    def close(self) -> None:
        self.transport.close()
