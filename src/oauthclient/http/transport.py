"""HTTP transport configured for the backend API.

Pure configuration: a fixed base address, JSON content type by default, and
a cookie-carrying session so the backend's httpOnly session cookie travels
with every request.  Retries and auth handling live in
:mod:`oauthclient.auth.refresh`.
"""

import os
from dataclasses import dataclass

import requests

_ENV_API_URL = "OAUTHCLIENT_API_URL"
DEFAULT_API_URL = "http://localhost:8080"


def api_base_url() -> str:
    """Return the backend base address.

    Reads ``OAUTHCLIENT_API_URL``; an unset or empty variable falls back to
    :data:`DEFAULT_API_URL`.

    Returns:
        The base URL without a trailing slash.
    """
    return (os.getenv(_ENV_API_URL) or DEFAULT_API_URL).rstrip("/")


@dataclass
class OutgoingRequest:
    """A request on its way to the backend, plus its retry marker.

    Attributes:
        request: The unprepared :class:`requests.Request`.  It is prepared
            again on every send so the latest session cookies apply.
        retried: Set once the request has been retried after a session
            refresh.  A retried request that fails again is never refreshed
            a second time.
    """

    request: requests.Request
    retried: bool = False

    @property
    def url(self) -> str:
        return self.request.url or ""

    @property
    def method(self) -> str:
        return (self.request.method or "GET").upper()


class Transport:
    """Sends requests to the backend through one cookie-carrying session."""

    def __init__(
        self,
        base_url: str | None = None,
        session: requests.Session | None = None,
        timeout: float | None = 30,
    ):
        """Initialise the transport.

        Args:
            base_url: Backend address.  Defaults to :func:`api_base_url`.
            session: An existing :class:`requests.Session` to reuse, e.g.
                one with a test adapter mounted.  A new session is created
                when omitted.
            timeout: Per-request timeout in seconds, or ``None`` to wait
                indefinitely.
        """
        self.base_url = (base_url or api_base_url()).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def url_for(self, path: str) -> str:
        """Return the absolute URL for an API *path*."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def build(
        self,
        method: str,
        path: str,
        json: object | None = None,
        params: dict | None = None,
        headers: dict[str, str] | None = None,
    ) -> OutgoingRequest:
        """Describe a request without sending it.

        Args:
            method: HTTP method, e.g. ``"GET"``.
            path: API path such as ``"/api/protected/data"``.
            json: Optional JSON-serialisable body.
            params: Optional query parameters.
            headers: Extra headers merged over the session defaults.

        Returns:
            A fresh :class:`OutgoingRequest` with ``retried=False``.
        """
        return OutgoingRequest(
            requests.Request(
                method=method.upper(),
                url=self.url_for(path),
                json=json,
                params=params,
                headers=headers or {},
            )
        )

    def send(self, outgoing: OutgoingRequest) -> requests.Response:
        """Send *outgoing* and return the successful response.

        Args:
            outgoing: The request to send.

        Returns:
            The :class:`requests.Response` for a 2xx status.

        Raises:
            requests.HTTPError: For any non-2xx status.  The error carries
                both ``.response`` and ``.request``.
            requests.RequestException: On network failures; these have no
                ``.response``.
        """
        prepared = self.session.prepare_request(outgoing.request)
        response = self.session.send(prepared, timeout=self.timeout)
        response.raise_for_status()
        return response

    def close(self) -> None:
        self.session.close()
