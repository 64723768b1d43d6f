"""Transparent session refresh with single-flight coordination.

Every request sent through :meth:`RefreshCoordinator.execute` is watched
for HTTP 401.  The first 401 starts exactly one ``POST /api/auth/refresh``;
any other request that 401s while that call is outstanding waits on a
:class:`~concurrent.futures.Future` slot instead of triggering its own
refresh.  When the refresh settles, all waiters are released together:

* success — every waiter, and the request that started the refresh, is
  re-sent once and its caller receives that outcome;
* failure — waiters are rejected with
  :class:`~oauthclient.core.exceptions.RefreshFailedError`, the session
  announcer fires once (unless the user is already on the public root), and
  the request that started the refresh is rejected with its own original
  401.

A request is retried at most once.  The refresh and status endpoints are
never refreshed, so the mechanism cannot loop on itself.
"""

import enum
import logging
import threading
from concurrent.futures import Future

import requests

from oauthclient.auth.announcer import SessionAnnouncer
from oauthclient.core.exceptions import RefreshFailedError
from oauthclient.core.navigation import PUBLIC_ROOT, Navigator
from oauthclient.http.transport import OutgoingRequest, Transport

logger = logging.getLogger(__name__)

REFRESH_PATH = "/api/auth/refresh"
STATUS_PATH = "/api/auth/status"


class RefreshState(enum.Enum):
    """Lifecycle of the coordinator."""

    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshCoordinator:
    """Owns the refresh flag and the waiter queue for one client.

    The flag and the queue are only touched under ``self._lock``, so any
    number of threads may call :meth:`execute` concurrently.  The refresh
    call itself happens outside the lock.
    """

    def __init__(
        self,
        transport: Transport,
        announcer: SessionAnnouncer,
        navigator: Navigator,
        refresh_path: str = REFRESH_PATH,
        status_path: str = STATUS_PATH,
        public_root: str = PUBLIC_ROOT,
    ):
        """Initialise the coordinator.

        Args:
            transport: Used for the refresh call and for every retry.
            announcer: Notified once per failed refresh cycle.
            navigator: Read to suppress the session-expired signal while the
                user is already on the public root.
            refresh_path: Path of the refresh endpoint.
            status_path: Path of the session-status endpoint.
            public_root: The unauthenticated landing path.
        """
        self._transport = transport
        self._announcer = announcer
        self._navigator = navigator
        self.refresh_path = refresh_path
        self.status_path = status_path
        self.public_root = public_root

        self._lock = threading.Lock()
        self._refreshing = False
        self._waiters: list[Future] = []
        self.refresh_count = 0  # refresh calls issued so far

    # -------------------------
    # State
    # -------------------------

    @property
    def state(self) -> RefreshState:
        with self._lock:
            return (
                RefreshState.REFRESHING if self._refreshing
                else RefreshState.IDLE
            )

    @property
    def pending(self) -> int:
        """Number of requests currently waiting on the refresh."""
        with self._lock:
            return len(self._waiters)

    def should_queue(self) -> bool:
        """Return ``True`` while a refresh call is outstanding."""
        with self._lock:
            return self._refreshing

    def enqueue(self) -> Future:
        """Append a waiter slot and return it.

        Only meaningful while a refresh is outstanding; :meth:`execute`
        calls this under the same lock that checks the flag.
        """
        with self._lock:
            return self._enqueue_locked()

    def drain(self, error: Exception | None = None) -> int:
        """Leave the refreshing state and release every waiter.

        Args:
            error: ``None`` to resolve the waiters (their requests are then
                retried), or the exception to reject them with.

        Returns:
            The number of waiters released.
        """
        with self._lock:
            waiters, self._waiters = self._waiters, []
            self._refreshing = False
        for waiter in waiters:
            if error is None:
                waiter.set_result(None)
            else:
                waiter.set_exception(error)
        return len(waiters)

    def _enqueue_locked(self) -> Future:
        waiter: Future = Future()
        self._waiters.append(waiter)
        return waiter

    # -------------------------
    # Interception
    # -------------------------

    def execute(self, outgoing: OutgoingRequest) -> requests.Response:
        """Send *outgoing*, recovering once from an expired session.

        Args:
            outgoing: The request to send.

        Returns:
            The successful :class:`requests.Response`, possibly from a retry.

        Raises:
            requests.HTTPError: The original error for non-401 failures, for
                401s that cannot be refreshed, and for the request that
                started a refresh that failed.
            requests.RequestException: Network failures, unchanged.
            RefreshFailedError: For requests that waited on a refresh that
                failed.
        """
        try:
            return self._transport.send(outgoing)
        except requests.RequestException as error:
            return self.handle_failure(outgoing, error)

    def handle_failure(
        self, outgoing: OutgoingRequest, error: requests.RequestException
    ) -> requests.Response:
        """Decide what to do with a failed request.

        Args:
            outgoing: The request that failed.
            error: The exception raised by the transport.

        Returns:
            The response of the retried request when recovery succeeds.

        Raises:
            Exception: See :meth:`execute`.
        """
        response = error.response
        if response is None:
            # Network failure: nothing to inspect and nothing worth logging.
            raise error

        if response.status_code == 401 and not outgoing.retried:
            if self._is_exempt(outgoing.url):
                raise error
            return self._recover(outgoing, error)

        self._log_error(outgoing, response)
        raise error

    def _recover(
        self, outgoing: OutgoingRequest, error: requests.HTTPError
    ) -> requests.Response:
        with self._lock:
            if self._refreshing:
                waiter = self._enqueue_locked()
            else:
                waiter = None
                self._refreshing = True
                outgoing.retried = True

        if waiter is not None:
            logger.debug("Refresh in flight; queueing %s %s",
                         outgoing.method, outgoing.url)
            waiter.result()  # raises RefreshFailedError on failure
            outgoing.retried = True
            return self.execute(outgoing)

        self.refresh_count += 1
        try:
            self._transport.send(
                self._transport.build("POST", self.refresh_path)
            )
        except Exception as refresh_error:
            released = self.drain(RefreshFailedError())
            logger.warning(
                "Token refresh failed (%s); rejected %d queued request(s)",
                refresh_error, released,
            )
            if self._navigator.pathname != self.public_root:
                self._announcer.announce()
            raise error

        released = self.drain()
        logger.info("Session refreshed; retrying %d queued request(s)",
                    released + 1)
        return self.execute(outgoing)

    # -------------------------
    # Internal helpers
    # -------------------------

    def _is_exempt(self, url: str) -> bool:
        """Return ``True`` for endpoints that must never trigger a refresh."""
        return self.refresh_path in url or self.status_path in url

    @staticmethod
    def _log_error(
        outgoing: OutgoingRequest, response: requests.Response
    ) -> None:
        try:
            payload = response.json()
        except ValueError:
            payload = response.text
        logger.error(
            "API Error: status=%s data=%r url=%s",
            response.status_code, payload, outgoing.url,
        )
