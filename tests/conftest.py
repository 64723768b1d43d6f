"""Shared fixtures: a scripted requests adapter and a client wired to it."""

import json
import threading
import time
from collections import defaultdict, deque
from urllib.parse import urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter

from oauthclient.auth.announcer import SessionAnnouncer
from oauthclient.core.navigation import Navigator
from oauthclient.http.client import ApiClient

BASE_URL = "http://backend.test"


class ScriptedAdapter(BaseAdapter):
    """Transport adapter that replays queued replies per (method, path).

    Each reply is used once, in the order it was queued.  A reply may carry
    a ``before`` callable that runs (outside the adapter lock) before the
    response is returned, which lets tests hold a request in flight.
    """

    def __init__(self):
        super().__init__()
        self._replies: dict[tuple[str, str], deque] = defaultdict(deque)
        self._lock = threading.Lock()
        self.sent: list[requests.PreparedRequest] = []

    def reply_once(self, method, path, status=200, body=None, before=None):
        self._replies[(method, path)].append((status, body, before))

    def raise_once(self, method, path, exc):
        self._replies[(method, path)].append((exc, None, None))

    def count(self, method, path):
        return sum(
            1 for r in self.sent
            if r.method == method and urlsplit(r.url).path == path
        )

    def send(self, request, **kwargs):
        key = (request.method, urlsplit(request.url).path)
        with self._lock:
            self.sent.append(request)
            queue = self._replies.get(key)
            if not queue:
                raise AssertionError(f"Unexpected request: {key}")
            status, body, before = queue.popleft()
        if before is not None:
            before()
        if isinstance(status, Exception):
            raise status
        return _build_response(request, status, body)

    def close(self):
        pass


def _build_response(request, status, body):
    response = requests.Response()
    response.status_code = status
    response.reason = "Scripted"
    response.url = request.url
    response.request = request
    response.encoding = "utf-8"
    response.headers["Content-Type"] = "application/json"
    response._content = b"" if body is None else json.dumps(body).encode()
    return response


def make_http_error(status, body=None, url=f"{BASE_URL}/api/protected/data"):
    """Return a :class:`requests.HTTPError` as the transport would raise it."""
    request = requests.Request("GET", url).prepare()
    response = _build_response(request, status, body)
    return requests.HTTPError(f"{status} Error", response=response)


def wait_for(predicate, timeout=5.0):
    """Block until *predicate* is true, failing after *timeout* seconds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not met in time")
        time.sleep(0.005)


@pytest.fixture()
def adapter():
    return ScriptedAdapter()


@pytest.fixture()
def announcer():
    return SessionAnnouncer()


@pytest.fixture()
def navigator():
    return Navigator("/dashboard")


@pytest.fixture()
def client(adapter, announcer, navigator):
    session = requests.Session()
    session.mount("http://", adapter)
    c = ApiClient(
        base_url=BASE_URL,
        announcer=announcer,
        navigator=navigator,
        session=session,
    )
    yield c
    c.close()
