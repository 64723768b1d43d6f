"""Unit tests for the single-flight session refresh."""

import logging
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
import requests

from oauthclient.auth.refresh import RefreshState
from oauthclient.core.exceptions import RefreshFailedError
from oauthclient.http.transport import OutgoingRequest

from conftest import BASE_URL, wait_for

DATA = "/api/protected/data"
REFRESH = "/api/auth/refresh"
STATUS = "/api/auth/status"


@pytest.fixture()
def expired(announcer):
    listener = MagicMock()
    announcer.subscribe(listener)
    return listener


def _run_concurrently(client, n=2):
    """Issue *n* GETs to the protected endpoint from separate threads."""
    with ThreadPoolExecutor(max_workers=n) as pool:
        futures = [pool.submit(client.get, DATA) for _ in range(n)]
        outcomes = []
        for f in futures:
            try:
                outcomes.append(f.result(timeout=10))
            except Exception as e:  # collected for assertions
                outcomes.append(e)
    return outcomes


def _hold_refresh_until(client, waiting):
    """Return a ``before`` hook that keeps the refresh in flight."""
    return lambda: wait_for(lambda: client.coordinator.pending == waiting)


# ---------------------------------------------------------------------------
# Successful refresh
# ---------------------------------------------------------------------------


def test_single_401_is_refreshed_and_retried(client, adapter):
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once("POST", REFRESH, 200, {})
    adapter.reply_once("GET", DATA, 200, {"message": "ok"})

    response = client.get(DATA)

    assert response.json() == {"message": "ok"}
    assert adapter.count("POST", REFRESH) == 1
    assert client.coordinator.state is RefreshState.IDLE


def test_concurrent_401s_share_one_refresh(client, adapter):
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once(
        "POST", REFRESH, 200, {}, before=_hold_refresh_until(client, 1)
    )
    adapter.reply_once("GET", DATA, 200, {"call": 1})
    adapter.reply_once("GET", DATA, 200, {"call": 2})

    outcomes = _run_concurrently(client)

    payloads = sorted(r.json()["call"] for r in outcomes)
    assert payloads == [1, 2]
    assert adapter.count("POST", REFRESH) == 1
    assert client.coordinator.refresh_count == 1
    assert client.coordinator.pending == 0


def test_many_waiters_drain_after_one_refresh(client, adapter):
    n = 5
    for _ in range(n):
        adapter.reply_once("GET", DATA, 401)
    adapter.reply_once(
        "POST", REFRESH, 200, {}, before=_hold_refresh_until(client, n - 1)
    )
    for i in range(n):
        adapter.reply_once("GET", DATA, 200, {"call": i})

    outcomes = _run_concurrently(client, n)

    assert sorted(r.json()["call"] for r in outcomes) == list(range(n))
    assert adapter.count("POST", REFRESH) == 1


def test_state_is_refreshing_while_refresh_in_flight(client, adapter):
    seen = []
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once(
        "POST", REFRESH, 200, {},
        before=lambda: seen.append(client.coordinator.state),
    )
    adapter.reply_once("GET", DATA, 200, {})

    client.get(DATA)

    assert seen == [RefreshState.REFRESHING]
    assert client.coordinator.state is RefreshState.IDLE


# ---------------------------------------------------------------------------
# Failed refresh
# ---------------------------------------------------------------------------


def test_refresh_failure_rejects_all_and_announces_once(
    client, adapter, expired
):
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once(
        "POST", REFRESH, 500, {}, before=_hold_refresh_until(client, 1)
    )

    outcomes = _run_concurrently(client)

    kinds = sorted(type(o).__name__ for o in outcomes)
    assert kinds == ["HTTPError", "RefreshFailedError"]
    original = next(o for o in outcomes if isinstance(o, requests.HTTPError))
    assert original.response.status_code == 401
    assert expired.call_count == 1
    assert client.coordinator.state is RefreshState.IDLE
    assert client.coordinator.pending == 0


def test_refresh_failure_surfaces_original_error_without_retry(
    client, adapter, expired
):
    adapter.reply_once("GET", DATA, 401, {"error": "expired"})
    adapter.reply_once("POST", REFRESH, 500)

    with pytest.raises(requests.HTTPError) as exc_info:
        client.get(DATA)

    assert exc_info.value.response.status_code == 401
    assert exc_info.value.request.path_url == DATA
    assert adapter.count("GET", DATA) == 1
    expired.assert_called_once_with()


def test_refresh_network_failure_counts_as_refresh_failure(
    client, adapter, expired
):
    adapter.reply_once("GET", DATA, 401)
    adapter.raise_once("POST", REFRESH, requests.ConnectionError("down"))

    with pytest.raises(requests.HTTPError):
        client.get(DATA)

    expired.assert_called_once_with()


def test_no_announcement_on_public_root(client, adapter, expired, navigator):
    navigator.go("/")
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once("POST", REFRESH, 500)

    with pytest.raises(requests.HTTPError):
        client.get(DATA)

    expired.assert_not_called()
    assert navigator.pathname == "/"


def test_each_failed_cycle_announces_again(client, adapter, expired):
    for _ in range(2):
        adapter.reply_once("GET", DATA, 401)
        adapter.reply_once("POST", REFRESH, 500)
        with pytest.raises(requests.HTTPError):
            client.get(DATA)

    assert expired.call_count == 2


# ---------------------------------------------------------------------------
# Loop breakers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("path", [REFRESH, STATUS])
def test_refresh_and_status_401s_never_refresh(client, adapter, path):
    method = "POST" if path == REFRESH else "GET"
    adapter.reply_once(method, path, 401)

    with pytest.raises(requests.HTTPError) as exc_info:
        client.request(method, path)

    assert exc_info.value.response.status_code == 401
    assert client.coordinator.refresh_count == 0
    assert len(adapter.sent) == 1


def test_retried_request_is_not_refreshed_again(client, adapter):
    adapter.reply_once("GET", DATA, 401)
    outgoing = OutgoingRequest(
        requests.Request("GET", f"{BASE_URL}{DATA}"), retried=True
    )

    with pytest.raises(requests.HTTPError):
        client.coordinator.execute(outgoing)

    assert adapter.count("POST", REFRESH) == 0


def test_retry_that_401s_again_rejects_with_that_error(client, adapter):
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once("POST", REFRESH, 200)
    adapter.reply_once("GET", DATA, 401, {"error": "still"})

    with pytest.raises(requests.HTTPError) as exc_info:
        client.get(DATA)

    assert exc_info.value.response.json() == {"error": "still"}
    assert adapter.count("POST", REFRESH) == 1
    assert adapter.count("GET", DATA) == 2


def test_queued_retry_that_401s_does_not_refresh_again(client, adapter):
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once("GET", DATA, 401)
    adapter.reply_once(
        "POST", REFRESH, 200, {}, before=_hold_refresh_until(client, 1)
    )
    adapter.reply_once("GET", DATA, 200, {"call": 1})
    adapter.reply_once("GET", DATA, 401)

    outcomes = _run_concurrently(client)

    assert sum(isinstance(o, requests.Response) for o in outcomes) == 1
    assert sum(isinstance(o, requests.HTTPError) for o in outcomes) == 1
    assert adapter.count("POST", REFRESH) == 1


# ---------------------------------------------------------------------------
# Pass-through errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("status", [403, 404, 500])
def test_non_401_errors_pass_through_and_are_logged(
    client, adapter, caplog, status
):
    adapter.reply_once("GET", DATA, status, {"error": "nope"})

    with caplog.at_level(logging.ERROR, logger="oauthclient.auth.refresh"):
        with pytest.raises(requests.HTTPError) as exc_info:
            client.get(DATA)

    assert exc_info.value.response.status_code == status
    assert adapter.count("POST", REFRESH) == 0
    assert f"status={status}" in caplog.text
    assert "'error': 'nope'" in caplog.text
    assert f"{BASE_URL}{DATA}" in caplog.text


def test_bodiless_errors_pass_through_without_logging(
    client, adapter, caplog
):
    error = requests.ConnectionError("network down")
    adapter.raise_once("GET", DATA, error)

    with caplog.at_level(logging.DEBUG, logger="oauthclient.auth.refresh"):
        with pytest.raises(requests.ConnectionError) as exc_info:
            client.get(DATA)

    assert exc_info.value is error
    assert [r for r in caplog.records if r.name.startswith("oauthclient")] == []


def test_request_construction_failure_propagates(client):
    outgoing = OutgoingRequest(requests.Request("GET", "not-a-url"))

    with pytest.raises(requests.exceptions.MissingSchema):
        client.coordinator.execute(outgoing)


# ---------------------------------------------------------------------------
# Queue primitives
# ---------------------------------------------------------------------------


class TestQueue:
    def test_drain_resolves_waiters_in_order(self, client):
        coordinator = client.coordinator
        first, second = coordinator.enqueue(), coordinator.enqueue()

        assert coordinator.drain() == 2

        assert first.result(timeout=0) is None
        assert second.result(timeout=0) is None
        assert coordinator.pending == 0

    def test_drain_with_error_rejects_waiters(self, client):
        coordinator = client.coordinator
        waiter = coordinator.enqueue()

        coordinator.drain(RefreshFailedError())

        with pytest.raises(RefreshFailedError, match="Token refresh failed"):
            waiter.result(timeout=0)

    def test_should_queue_is_false_when_idle(self, client):
        assert client.coordinator.should_queue() is False
