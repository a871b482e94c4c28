"""
Tests for the bounded polling primitive.
"""
from unittest.mock import MagicMock

import pytest
from hypothesis import given, settings, strategies as st

from agent_wallet_sdk.exceptions import ProtocolError, RemoteConnectionError, RemoteError
from agent_wallet_sdk.polling import is_transient, poll
from conftest import FakeClock


def _recording_fetch(clock, values):
    """fetch that returns values in order (repeating the last) and records call times"""
    calls = []

    def fetch():
        calls.append(clock())
        value = values[min(len(calls) - 1, len(values) - 1)]
        if isinstance(value, Exception):
            raise value
        return value

    return fetch, calls


def test_returns_first_terminal_value(clock):
    fetch, calls = _recording_fetch(clock, ["pending", "pending", "done", "never"])

    result = poll(fetch, lambda v: v == "done", timeout=60, interval=2, clock=clock, sleep=clock.sleep)

    assert result == "done"
    assert len(calls) == 3
    assert clock.sleeps == [2, 2]


def test_zero_deadline_returns_first_fetch(clock):
    fetch, calls = _recording_fetch(clock, ["pending"])

    result = poll(fetch, lambda v: False, timeout=0, interval=2, clock=clock, sleep=clock.sleep)

    assert result == "pending"
    assert len(calls) == 1
    assert clock.sleeps == []


def test_timeout_returns_last_non_terminal_value(clock):
    values = [f"pending-{i}" for i in range(100)]
    fetch, calls = _recording_fetch(clock, values)
    start = clock.now

    result = poll(fetch, lambda v: False, timeout=5, interval=2, clock=clock, sleep=clock.sleep)

    assert result == values[len(calls) - 1]
    assert all(t <= start + 5 for t in calls)
    assert clock.now - start <= 5 + 2
    # Last sleep is cut short at the deadline
    assert clock.sleeps == [2, 2, 1]


def test_transient_errors_are_retried(clock):
    fetch, calls = _recording_fetch(clock, [
        RemoteConnectionError("refused"),
        RemoteError(503, "unavailable"),
        RemoteError(429, "slow down"),
        "done",
    ])

    result = poll(fetch, lambda v: v == "done", timeout=60, interval=2, clock=clock, sleep=clock.sleep)

    assert result == "done"
    assert len(calls) == 4


def test_non_transient_error_propagates_immediately(clock):
    fetch, calls = _recording_fetch(clock, [RemoteError(404, "missing"), "done"])

    with pytest.raises(RemoteError) as excinfo:
        poll(fetch, lambda v: v == "done", timeout=60, interval=2, clock=clock, sleep=clock.sleep)

    assert excinfo.value.status_code == 404
    assert len(calls) == 1


def test_transient_error_after_value_returns_last_value(clock):
    fetch, _ = _recording_fetch(clock, ["pending", RemoteConnectionError("down")])

    result = poll(fetch, lambda v: False, timeout=6, interval=2, clock=clock, sleep=clock.sleep)

    assert result == "pending"


def test_only_transient_errors_until_deadline_reraises(clock):
    fetch, calls = _recording_fetch(clock, [RemoteConnectionError("down")])

    with pytest.raises(RemoteConnectionError):
        poll(fetch, lambda v: False, timeout=4, interval=2, clock=clock, sleep=clock.sleep)

    assert len(calls) == 3


def test_transient_errors_are_rate_limited_in_logs(clock):
    fetch, _ = _recording_fetch(clock, [RemoteConnectionError("down")] * 5 + ["done"])
    logged = MagicMock()

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr("agent_wallet_sdk.polling.rate_limited_log", logged)
        poll(fetch, lambda v: v == "done", timeout=60, interval=1, clock=clock, sleep=clock.sleep)

    assert logged.call_count == 5
    assert "down" in logged.call_args[0][0]


def test_defaults_use_time_module():
    """Without injected clock/sleep the loop uses time.monotonic and the patched time.sleep"""
    fetch = MagicMock(side_effect=["pending", "done"])

    assert poll(fetch, lambda v: v == "done", timeout=5, interval=0.01) == "done"
    assert fetch.call_count == 2


@pytest.mark.parametrize("exc, expected", [
    (RemoteConnectionError("x"), True),
    (RemoteError(500, ""), True),
    (RemoteError(502, ""), True),
    (RemoteError(429, ""), True),
    (RemoteError(400, ""), False),
    (RemoteError(404, ""), False),
    (ProtocolError("x"), False),
    (ValueError("x"), False),
])
def test_is_transient(exc, expected):
    assert is_transient(exc) is expected


@settings(max_examples=100, deadline=None)
@given(
    timeout=st.floats(min_value=0, max_value=30, allow_nan=False),
    interval=st.floats(min_value=0.1, max_value=10, allow_nan=False),
)
def test_never_fetches_after_deadline_and_returns_in_time(timeout, interval):
    clock = FakeClock()
    start = clock.now
    deadline = start + timeout
    fetch, calls = _recording_fetch(clock, ["pending"])

    poll(fetch, lambda v: False, timeout=timeout, interval=interval, clock=clock, sleep=clock.sleep)

    assert calls[0] == start
    assert all(t <= deadline for t in calls)
    assert clock.now - start <= timeout + interval + 1e-9
