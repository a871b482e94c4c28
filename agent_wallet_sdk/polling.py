"""
Bounded polling shared by the transfer and purchase orchestrators.
"""
import logging
import time
from typing import Callable, Optional, TypeVar

from ._rate_limited_log import rate_limited_log
from .exceptions import RemoteConnectionError, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NOTHING = object()


def is_transient(exc: BaseException) -> bool:
    """Whether a failed read is worth repeating."""
    if isinstance(exc, RemoteConnectionError):
        return True
    if isinstance(exc, RemoteError):
        return exc.is_transient
    return False


def poll(
    fetch: Callable[[], T],
    is_terminal: Callable[[T], bool],
    timeout: float,
    interval: float,
    clock: Optional[Callable[[], float]] = None,
    sleep: Optional[Callable[[float], None]] = None,
    description: str = "remote state",
) -> T:
    """
    Call ``fetch`` until ``is_terminal`` accepts its result or ``timeout`` elapses.

    The first fetch always happens, so ``timeout=0`` returns the first result.
    ``fetch`` is never called once the deadline has passed, and the last sleep
    is cut short at the deadline, so the call returns within
    ``timeout + interval`` seconds (plus the duration of one fetch).

    Transient failures (connection errors, HTTP 429 and 5xx) are logged and
    the loop keeps going. Any other exception from ``fetch`` propagates.

    Args:
        fetch: Reads the current remote state
        is_terminal: Decides whether polling can stop
        timeout: Seconds until the deadline
        interval: Seconds between fetches
        clock: Monotonic clock (defaults to time.monotonic)
        sleep: Suspends the caller (defaults to time.sleep)
        description: What is being polled, for log lines

    Returns:
        The first terminal value, or the last value read before the deadline

    Raises:
        Exception: The last transient error, if the deadline passes before
            any fetch succeeded
    """
    # Resolved per call so tests can patch time.sleep
    clock = clock or time.monotonic
    sleep = sleep or time.sleep

    deadline = clock() + max(timeout, 0)
    interval = max(interval, 0)
    last = _NOTHING
    last_error: Optional[BaseException] = None
    attempts = 0

    while True:
        attempts += 1
        try:
            value = fetch()
        except Exception as e:
            if not is_transient(e):
                raise
            last_error = e
            rate_limited_log(
                f"Transient error while polling {description}: {e}",
                interval=30,
                logger_instance=logger,
            )
        else:
            last = value
            if is_terminal(value):
                logger.debug(f"Polling {description} finished after {attempts} attempt(s)")
                return value

        remaining = deadline - clock()
        if remaining <= 0:
            break
        sleep(min(interval, remaining))
        if clock() > deadline:
            break

    logger.info(f"Polling {description} reached its deadline after {attempts} attempt(s)")
    if last is _NOTHING:
        raise last_error
    return last
