"""Async primitives used for every remote call made during a sync run.

* ``run_sync`` bridges the blocking ``requests`` clients onto the event loop.
* ``with_timeout`` bounds a single awaitable and raises
  ``OperationTimeoutError`` tagged with a label.
* ``retry`` re-invokes an operation factory with linear backoff.
* ``fetch_with_timeout`` streams a URL against a deadline and closes the
  connection as soon as the deadline passes.
* ``TimeBudget`` is the soft wall-clock budget checked between units of work.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
import threading
import time
from typing import Any, Awaitable, Callable, TypeVar

import requests

T = TypeVar("T")
logger = logging.getLogger(__name__)


class OperationTimeoutError(TimeoutError):
    """An operation did not finish within its time limit.

    Attributes:
        label: Name of the operation, as passed to ``with_timeout``.
        ms: The limit that was exceeded, in milliseconds.
    """

    def __init__(self, label: str, ms: int) -> None:
        super().__init__(f"{label} after {ms}ms")
        self.label = label
        self.ms = ms


class RetryExhaustedError(RuntimeError):
    """Every attempt of a retried operation failed.

    The last underlying error is available as ``last_error`` and as
    ``__cause__``.
    """

    def __init__(
        self, label: str, attempts: int, last_error: BaseException | None
    ) -> None:
        super().__init__(
            f"{label} failed after {attempts} attempts: {last_error}"
        )
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def delay(ms: float) -> None:
    """Sleep for *ms* milliseconds."""
    await asyncio.sleep(ms / 1000)


async def with_timeout(
    awaitable: Awaitable[T], ms: int, label: str = "timeout"
) -> T:
    """Await *awaitable*, giving up after *ms* milliseconds.

    The awaitable is cancelled when the limit expires.  Work already handed
    to a thread by ``run_sync`` keeps running in the background; only the
    wait is abandoned.

    Raises:
        OperationTimeoutError: If the limit expires first.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=ms / 1000)
    except asyncio.TimeoutError:
        raise OperationTimeoutError(label, ms) from None


async def retry(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    backoff_ms: int = 600,
    label: str = "retry",
) -> T:
    """Call *operation* up to *retries* times with linear backoff.

    *operation* is a zero-argument callable returning a fresh awaitable for
    each attempt.  Between attempts the call sleeps ``backoff_ms * attempt``.

    Raises:
        RetryExhaustedError: After the final attempt fails.  The last error
            is chained as the cause.
    """
    last_error: BaseException | None = None
    for attempt in range(1, retries + 1):
        try:
            return await operation()
        except Exception as exc:
            last_error = exc
            logger.debug(
                "%s attempt %d/%d failed: %s", label, attempt, retries, exc
            )
            if attempt < retries:
                await delay(backoff_ms * attempt)
    raise RetryExhaustedError(label, retries, last_error) from last_error


async def fetch_with_timeout(
    url: str, ms: int, *, chunk_size: int = 8192
) -> requests.Response:
    """GET *url* with the whole download bounded by *ms* milliseconds.

    The body is streamed in a worker thread against a monotonic deadline.
    When the deadline passes, or the awaiting coroutine is cancelled, the
    response is closed so the connection is torn down instead of left
    downloading in the background.  The returned response has its content
    already read.

    Raises:
        OperationTimeoutError: If the download does not finish in time.
    """
    seconds = ms / 1000
    deadline = time.monotonic() + seconds
    label = f"fetch {url}"
    abandoned = threading.Event()
    inflight: dict[str, requests.Response] = {}

    def _download() -> requests.Response:
        response = requests.get(url, timeout=(seconds, seconds), stream=True)
        inflight["response"] = response
        try:
            if abandoned.is_set():
                raise OperationTimeoutError(label, ms)
            chunks = []
            for chunk in response.iter_content(chunk_size):
                if abandoned.is_set() or time.monotonic() >= deadline:
                    raise OperationTimeoutError(label, ms)
                chunks.append(chunk)
            response._content = b"".join(chunks)
            return response
        finally:
            response.close()

    try:
        return await with_timeout(run_sync(_download), ms, label=label)
    except BaseException:
        abandoned.set()
        response = inflight.get("response")
        if response is not None:
            _abort(response)
        raise


def _abort(response: requests.Response) -> None:
    """Shut down the socket under *response* from another thread.

    A worker blocked in a read sees end-of-stream and closes the response
    itself; ``Response.close`` is not called here because it waits on the
    reader's lock.
    """
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    with contextlib.suppress(OSError):
        sock.shutdown(socket.SHUT_RDWR)


class TimeBudget:
    """Soft wall-clock budget for a sync run.

    Args:
        ms: Budget in milliseconds, or ``None`` for no limit.
    """

    def __init__(self, ms: int | None = None) -> None:
        self.ms = ms
        self._started = time.monotonic()

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self._started) * 1000

    def within(self) -> bool:
        """Return ``True`` while the budget has not been used up."""
        if self.ms is None:
            return True
        return self.elapsed_ms < self.ms
