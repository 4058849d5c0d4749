"""HTTP utilities providing retry/backoff semantics.

A call moves through ``Attempting -> (Backoff -> Attempting)* -> Succeeded |
Failed``. Each finished attempt is classified and :func:`transition` picks the
next state; :func:`request_with_retry` only drives the loop.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

logger = logging.getLogger(__name__)

RETRY_AFTER_HEADER = "Retry-After"


class RetryPolicy:
    """Retry budget shared by every request issued through one client.

    ``max_retries`` counts retries, so a request is attempted at most
    ``max_retries + 1`` times. Delays grow as ``base_delay_ms * 2**attempt``.
    """

    def __init__(self, *, max_retries: int = 3, base_delay_ms: int = 1000) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms

    def backoff_delay(self, attempt: int) -> float:
        """Return the exponential delay in seconds after ``attempt`` failed."""
        return self.base_delay_ms * (2**attempt) / 1000.0

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_retries={self.max_retries}, "
            f"base_delay_ms={self.base_delay_ms})"
        )


class ResponseClass(str, Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"


def classify_response(response: httpx.Response) -> ResponseClass:
    """Bucket a response by how the retry loop must treat it."""
    status = response.status_code
    if 200 <= status < 300:
        return ResponseClass.SUCCESS
    if status == 429:
        return ResponseClass.RATE_LIMITED
    if status >= 500:
        return ResponseClass.SERVER_ERROR
    return ResponseClass.CLIENT_ERROR


def parse_retry_after(
    value: Optional[str], *, now: Optional[datetime] = None
) -> Optional[float]:
    """Parse a ``Retry-After`` value into seconds.

    Accepts a non-negative integer count of seconds or an HTTP-date. Dates in
    the past yield ``0``. Anything else yields ``None``.
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(int(value))
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return max(0.0, (when - current).total_seconds())


def is_unsendable(exc: BaseException) -> bool:
    """Return ``True`` when the request never left the process.

    Covers malformed URLs and protocols as well as DNS resolution failures,
    which surface as :class:`httpx.ConnectError` caused by ``socket.gaierror``.
    """
    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol, httpx.LocalProtocolError)):
        return True
    if isinstance(exc, httpx.ConnectError):
        cause: Optional[BaseException] = exc
        seen = 0
        while cause is not None and seen < 10:
            if isinstance(cause, socket.gaierror):
                return True
            cause = cause.__cause__ or cause.__context__
            seen += 1
    return False


@dataclass(frozen=True)
class Attempting:
    attempt: int


@dataclass(frozen=True)
class Backoff:
    attempt: int
    delay: float


@dataclass(frozen=True)
class Succeeded:
    response: httpx.Response


@dataclass(frozen=True)
class Failed:
    """Terminal failure: either a final response or the exception raised."""

    response: Optional[httpx.Response] = None
    error: Optional[BaseException] = None


RetryState = Union[Attempting, Backoff, Succeeded, Failed]


def transition(
    policy: RetryPolicy,
    attempt: int,
    *,
    response: Optional[httpx.Response] = None,
    error: Optional[BaseException] = None,
) -> RetryState:
    """Decide the state that follows one finished attempt."""
    if error is not None:
        if not isinstance(error, httpx.TransportError) or is_unsendable(error):
            return Failed(error=error)
        if attempt >= policy.max_retries:
            return Failed(error=error)
        return Backoff(attempt, policy.backoff_delay(attempt))

    if response is None:
        raise ValueError("transition() needs a response or an error")

    kind = classify_response(response)
    if kind is ResponseClass.SUCCESS:
        return Succeeded(response)
    if kind is ResponseClass.CLIENT_ERROR:
        return Failed(response=response)
    if attempt >= policy.max_retries:
        return Failed(response=response)
    if kind is ResponseClass.RATE_LIMITED:
        delay = parse_retry_after(response.headers.get(RETRY_AFTER_HEADER))
        if delay is None:
            delay = policy.backoff_delay(attempt)
        return Backoff(attempt, delay)
    return Backoff(attempt, policy.backoff_delay(attempt))


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args: Any,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> httpx.Response:
    """Call ``func`` until it succeeds or the retry policy gives up.

    Returns the final response, which is non-2xx when the loop ended on a
    terminal status. Exceptions that end the loop are re-raised unchanged.
    """
    config = policy or RetryPolicy()
    state: RetryState = Attempting(0)

    while True:
        if isinstance(state, Attempting):
            try:
                response = await func(*args, **kwargs)
            except Exception as exc:
                state = transition(config, state.attempt, error=exc)
            else:
                state = transition(config, state.attempt, response=response)
        elif isinstance(state, Backoff):
            logger.info(
                "Retrying request in %.2fs (retry %d of %d)",
                state.delay,
                state.attempt + 1,
                config.max_retries,
            )
            await sleep(state.delay)
            state = Attempting(state.attempt + 1)
        elif isinstance(state, Succeeded):
            return state.response
        else:
            if state.error is not None:
                raise state.error
            assert state.response is not None
            return state.response


__all__ = [
    "Attempting",
    "Backoff",
    "Failed",
    "RETRY_AFTER_HEADER",
    "ResponseClass",
    "RetryPolicy",
    "RetryState",
    "Succeeded",
    "classify_response",
    "is_unsendable",
    "parse_retry_after",
    "request_with_retry",
    "transition",
]
