"""
Resilient fetch - one logical request with exponential backoff, jitter and cancellation.

Retries transient failures (retryable statuses, transport errors), honours
``Retry-After`` on retryable responses, and turns an exhausted 429 into a
typed RateLimitError carrying the server's retry hint.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

import httpx
from loguru import logger

from hnreel.services.cancellation import CancellationToken
from hnreel.services.errors import (
    RateLimitError,
    RetriesExhaustedError,
    UnexpectedStatusError,
)

RequestOptions = dict[str, Any]
Transport = Callable[[str, RequestOptions], Awaitable[httpx.Response]]
Sleep = Callable[[float], Awaitable[None]]

RATE_LIMIT_STATUS = 429


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for a single call. Delays are in seconds."""

    max_attempts: int = 3  # Retries after the first call
    initial_delay: float = 0.3
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    jitter_fraction: float = 0.2  # 0-1, spread around the base delay
    retryable_status_codes: frozenset[int] = frozenset({429, 500, 502, 503, 504})
    retry_on_transport_error: bool = True


DEFAULT_RETRY_POLICY = RetryPolicy()


def compute_backoff(
    attempt: int,
    policy: RetryPolicy,
    rng: random.Random | None = None,
) -> float:
    """
    Delay before the retry that follows ``attempt`` (0-based).

    ``base = min(max_delay, initial_delay * multiplier ** attempt)``, then
    scaled by a uniform factor in ``[1 - jitter, 1 + jitter]``.
    """
    try:
        grown = policy.initial_delay * policy.backoff_multiplier**attempt
    except OverflowError:
        grown = policy.max_delay
    base = min(policy.max_delay, grown)

    jitter = policy.jitter_fraction
    if jitter <= 0:
        return max(0.0, base)

    factor = (rng or random).uniform(1 - jitter, 1 + jitter)
    return max(0.0, base * factor)


def parse_retry_after(value: str | None) -> int | None:
    """Parse a ``Retry-After`` header given in seconds."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


async def fetch_with_retry(
    transport: Transport,
    url: str,
    options: RequestOptions | None = None,
    cancel_token: CancellationToken | None = None,
    policy: RetryPolicy | Literal[False] | None = None,
    *,
    sleep: Sleep | None = None,
) -> httpx.Response:
    """
    Perform one logical request against ``transport``.

    Args:
        transport: Async callable ``(url, options) -> httpx.Response``
        url: Request URL
        options: Transport options (method, headers, params, ...)
        cancel_token: Aborts retries, sleeps and the in-flight call
        policy: Retry configuration; ``False`` makes a single best-effort
            call and returns its response whatever the status
        sleep: Override for the backoff sleep (cancellation is still
            checked before and after it)

    Returns:
        The successful response

    Raises:
        RequestCancelledError: Cancellation observed at any checkpoint
        UnexpectedStatusError: Status outside the retryable set
        RateLimitError: 429 persisted through every attempt
        RetriesExhaustedError: Other retryable status persisted
        httpx.TransportError: Connectivity failure not retried
    """
    options = options or {}

    if policy is False:
        return await _call(transport, url, options, cancel_token)

    policy = policy or DEFAULT_RETRY_POLICY
    attempt = 0

    while True:
        try:
            response = await _call(transport, url, options, cancel_token)
        except httpx.TransportError as e:
            if not policy.retry_on_transport_error or attempt >= policy.max_attempts:
                raise
            delay = compute_backoff(attempt, policy)
            logger.warning(
                f"Network error: {e}, retrying in {delay:.2f}s "
                f"({attempt + 1}/{policy.max_attempts})"
            )
            await _pause(delay, cancel_token, sleep)
            attempt += 1
            continue

        if response.is_success:
            return response

        status = response.status_code
        if status not in policy.retryable_status_codes:
            raise UnexpectedStatusError(status, response.reason_phrase)

        retry_after = parse_retry_after(response.headers.get("Retry-After"))

        if attempt >= policy.max_attempts:
            if status == RATE_LIMIT_STATUS:
                raise RateLimitError(
                    status=status, retry_after=retry_after, attempts=attempt + 1
                )
            raise RetriesExhaustedError(status, attempt + 1)

        if retry_after is not None and retry_after > 0:
            delay = float(retry_after)
        else:
            delay = compute_backoff(attempt, policy)

        logger.warning(
            f"Received status code {status}, retrying in {delay:.2f}s "
            f"({attempt + 1}/{policy.max_attempts})"
        )
        await _pause(delay, cancel_token, sleep)
        attempt += 1


async def _call(
    transport: Transport,
    url: str,
    options: RequestOptions,
    cancel_token: CancellationToken | None,
) -> httpx.Response:
    if cancel_token is None:
        return await transport(url, options)
    cancel_token.raise_if_cancelled()
    return await cancel_token.run(transport(url, options))


async def _pause(
    delay: float,
    cancel_token: CancellationToken | None,
    sleep: Sleep | None,
) -> None:
    if sleep is not None:
        if cancel_token:
            cancel_token.raise_if_cancelled()
        await sleep(delay)
        if cancel_token:
            cancel_token.raise_if_cancelled()
    elif cancel_token is not None:
        await cancel_token.sleep(delay)
    else:
        await asyncio.sleep(delay)
