"""Shared test fixtures for hnreel.

Provides a controllable clock for cache temperature tests, a recording
sleep for retry tests, and a factory building a ServiceClient on top of an
httpx.MockTransport. These fixtures are discovered by pytest and available
to all test modules without explicit imports.
"""

from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from hnreel.services.client import HttpxTransport, ServiceClient
from hnreel.services.retry import RetryPolicy


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def set(self, now: float) -> None:
        self.now = now


class RecordingSleep:
    """Sleep replacement that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.on_sleep: Callable[[float], Any] | None = None

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.on_sleep is not None:
            self.on_sleep(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_client() -> Callable[..., ServiceClient]:
    """Factory for a ServiceClient whose requests are answered by a handler.

    Retries are disabled unless a policy is passed.
    """

    def _make(handler, retry: Any = RetryPolicy(max_attempts=0), **kwargs: Any) -> ServiceClient:
        return ServiceClient(
            transport=HttpxTransport(transport=httpx.MockTransport(handler)),
            retry=retry,
            **kwargs,
        )

    return _make
