"""
CancellationToken - cooperative cancellation handle for a top-level operation.

One token may be shared by many requests; once cancelled it stays cancelled.
"""

import asyncio
from typing import Awaitable, TypeVar

from hnreel.services.errors import RequestCancelledError

T = TypeVar("T")


class CancellationToken:
    """
    Signals cancellation to retries, backoff sleeps and in-flight calls.

    Usage:
        token = CancellationToken()
        task = asyncio.create_task(client.fetch(url, cancel_token=token))
        ...
        token.cancel()  # task fails with RequestCancelledError
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early if cancelled."""
        self.raise_if_cancelled()
        if delay > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        self.raise_if_cancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable``, aborting it if the token is cancelled first.

        Raises:
            RequestCancelledError: If cancellation wins the race
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RequestCancelledError()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            raise RequestCancelledError()

        # Cancellation observed alongside completion supersedes the result
        if self._event.is_set():
            if not task.cancelled():
                task.exception()
            raise RequestCancelledError()

        return task.result()
