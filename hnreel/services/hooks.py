"""Request hooks: before-request, after-response and on-error slots run as a pipeline.

A :class:`ClientHooks` bundles up to three optional callables. The
:class:`HookRegistry` keeps registered bundles in order and runs each slot
type across them in registration order, each hook receiving the previous
hook's output.
"""

import inspect
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from hnreel.services.retry import RequestOptions

BeforeRequestHook = Callable[
    [str, RequestOptions],
    tuple[str, RequestOptions] | Awaitable[tuple[str, RequestOptions]],
]
AfterResponseHook = Callable[
    [httpx.Response], httpx.Response | Awaitable[httpx.Response]
]
OnErrorHook = Callable[
    [Exception], Exception | None | Awaitable[Exception | None]
]


@dataclass
class ClientHooks:
    """Optional hook slots registered together.

    Attributes:
        before_request: Receives ``(url, options)`` before each transport
            call and returns the ``(url, options)`` to use instead.
        after_response: Receives each successful response and returns the
            response to hand on.
        on_error: Receives the failure of a dispatch. Returning an
            exception replaces the current one; returning ``None`` keeps
            it. An exception raised by the hook also replaces it.
    """

    before_request: BeforeRequestHook | None = None
    after_response: AfterResponseHook | None = None
    on_error: OnErrorHook | None = None


async def _resolve(value):
    if inspect.isawaitable(value):
        return await value
    return value


class HookRegistry:
    """Holds hook bundles and runs each slot in registration order."""

    def __init__(self) -> None:
        self._before_request: list[BeforeRequestHook] = []
        self._after_response: list[AfterResponseHook] = []
        self._on_error: list[OnErrorHook] = []

    def register(self, hooks: ClientHooks) -> None:
        """Register every slot set on *hooks*."""
        if hooks.before_request is not None:
            self._before_request.append(hooks.before_request)
        if hooks.after_response is not None:
            self._after_response.append(hooks.after_response)
        if hooks.on_error is not None:
            self._on_error.append(hooks.on_error)

    def clear(self) -> None:
        """Unregister all hooks."""
        self._before_request = []
        self._after_response = []
        self._on_error = []

    def __len__(self) -> int:
        return (
            len(self._before_request) + len(self._after_response) + len(self._on_error)
        )

    async def run_before_request(
        self, url: str, options: RequestOptions
    ) -> tuple[str, RequestOptions]:
        """Fold ``(url, options)`` through every before-request hook."""
        for hook in self._before_request:
            url, options = await _resolve(hook(url, options))
        return url, options

    async def run_after_response(self, response: httpx.Response) -> httpx.Response:
        """Fold the response through every after-response hook."""
        for hook in self._after_response:
            response = await _resolve(hook(response))
        return response

    async def run_on_error(self, error: Exception) -> Exception:
        """Fold the error through every on-error hook.

        Returns:
            The error to raise in place of *error*.
        """
        current = error
        for hook in self._on_error:
            try:
                result = await _resolve(hook(current))
            except Exception as exc:
                current = exc
                continue
            if isinstance(result, Exception):
                current = result
        return current
