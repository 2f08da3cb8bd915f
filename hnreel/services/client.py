"""
ServiceClient - Unified async HTTP client with resilience patterns.

Combines:
- HookRegistry for request/response instrumentation
- fetch_with_retry for backoff, jitter and cancellation
- pydantic validation of decoded JSON payloads
"""

from functools import lru_cache
from typing import Any, Literal

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from hnreel.services.cancellation import CancellationToken
from hnreel.services.errors import (
    PayloadValidationError,
    RateLimitError,
    UnexpectedStatusError,
)
from hnreel.services.hooks import ClientHooks, HookRegistry
from hnreel.services.retry import (
    RATE_LIMIT_STATUS,
    RequestOptions,
    RetryPolicy,
    Transport,
    fetch_with_retry,
    parse_retry_after,
)


class HttpxTransport:
    """Default transport: a lazily created ``httpx.AsyncClient``."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    async def __call__(self, url: str, options: RequestOptions) -> httpx.Response:
        client = await self._get_http_client()
        return await client.request(
            method=options.get("method", "GET"),
            url=url,
            params=options.get("params"),
            headers=options.get("headers"),
            timeout=options.get("timeout", self._timeout),
        )

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


@lru_cache(maxsize=64)
def _adapter_for(schema: Any) -> TypeAdapter[Any]:
    return TypeAdapter(schema)


class ServiceClient:
    """
    HTTP client with hooks, retry and payload validation.

    Usage:
        client = ServiceClient()

        # Validated JSON
        item = await client.get_json(
            "https://hacker-news.firebaseio.com/v0/item/1.json",
            Item,
        )

        # Instrumentation
        client.use(ClientHooks(
            before_request=lambda url, opts: (url, opts),
            on_error=lambda err: logger.error(err),
        ))
    """

    def __init__(
        self,
        transport: Transport | None = None,
        retry: RetryPolicy | Literal[False] | None = None,
        hooks: ClientHooks | None = None,
        cancel_token: CancellationToken | None = None,
        timeout: float = 30.0,
        service_id: str = "hackernews",
        debug: bool = False,
    ):
        self._owned_transport = HttpxTransport(timeout) if transport is None else None
        self._transport: Transport = transport or self._owned_transport
        self._retry = retry
        self._cancel_token = cancel_token
        self._service_id = service_id
        self._debug = debug

        self._hooks = HookRegistry()
        if hooks:
            self._hooks.register(hooks)

    @property
    def service_id(self) -> str:
        return self._service_id

    def use(self, hooks: ClientHooks) -> "ServiceClient":
        """Register hooks; returns the client for chaining."""
        self._hooks.register(hooks)
        return self

    def clear_hooks(self) -> "ServiceClient":
        """Unregister all hooks; returns the client for chaining."""
        self._hooks.clear()
        return self

    async def fetch(
        self,
        url: str,
        options: RequestOptions | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> httpx.Response:
        """
        Dispatch one request through hooks and the retry wrapper.

        Args:
            url: Full URL to request
            options: Transport options (method, params, headers, timeout)
            cancel_token: Per-call token; falls back to the client's token

        Returns:
            The response after every after-response hook

        Raises:
            Exception: The dispatch failure as rewritten by on-error hooks
        """
        token = cancel_token or self._cancel_token
        try:
            url, options = await self._hooks.run_before_request(url, dict(options or {}))
            self._log(f"GET {url}")
            response = await fetch_with_retry(
                self._transport, url, options, token, self._retry
            )
            return await self._hooks.run_after_response(response)
        except Exception as e:
            processed = await self._hooks.run_on_error(e)
            if processed is e:
                raise
            raise processed from e

    async def get_json(
        self,
        url: str,
        schema: Any,
        params: dict[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
        description: str | None = None,
    ) -> Any:
        """
        Fetch ``url`` and validate its JSON body against ``schema``.

        Args:
            url: Full URL to request
            schema: pydantic model class, type expression or TypeAdapter
            params: Query parameters
            cancel_token: Per-call cancellation token
            description: What is being fetched, for error messages

        Raises:
            RateLimitError: 429 response (only reachable with retry disabled)
            UnexpectedStatusError: Any other unsuccessful response
            PayloadValidationError: Body is not JSON or does not match schema
        """
        options: RequestOptions = {"params": params} if params else {}
        response = await self.fetch(url, options, cancel_token)
        what = description or url

        if not response.is_success:
            if response.status_code == RATE_LIMIT_STATUS:
                raise RateLimitError(
                    status=response.status_code,
                    retry_after=parse_retry_after(response.headers.get("Retry-After")),
                    service_id=self._service_id,
                )
            raise UnexpectedStatusError(
                response.status_code,
                f"Failed to fetch {what}",
                service_id=self._service_id,
            )

        try:
            content = response.json()
        except ValueError as e:
            raise PayloadValidationError(f"Invalid JSON for {what}: {e}", url=url) from e

        adapter = schema if isinstance(schema, TypeAdapter) else _adapter_for(schema)
        try:
            return adapter.validate_python(content)
        except ValidationError as e:
            raise PayloadValidationError(
                f"Unexpected payload for {what}: {e.error_count()} validation error(s)",
                url=url,
            ) from e

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._owned_transport is not None:
            await self._owned_transport.close()
        logger.debug("ServiceClient closed")

    async def __aenter__(self) -> "ServiceClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[ServiceClient] {message}")


# Global client instance
_global_client: ServiceClient | None = None


def get_service_client() -> ServiceClient:
    """
    Get the process-wide client, creating it from settings on first use.

    Dispose of it with close_service_client() at shutdown.
    """
    from hnreel.settings import global_settings

    global _global_client
    if _global_client is None:
        _global_client = ServiceClient(
            retry=global_settings.retry_policy(),
            timeout=global_settings.request_timeout,
            debug=global_settings.debug,
        )
    return _global_client


async def close_service_client() -> None:
    """Close the global service client."""
    global _global_client
    if _global_client:
        await _global_client.close()
        _global_client = None
