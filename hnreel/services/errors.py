"""
Service layer exceptions.

Every failure a caller can observe carries structured fields (status,
retry-after, attempt count) so it can be handled without parsing messages.
Transport-level failures are not wrapped: they surface as the original
``httpx.TransportError``.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class RequestCancelledError(ServiceError):
    """The operation was aborted through its cancellation handle."""

    def __init__(self, message: str = "The operation was aborted."):
        super().__init__(message)


class UnexpectedStatusError(ServiceError):
    """Response status is not successful and not retryable."""

    def __init__(
        self, status: int, reason: str = "", service_id: str | None = None
    ):
        self.status = status
        self.reason = reason
        msg = f"Request failed with status {status}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, service_id=service_id)


class RetriesExhaustedError(ServiceError):
    """A retryable status persisted through every attempt."""

    def __init__(self, status: int, attempts: int, service_id: str | None = None):
        self.status = status
        self.attempts = attempts
        super().__init__(
            f"Request failed with status {status} after {attempts} attempts",
            service_id=service_id,
        )


class RateLimitError(ServiceError):
    """Rate limit exceeded."""

    def __init__(
        self,
        status: int = 429,
        retry_after: int | None = None,
        attempts: int = 1,
        service_id: str | None = None,
    ):
        self.status = status
        self.retry_after = retry_after
        self.attempts = attempts
        msg = f"Rate limit exceeded with status code {status}"
        if retry_after is not None:
            msg += f", retry after {retry_after}s"
        super().__init__(msg, service_id=service_id)


class PayloadValidationError(ServiceError):
    """Decoded payload does not match the expected schema."""

    def __init__(self, message: str, url: str | None = None):
        self.url = url
        super().__init__(message)
