"""Error taxonomy for the provider integration and the sync engine."""


class ProviderError(Exception):
    """Base for every failure talking to the listings provider.

    Carries the HTTP status (None for network failures), the response body and
    the provider's correlation id so support tickets can reference the call.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        correlation_id: str | None = None,
    ):
        self.status_code = status_code
        self.body = body
        self.correlation_id = correlation_id
        if correlation_id:
            message = f"{message} (correlation id: {correlation_id})"
        super().__init__(message)


class AuthError(ProviderError):
    """Token exchange failed, or the provider kept answering 401."""
    pass


class BadRequestError(ProviderError):
    """400: the request itself is wrong. Never retried."""
    pass


class ForbiddenError(ProviderError):
    """403: account or permission problem. Never retried."""
    pass


class RateLimitError(ProviderError):
    """429 persisted past the retry budget."""
    pass


class ServiceUnavailableError(ProviderError):
    """503 persisted past the retry budget."""
    pass


class ApiError(ProviderError):
    """Any other non-2xx response."""
    pass


class ProviderConnectionError(ProviderError):
    """Network-level failure persisted past the retry budget."""
    pass


class ValidationError(Exception):
    """A mapped vehicle failed validation. Non-fatal to a full sync."""

    def __init__(self, provider_id: str | None, errors: list[str]):
        self.provider_id = provider_id
        self.errors = errors
        super().__init__(f"Vehicle {provider_id or '<unknown>'}: {', '.join(errors)}")


class StoreError(Exception):
    """A single record write failed."""

    def __init__(self, message: str, provider_id: str | None = None):
        self.provider_id = provider_id
        super().__init__(message)
