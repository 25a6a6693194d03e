"""
Listings provider API client.

Every call goes through the provider's mandated status-code contract:

    400 -> BadRequestError, never retried
    401 -> invalidate token, re-authenticate and retry; then AuthError
    403 -> ForbiddenError, never retried
    429 -> wait Retry-After, capped at max_retry_after (or base_delay * (attempt+1)),
           and retry; then RateLimitError
    503 -> wait max(2s, base_delay * (attempt+1)) and retry; then ServiceUnavailableError
    other non-2xx -> ApiError, never retried
    network failure (including during token refresh) -> linear backoff and
           retry; then ProviderConnectionError

Each attempt is classified into an Ok / Retryable / Fatal value by
classify_response(); the tenacity loop only looks at that value, so the
policy table can be tested without any HTTP traffic.
"""

import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Union

import httpx
from tenacity import Retrying, retry_if_result, stop_after_attempt

from stocksync.config.settings import Settings, get_settings
from stocksync.services.errors import (
    ApiError,
    AuthError,
    BadRequestError,
    ForbiddenError,
    ProviderConnectionError,
    RateLimitError,
    ServiceUnavailableError,
)
from stocksync.services.provider_auth import AuthTokenManager

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE_MIN_DELAY = 2.0
DEFAULT_MAX_RETRY_AFTER = 60.0


# --- Attempt outcomes ---

@dataclass(frozen=True)
class Ok:
    body: Any
    correlation_id: str | None = None


@dataclass(frozen=True)
class Retryable:
    status: int | None  # None for network failures
    delay: float
    body: str = ""
    correlation_id: str | None = None


@dataclass(frozen=True)
class Fatal:
    status: int
    body: str
    correlation_id: str | None = None


Outcome = Union[Ok, Retryable, Fatal]


def _retry_after_seconds(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return max(seconds, 0.0)


def classify_response(
    response: httpx.Response,
    attempt: int,
    base_delay: float,
    correlation_header: str = "X-Correlation-Id",
    max_retry_after: float = DEFAULT_MAX_RETRY_AFTER,
) -> Outcome:
    """Map one HTTP response onto the retry policy. `attempt` is zero-based."""
    status = response.status_code
    correlation_id = response.headers.get(correlation_header)
    linear_delay = base_delay * (attempt + 1)

    if response.is_success:
        if not response.content:
            return Ok(None, correlation_id)
        try:
            return Ok(response.json(), correlation_id)
        except ValueError:
            return Fatal(status, f"Invalid JSON in response: {response.text[:200]}", correlation_id)

    if status == 401:
        return Retryable(status, 0.0, response.text, correlation_id)
    if status == 429:
        retry_after = _retry_after_seconds(response.headers.get("Retry-After"))
        delay = min(retry_after, max_retry_after) if retry_after is not None else linear_delay
        return Retryable(status, delay, response.text, correlation_id)
    if status == 503:
        return Retryable(status, max(SERVICE_UNAVAILABLE_MIN_DELAY, linear_delay), response.text, correlation_id)

    return Fatal(status, response.text, correlation_id)


def classify_transport_error(exc: httpx.TransportError, attempt: int, base_delay: float) -> Retryable:
    return Retryable(None, base_delay * (attempt + 1), f"{type(exc).__name__}: {exc}")


def raise_for_outcome(outcome: Outcome, method: str, path: str) -> None:
    """Raise the taxonomy error for a Fatal or exhausted Retryable outcome."""
    if isinstance(outcome, Ok):
        return

    status = outcome.status
    kwargs = {"status_code": status, "body": outcome.body, "correlation_id": outcome.correlation_id}
    where = f"{method} {path}"

    if isinstance(outcome, Fatal):
        if status == 400:
            raise BadRequestError(f"Bad request for {where}: {outcome.body}", **kwargs)
        if status == 403:
            raise ForbiddenError(f"Forbidden for {where}: check provider account permissions", **kwargs)
        raise ApiError(f"API request failed for {where}: {status} - {outcome.body}", **kwargs)

    if status == 401:
        raise AuthError(f"Unauthorized for {where}: authentication failed after retries", **kwargs)
    if status == 429:
        raise RateLimitError(f"Rate limit exceeded for {where}: max retries reached", **kwargs)
    if status == 503:
        raise ServiceUnavailableError(f"Provider unavailable for {where}: max retries reached", **kwargs)
    raise ProviderConnectionError(f"Network error for {where}: {outcome.body}", **kwargs)


def _wait_from_outcome(retry_state) -> float:
    return retry_state.outcome.result().delay


# --- Client ---

class ProviderApiClient:
    """Authenticated requests against the provider with the fixed retry policy."""

    def __init__(
        self,
        http: httpx.Client,
        tokens: AuthTokenManager,
        max_retries: int = 3,
        base_delay: float = 1.0,
        correlation_header: str = "X-Correlation-Id",
        max_retry_after: float = DEFAULT_MAX_RETRY_AFTER,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._http = http
        self.tokens = tokens
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.correlation_header = correlation_header
        self.max_retry_after = max_retry_after
        self._sleep = sleep

    def request(self, method: str, path: str, body: dict | None = None, params: dict | None = None) -> Any:
        """Issue an authenticated request and return the decoded JSON body."""
        method = method.upper()
        counter = itertools.count()

        def log_retry(retry_state) -> None:
            outcome = retry_state.outcome.result()
            reason = f"status {outcome.status}" if outcome.status is not None else outcome.body
            logger.warning(
                "Provider %s %s failed (%s); retrying in %.1fs (attempt %d/%d, correlation id: %s)",
                method, path, reason, retry_state.next_action.sleep,
                retry_state.attempt_number, self.max_retries, outcome.correlation_id or "-",
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=_wait_from_outcome,
            retry=retry_if_result(lambda outcome: isinstance(outcome, Retryable)),
            before_sleep=log_retry,
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            sleep=self._sleep,
        )
        outcome = retrying(lambda: self._attempt(next(counter), method, path, body, params))

        if not isinstance(outcome, Ok):
            logger.error(
                "Provider %s %s failed with %s (correlation id: %s)",
                method, path, outcome.status if outcome.status is not None else "network error",
                outcome.correlation_id or "-",
            )
            raise_for_outcome(outcome, method, path)
        return outcome.body

    def _attempt(self, attempt: int, method: str, path: str, body: dict | None, params: dict | None) -> Outcome:
        try:
            token = self.tokens.get_token()
        except AuthError as exc:
            # Credentials rejected stay fatal; an unreachable auth endpoint is a network failure
            if isinstance(exc.__cause__, httpx.TransportError):
                return classify_transport_error(exc.__cause__, attempt, self.base_delay)
            raise
        headers = {
            "Authorization": token.header_value,
            "Accept": "application/json",
        }
        try:
            resp = self._http.request(method, path, headers=headers, json=body, params=params)
        except httpx.TransportError as exc:
            return classify_transport_error(exc, attempt, self.base_delay)

        outcome = classify_response(resp, attempt, self.base_delay, self.correlation_header, self.max_retry_after)
        if isinstance(outcome, Retryable) and outcome.status == 401:
            logger.info("Provider token rejected for %s %s; re-authenticating", method, path)
            self.tokens.invalidate()
        return outcome

    # --- Endpoints ---

    def get_stock_page(self, advertiser_id: str, page: int = 1, page_size: int = 100) -> dict:
        return self.request(
            "GET", "/stock",
            params={"advertiserId": advertiser_id, "page": page, "pageSize": page_size},
        )

    def get_vehicle(self, vehicle_id: str, advertiser_id: str | None = None) -> dict:
        params = {"advertiserId": advertiser_id} if advertiser_id else None
        return self.request("GET", f"/stock/vehicle/{vehicle_id}", params=params)

    def test_connection(self) -> bool:
        """Authenticate only. True when the credentials are accepted."""
        try:
            self.tokens.invalidate()
            self.tokens.get_token()
            return True
        except AuthError:
            logger.exception("Provider connection test failed")
            return False

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def create_provider_client(settings: Settings | None = None) -> ProviderApiClient:
    """Build a client (and its token manager) from settings."""
    settings = settings or get_settings()
    settings.validate_provider()

    http = httpx.Client(
        base_url=settings.provider_base_url,
        timeout=httpx.Timeout(settings.provider_timeout_seconds, connect=10.0),
    )
    tokens = AuthTokenManager(
        http,
        key=settings.provider_api_key,
        secret=settings.provider_api_secret,
        correlation_header=settings.provider_correlation_header,
        max_retry_after=settings.provider_max_retry_after_seconds,
    )
    logger.info(
        "Provider client initialised (environment=%s, base_url=%s)",
        settings.provider_environment, settings.provider_base_url,
    )
    return ProviderApiClient(
        http,
        tokens,
        max_retries=settings.provider_max_retries,
        base_delay=settings.provider_base_delay_seconds,
        correlation_header=settings.provider_correlation_header,
    )
