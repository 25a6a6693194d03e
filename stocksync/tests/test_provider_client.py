"""Tests for the provider API client status-code policy and retry loop."""

import httpx
import pytest

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
from stocksync.services.provider_client import (
    Fatal,
    Ok,
    ProviderApiClient,
    Retryable,
    classify_response,
    raise_for_outcome,
)


class FakeProvider:
    """MockTransport handler: answers /authenticate, replays queued API responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.auth_calls = 0
        self.api_requests = []

    def __call__(self, request):
        if request.url.path == "/authenticate":
            self.auth_calls += 1
            return httpx.Response(200, json={"access_token": f"tok-{self.auth_calls}", "expires_in": 900})
        self.api_requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FlakyAuthProvider(FakeProvider):
    """FakeProvider whose /authenticate raises the queued transport errors first."""

    def __init__(self, auth_errors, *responses):
        super().__init__(*responses)
        self.auth_errors = list(auth_errors)

    def __call__(self, request):
        if request.url.path == "/authenticate" and self.auth_errors:
            raise self.auth_errors.pop(0)
        return super().__call__(request)


def _client(provider, max_retries=3, base_delay=1.0, **kwargs):
    sleeps = []
    http = httpx.Client(transport=httpx.MockTransport(provider), base_url="https://provider.test")
    tokens = AuthTokenManager(http, key="k", secret="s")
    client = ProviderApiClient(
        http, tokens, max_retries=max_retries, base_delay=base_delay, sleep=sleeps.append, **kwargs,
    )
    return client, sleeps


class TestClassifyResponse:

    def test_success_parses_json(self):
        outcome = classify_response(httpx.Response(200, json={"a": 1}, headers={"X-Correlation-Id": "c-1"}), 0, 1.0)
        assert outcome == Ok({"a": 1}, "c-1")

    def test_empty_success_body_is_none(self):
        assert classify_response(httpx.Response(204), 0, 1.0) == Ok(None, None)

    def test_invalid_json_is_fatal(self):
        outcome = classify_response(httpx.Response(200, text="<html>"), 0, 1.0)
        assert isinstance(outcome, Fatal)

    def test_401_retries_immediately(self):
        outcome = classify_response(httpx.Response(401), 2, 1.0)
        assert isinstance(outcome, Retryable)
        assert outcome.delay == 0.0

    def test_429_honours_retry_after(self):
        outcome = classify_response(httpx.Response(429, headers={"Retry-After": "7"}), 0, 1.0)
        assert outcome.delay == 7.0

    def test_429_retry_after_is_capped(self):
        response = httpx.Response(429, headers={"Retry-After": "86400"})
        assert classify_response(response, 0, 1.0).delay == 60.0
        assert classify_response(response, 0, 1.0, max_retry_after=30.0).delay == 30.0

    def test_429_without_retry_after_backs_off_linearly(self):
        assert classify_response(httpx.Response(429), 0, 1.5).delay == 1.5
        assert classify_response(httpx.Response(429), 2, 1.5).delay == 4.5

    def test_503_waits_at_least_two_seconds(self):
        assert classify_response(httpx.Response(503), 0, 1.0).delay == 2.0
        assert classify_response(httpx.Response(503), 3, 1.0).delay == 4.0

    @pytest.mark.parametrize("status", [400, 403, 404, 500, 502])
    def test_other_errors_are_fatal(self, status):
        assert isinstance(classify_response(httpx.Response(status), 0, 1.0), Fatal)


class TestRaiseForOutcome:

    def test_ok_does_not_raise(self):
        raise_for_outcome(Ok({}), "GET", "/stock")

    @pytest.mark.parametrize("outcome,error", [
        (Fatal(400, "bad"), BadRequestError),
        (Fatal(403, "no"), ForbiddenError),
        (Fatal(500, "oops"), ApiError),
        (Retryable(401, 0.0), AuthError),
        (Retryable(429, 1.0), RateLimitError),
        (Retryable(503, 2.0), ServiceUnavailableError),
        (Retryable(None, 1.0, "ConnectError: refused"), ProviderConnectionError),
    ])
    def test_maps_to_taxonomy(self, outcome, error):
        with pytest.raises(error):
            raise_for_outcome(outcome, "GET", "/stock")


class TestRequest:

    def test_success_sends_bearer_token(self):
        provider = FakeProvider(httpx.Response(200, json={"results": []}))
        client, sleeps = _client(provider)

        assert client.request("GET", "/stock") == {"results": []}
        assert provider.api_requests[0].headers["Authorization"] == "Bearer tok-1"
        assert provider.api_requests[0].headers["Accept"] == "application/json"
        assert sleeps == []

    def test_400_is_not_retried(self):
        provider = FakeProvider(httpx.Response(400, text="bad advertiserId"))
        client, sleeps = _client(provider)

        with pytest.raises(BadRequestError, match="bad advertiserId"):
            client.request("GET", "/stock")
        assert len(provider.api_requests) == 1
        assert sleeps == []

    def test_403_is_not_retried(self):
        provider = FakeProvider(httpx.Response(403))
        client, _ = _client(provider)
        with pytest.raises(ForbiddenError):
            client.request("GET", "/stock")
        assert len(provider.api_requests) == 1

    def test_500_raises_api_error_without_retry(self):
        provider = FakeProvider(httpx.Response(500, text="internal"))
        client, _ = _client(provider)
        with pytest.raises(ApiError) as exc_info:
            client.request("GET", "/stock")
        assert exc_info.value.status_code == 500
        assert len(provider.api_requests) == 1

    def test_429_waits_retry_after_then_succeeds(self):
        provider = FakeProvider(
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json={"ok": True}),
        )
        client, sleeps = _client(provider)

        assert client.request("GET", "/stock") == {"ok": True}
        assert sleeps == [7.0]

    def test_429_long_retry_after_is_capped(self):
        provider = FakeProvider(
            httpx.Response(429, headers={"Retry-After": "86400"}),
            httpx.Response(200, json={"ok": True}),
        )
        client, sleeps = _client(provider, max_retry_after=5.0)

        assert client.request("GET", "/stock") == {"ok": True}
        assert sleeps == [5.0]

    def test_429_linear_backoff(self):
        provider = FakeProvider(httpx.Response(429), httpx.Response(429), httpx.Response(200, json={}))
        client, sleeps = _client(provider, base_delay=1.0)
        client.request("GET", "/stock")
        assert sleeps == [1.0, 2.0]

    def test_429_exhausted_raises_rate_limit(self):
        provider = FakeProvider(*[httpx.Response(429) for _ in range(4)])
        client, sleeps = _client(provider, max_retries=3)
        with pytest.raises(RateLimitError):
            client.request("GET", "/stock")
        assert len(provider.api_requests) == 4
        assert len(sleeps) == 3

    def test_401_invalidates_and_reauthenticates_once(self):
        provider = FakeProvider(httpx.Response(401), httpx.Response(200, json={"ok": True}))
        client, _ = _client(provider)

        assert client.request("GET", "/stock") == {"ok": True}
        assert provider.auth_calls == 2
        assert provider.api_requests[0].headers["Authorization"] == "Bearer tok-1"
        assert provider.api_requests[1].headers["Authorization"] == "Bearer tok-2"

    def test_401_exhausted_raises_auth_error(self):
        provider = FakeProvider(*[httpx.Response(401) for _ in range(4)])
        client, _ = _client(provider, max_retries=3)
        with pytest.raises(AuthError):
            client.request("GET", "/stock")
        assert provider.auth_calls == 4

    def test_503_waits_at_least_two_seconds(self):
        provider = FakeProvider(
            httpx.Response(503), httpx.Response(503), httpx.Response(503),
            httpx.Response(200, json={}),
        )
        client, sleeps = _client(provider, base_delay=1.0)
        client.request("GET", "/stock")
        assert sleeps == [2.0, 2.0, 3.0]

    def test_503_exhausted_raises_service_unavailable(self):
        provider = FakeProvider(*[httpx.Response(503) for _ in range(3)])
        client, _ = _client(provider, max_retries=2)
        with pytest.raises(ServiceUnavailableError):
            client.request("GET", "/stock")

    def test_network_failure_retries_then_succeeds(self):
        provider = FakeProvider(httpx.ConnectError("refused"), httpx.Response(200, json={"ok": 1}))
        client, sleeps = _client(provider)
        assert client.request("GET", "/stock") == {"ok": 1}
        assert sleeps == [1.0]

    def test_network_failure_exhausted_raises_connection_error(self):
        provider = FakeProvider(*[httpx.ReadTimeout("slow") for _ in range(4)])
        client, _ = _client(provider)
        with pytest.raises(ProviderConnectionError) as exc_info:
            client.request("GET", "/stock")
        assert exc_info.value.status_code is None

    def test_token_refresh_network_failure_is_retried(self):
        provider = FlakyAuthProvider([httpx.ConnectError("refused")], httpx.Response(200, json={"ok": 1}))
        client, sleeps = _client(provider)

        assert client.request("GET", "/stock") == {"ok": 1}
        assert sleeps == [1.0]
        assert provider.auth_calls == 1

    def test_token_refresh_network_failure_exhausted_raises_connection_error(self):
        provider = FlakyAuthProvider([httpx.ConnectError("refused") for _ in range(4)])
        client, sleeps = _client(provider, max_retries=3)

        with pytest.raises(ProviderConnectionError):
            client.request("GET", "/stock")
        assert len(sleeps) == 3
        assert provider.api_requests == []

    def test_rejected_credentials_not_retried(self):
        def handler(request):
            return httpx.Response(401, text="invalid key")

        client, sleeps = _client(handler)
        with pytest.raises(AuthError):
            client.request("GET", "/stock")
        assert sleeps == []

    def test_error_carries_correlation_id(self):
        provider = FakeProvider(httpx.Response(400, text="bad", headers={"X-Correlation-Id": "corr-42"}))
        client, _ = _client(provider)
        with pytest.raises(BadRequestError) as exc_info:
            client.request("GET", "/stock")
        assert exc_info.value.correlation_id == "corr-42"
        assert "corr-42" in str(exc_info.value)


class TestEndpoints:

    def test_get_stock_page_params(self):
        provider = FakeProvider(httpx.Response(200, json={"results": [], "totalResults": 0}))
        client, _ = _client(provider)
        client.get_stock_page("ADV-1", page=2, page_size=50)

        request = provider.api_requests[0]
        assert request.url.path == "/stock"
        assert request.url.params["advertiserId"] == "ADV-1"
        assert request.url.params["page"] == "2"
        assert request.url.params["pageSize"] == "50"

    def test_get_vehicle_path(self):
        provider = FakeProvider(httpx.Response(200, json={"vehicle": {}}))
        client, _ = _client(provider)
        client.get_vehicle("STK-9", "ADV-1")
        assert provider.api_requests[0].url.path == "/stock/vehicle/STK-9"

    def test_connection_check(self):
        client, _ = _client(FakeProvider())
        assert client.test_connection() is True
