"""
OAuth2 client-credentials token handling for the listings provider.

One AuthTokenManager instance owns one cached bearer token. It is injected
into the API client rather than held in module state, so each process (and
each test) gets its own token lifetime.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from stocksync.services.errors import AuthError

logger = logging.getLogger(__name__)

TOKEN_REFRESH_BUFFER_SECONDS = 5 * 60
DEFAULT_EXPIRES_IN = 900


@dataclass(frozen=True)
class BearerToken:
    access_token: str
    token_type: str
    expires_at: float  # epoch seconds

    @property
    def header_value(self) -> str:
        return f"Bearer {self.access_token}"


class AuthTokenManager:
    """Obtains and caches a provider access token, refreshing before expiry."""

    def __init__(
        self,
        http: httpx.Client,
        key: str,
        secret: str,
        correlation_header: str = "X-Correlation-Id",
        clock: Callable[[], float] = time.time,
    ):
        self._http = http
        self._key = key
        self._secret = secret
        self._correlation_header = correlation_header
        self._clock = clock
        self._token: BearerToken | None = None

    def get_token(self) -> BearerToken:
        """Return the cached token, or exchange credentials for a fresh one."""
        if self._token is not None and self._clock() < self._token.expires_at - TOKEN_REFRESH_BUFFER_SECONDS:
            return self._token

        self._token = self._authenticate()
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next get_token() re-authenticates."""
        self._token = None

    @property
    def cached_token(self) -> BearerToken | None:
        return self._token

    def _authenticate(self) -> BearerToken:
        try:
            resp = self._http.post(
                "/authenticate",
                data={"key": self._key, "secret": self._secret},
                headers={"Accept": "application/json"},
            )
        except httpx.TransportError as exc:
            raise AuthError(f"Authentication request failed: {exc}") from exc

        correlation_id = resp.headers.get(self._correlation_header)
        if not resp.is_success:
            raise AuthError(
                f"Authentication failed: {resp.status_code} - {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
                correlation_id=correlation_id,
            )

        try:
            data = resp.json()
            access_token = data["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthError(
                f"Authentication response missing access_token: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
                correlation_id=correlation_id,
            ) from exc

        expires_in = data.get("expires_in") or DEFAULT_EXPIRES_IN
        token = BearerToken(
            access_token=access_token,
            token_type=data.get("token_type") or "Bearer",
            expires_at=self._clock() + float(expires_in),
        )
        logger.info("Provider authentication successful (expires in %ss)", expires_in)
        return token
