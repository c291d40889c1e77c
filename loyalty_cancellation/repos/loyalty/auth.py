"""OAuth client-credentials tokens for the loyalty platform."""

import asyncio
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx
from pydantic import BaseModel, SecretStr

from loyalty_cancellation.exceptions import LedgerGatewayError

logger = logging.getLogger(__name__)

DEFAULT_LOGIN_URL = "https://login.salesforce.com"
DEFAULT_API_VERSION = "v64.0"
DEFAULT_EXPIRES_IN = 600


class LoyaltyPlatformSettings(BaseModel):
    """Connection settings for the Salesforce Loyalty Management API."""

    login_url: str = DEFAULT_LOGIN_URL
    client_id: str
    client_secret: SecretStr
    api_version: str = DEFAULT_API_VERSION
    loyalty_program: str
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "LoyaltyPlatformSettings":
        """Build settings from SF_* environment variables."""
        missing = [
            name
            for name in ("SF_CLIENT_ID", "SF_CLIENT_SECRET", "SF_LOYALTY_PROGRAM")
            if not os.environ.get(name)
        ]
        if missing:
            raise LedgerGatewayError(
                f"Missing loyalty platform settings: {', '.join(missing)}"
            )
        return cls(
            login_url=os.environ.get("SF_LOGIN_URL", DEFAULT_LOGIN_URL),
            client_id=os.environ["SF_CLIENT_ID"],
            client_secret=SecretStr(os.environ["SF_CLIENT_SECRET"]),
            api_version=os.environ.get("SF_API_VERSION", DEFAULT_API_VERSION),
            loyalty_program=os.environ["SF_LOYALTY_PROGRAM"],
        )


class PlatformToken(BaseModel):
    access_token: str
    instance_url: str
    expires_in: Optional[int] = None


class TokenCache:
    """Holds one token until shortly before it expires."""

    def __init__(
        self,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        refresh_buffer_seconds: int = 60,
    ) -> None:
        self._clock = clock
        self._buffer = timedelta(seconds=refresh_buffer_seconds)
        self._token: Optional[PlatformToken] = None
        self._expires_at: Optional[datetime] = None

    def get(self) -> Optional[PlatformToken]:
        if self._token and self._expires_at:
            if self._clock() < self._expires_at - self._buffer:
                return self._token
        return None

    def set(self, token: PlatformToken) -> None:
        expires_in = (
            token.expires_in
            if token.expires_in is not None
            else DEFAULT_EXPIRES_IN
        )
        # Expire 30s early, but never keep a token for less than a minute
        ttl = max(60, expires_in - 30)
        self._token = token
        self._expires_at = self._clock() + timedelta(seconds=ttl)

    def clear(self) -> None:
        self._token = None
        self._expires_at = None


class ClientCredentialsAuth:
    """
    Fetches and caches platform tokens with the client-credentials grant.

    Concurrent callers share a single token request.
    """

    def __init__(
        self,
        settings: LoyaltyPlatformSettings,
        http: httpx.AsyncClient,
        cache: Optional[TokenCache] = None,
    ) -> None:
        self.settings = settings
        self.http = http
        self.cache = cache or TokenCache()
        self._lock = asyncio.Lock()

    async def get_token(self, force_refresh: bool = False) -> PlatformToken:
        if force_refresh:
            self.cache.clear()

        cached = self.cache.get()
        if cached:
            return cached

        async with self._lock:
            cached = self.cache.get()
            if cached:
                return cached
            token = await self._request_token()
            self.cache.set(token)
            return token

    async def _request_token(self) -> PlatformToken:
        url = f"{self.settings.login_url.rstrip('/')}/services/oauth2/token"
        logger.debug("Requesting loyalty platform token", extra={"url": url})
        try:
            response = await self.http.post(
                url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.settings.client_id,
                    "client_secret": (
                        self.settings.client_secret.get_secret_value()
                    ),
                },
            )
        except httpx.HTTPError as exc:
            raise LedgerGatewayError(
                f"Token request failed: {exc}"
            ) from exc

        if response.status_code >= 400:
            logger.error(
                "Loyalty platform token request rejected",
                extra={"status_code": response.status_code},
            )
            raise LedgerGatewayError(
                f"Token request failed: {response.status_code} "
                f"{response.text[:500]}",
                status_code=response.status_code,
            )

        return PlatformToken.model_validate(response.json())
