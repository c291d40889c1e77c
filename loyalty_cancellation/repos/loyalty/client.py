"""
Authenticated REST access to the Salesforce org behind the loyalty program.

Shared by the ledger gateway and the line-item mirror so both reuse one
httpx client and one cached token.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from loyalty_cancellation.exceptions import LedgerGatewayError
from loyalty_cancellation.repos.loyalty.auth import (
    ClientCredentialsAuth,
    LoyaltyPlatformSettings,
    PlatformToken,
)

logger = logging.getLogger(__name__)


def soql_literal(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class PlatformRestClient:
    def __init__(
        self,
        settings: Optional[LoyaltyPlatformSettings] = None,
        http: Optional[httpx.AsyncClient] = None,
        auth: Optional[ClientCredentialsAuth] = None,
    ) -> None:
        self.settings = settings or LoyaltyPlatformSettings.from_env()
        self.http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.settings.timeout_seconds, connect=10.0
            )
        )
        self.auth = auth or ClientCredentialsAuth(self.settings, self.http)

    async def aclose(self) -> None:
        await self.http.aclose()

    def data_path(self, suffix: str) -> str:
        return f"/services/data/{self.settings.api_version}/{suffix}"

    async def _send(
        self, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        """Send an authenticated request, refreshing the token once on 401."""
        token = await self.auth.get_token()
        response = await self._request(method, token, path, **kwargs)
        if response.status_code == 401:
            logger.info("Loyalty platform token rejected, refreshing")
            token = await self.auth.get_token(force_refresh=True)
            response = await self._request(method, token, path, **kwargs)
        return response

    async def _request(
        self, method: str, token: PlatformToken, path: str, **kwargs: Any
    ) -> httpx.Response:
        url = f"{token.instance_url.rstrip('/')}{path}"
        try:
            return await self.http.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token.access_token}"},
                **kwargs,
            )
        except httpx.TimeoutException as exc:
            raise LedgerGatewayError(
                f"Loyalty platform timed out: {method} {path}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LedgerGatewayError(
                f"Loyalty platform unreachable: {exc}"
            ) from exc

    @staticmethod
    def _json_body(response: httpx.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {"text": response.text}
        if isinstance(body, list):
            # Platform errors arrive as a list of {message, errorCode}
            return {"errors": body}
        if not isinstance(body, dict):
            return {"body": body}
        return body


def error_message(body: Dict[str, Any]) -> Optional[str]:
    if body.get("message"):
        return str(body["message"])
    errors = body.get("errors") or []
    if errors and isinstance(errors[0], dict) and errors[0].get("message"):
        return str(errors[0]["message"])
    return None
