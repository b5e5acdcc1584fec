"""
Token issuer client for the Proxy Service.

Obtains access tokens from the identity provider using the
account-credentials grant. Every problem (missing configuration, network
errors, rejected credentials, malformed responses) is returned as an
``IssuerFailure`` instead of being raised.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from shared.logging import get_logger
from ..credentials.models import FetchResult, IssuedCredential, IssuerFailure, TokenResponse

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


GRANT_TYPE = "account_credentials"
ERROR_MESSAGE_FIELDS = ("message", "reason", "error_description", "error")


class TokenIssuerClient:
    """Client for the identity provider's token endpoint."""

    def __init__(
        self,
        token_url: str,
        account_id: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.token_url = token_url
        self.account_id = account_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.transport = transport
        self.metrics = metrics
        self.logger = get_logger("proxy.token_issuer")

    def missing_settings(self) -> List[str]:
        """Names of the client credentials that are not configured."""
        settings = {
            "account_id": self.account_id,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        return [name for name, value in settings.items() if not value]

    async def fetch(self) -> FetchResult:
        """Request a fresh access token."""
        start_time = time.time()
        result = await self._fetch()
        duration = time.time() - start_time

        outcome = "success" if isinstance(result, IssuedCredential) else "failure"
        if self.metrics:
            self.metrics.increment_counter("token_fetch_total", outcome=outcome)
            self.metrics.observe_histogram("token_fetch_duration_seconds", duration)

        if isinstance(result, IssuedCredential):
            self.logger.info(
                "Issued access token",
                ttl_seconds=result.ttl_seconds,
                duration_ms=round(duration * 1000, 2)
            )
        else:
            self.logger.warning(
                "Token request failed",
                status_code=result.status_code,
                error=result.message,
                duration_ms=round(duration * 1000, 2)
            )
        return result

    async def _fetch(self) -> FetchResult:
        missing = self.missing_settings()
        if missing:
            return IssuerFailure(f"Missing client credentials: {', '.join(missing)}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.token_url,
                    params={"grant_type": GRANT_TYPE, "account_id": self.account_id},
                    auth=httpx.BasicAuth(self.client_id, self.client_secret),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            return IssuerFailure(str(e) or e.__class__.__name__)

        if not response.is_success:
            return IssuerFailure(self._error_message(response), status_code=response.status_code)

        try:
            token = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            return IssuerFailure(f"Malformed token response: {self._describe_invalid(e)}")

        return IssuedCredential(value=token.access_token, ttl_seconds=token.expires_in)

    def _error_message(self, response: httpx.Response) -> str:
        """Extract the issuer's human-readable error text."""
        try:
            body: Any = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            for field_name in ERROR_MESSAGE_FIELDS:
                value = body.get(field_name)
                if value:
                    return str(value)

        text = response.text.strip()
        return text or response.reason_phrase or f"HTTP {response.status_code}"

    @staticmethod
    def _describe_invalid(error: Exception) -> str:
        if isinstance(error, ValidationError):
            fields: Dict[str, str] = {
                ".".join(str(part) for part in item["loc"]) or "body": item["msg"]
                for item in error.errors()
            }
            return "; ".join(f"{name}: {msg}" for name, msg in fields.items())
        return "response body is not valid JSON"
