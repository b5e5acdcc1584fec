"""
Async HTTP client for the upstream REST API fronted by the Proxy Service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import httpx

from shared.logging import get_logger
from shared.errors import ExternalServiceError


FORWARDED_REQUEST_HEADERS = ("content-type", "accept")
RELAYED_RESPONSE_HEADERS = ("content-type",)


@dataclass
class UpstreamResponse:
    """Raw upstream reply, relayed to the caller unchanged."""
    status_code: int
    content: bytes
    headers: Dict[str, str]


class UpstreamClient:
    """Thin pass-through client; the caller supplies the Authorization value."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger("proxy.upstream")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def forward(
        self,
        method: str,
        path: str,
        *,
        authorization: str,
        query: Optional[str] = None,
        body: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> UpstreamResponse:
        """Send a request upstream and return its status, body and content type."""
        outgoing = {"Authorization": authorization}
        for name in FORWARDED_REQUEST_HEADERS:
            if headers and headers.get(name):
                outgoing[name] = headers[name]

        url = f"/{path.lstrip('/')}"
        if query:
            url = f"{url}?{query}"

        try:
            response = await self._client.request(method, url, content=body or None, headers=outgoing)
        except httpx.HTTPError as exc:
            self.logger.error("Upstream request failed", method=method, path=path, error=str(exc))
            raise ExternalServiceError("upstream", str(exc) or exc.__class__.__name__)

        self.logger.debug("Upstream responded", method=method, path=path, status_code=response.status_code)
        return UpstreamResponse(
            status_code=response.status_code,
            content=response.content,
            headers={
                name: response.headers[name]
                for name in RELAYED_RESPONSE_HEADERS
                if name in response.headers
            },
        )
