"""
Credential proxy service.

Forwards ``/api/*`` requests to the upstream REST API with the cached
access token attached by the refresh coordinator.
"""

from typing import Dict, Optional

from fastapi import Depends, Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import CredentialStoreError
from shared.metrics import MetricsCollector
from .adapters.token_issuer_client import TokenIssuerClient
from .adapters.upstream_client import UpstreamClient
from .credentials.store import CredentialStore
from .domain.refresh_coordinator import RefreshCoordinator


PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


class ProxyService(BaseService):
    """Proxy service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[CredentialStore] = None,
        issuer: Optional[TokenIssuerClient] = None,
        upstream: Optional[UpstreamClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        super().__init__("proxy", 8000, config=config, metrics=metrics)
        self.store = store if store is not None else CredentialStore(self.config.redis_url)
        self.issuer = issuer if issuer is not None else TokenIssuerClient(
            self.config.token_url,
            self.config.account_id,
            self.config.client_id,
            self.config.client_secret,
            timeout=self.config.token_timeout_seconds,
            metrics=self.metrics,
        )
        self.upstream = upstream if upstream is not None else UpstreamClient(
            self.config.upstream_base_url,
            timeout=self.config.upstream_timeout_seconds,
        )
        self.coordinator = RefreshCoordinator(
            self.store,
            self.issuer,
            self.config.credential_key,
            metrics=self.metrics,
        )

        @self.app.on_event("startup")
        async def _startup():
            await self.store.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.shutdown()

        self._setup_proxy_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.proxy_service = self

    async def shutdown(self) -> None:
        """Evict the cached credential, then release connections."""
        try:
            await self.coordinator.evict()
        except CredentialStoreError as e:
            self.logger.error("Failed to evict cached credential on shutdown", error=str(e))

        await self.store.stop()
        await self.upstream.close()
        self.logger.info("Proxy service stopped")

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check the credential store."""
        return {"redis": "ok" if await self.store.health_check() else "error"}

    def _setup_proxy_routes(self):
        """Set up proxy routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "proxy",
                "message": "Credential Proxy",
                "version": "1.0.0",
                "upstream": self.config.upstream_base_url,
            }

        @self.app.api_route(
            "/api/{path:path}",
            methods=PROXY_METHODS,
            dependencies=[Depends(self.coordinator)],
        )
        async def proxy(path: str, request: Request):
            """Relay the request upstream with the attached credential."""
            body = await request.body()
            upstream_response = await self.upstream.forward(
                request.method,
                path,
                authorization=request.state.authorization,
                query=request.url.query,
                body=body,
                headers=request.headers,
            )

            return Response(
                content=upstream_response.content,
                status_code=upstream_response.status_code,
                headers=upstream_response.headers,
            )


def create_app():
    """Create FastAPI application."""
    service = ProxyService()
    return service.app


def main():
    """Run the proxy service."""
    service = ProxyService()
    service.run()


if __name__ == "__main__":
    main()
