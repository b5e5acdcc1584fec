"""
Unit tests for the Proxy service app.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from service_proxy.app.adapters.upstream_client import UpstreamClient
from service_proxy.app.credentials.models import IssuerFailure
from service_proxy.app.main import ProxyService
from shared.config import get_config


class TestProxyService:
    """Test cases for ProxyService."""

    @pytest.fixture
    def upstream_requests(self):
        """Requests seen by the fake upstream."""
        return []

    @pytest.fixture
    def upstream(self, upstream_requests):
        """Upstream client backed by a mock transport."""
        def handler(request: httpx.Request) -> httpx.Response:
            upstream_requests.append(request)
            if request.url.path.endswith("/missing"):
                return httpx.Response(404, json={"code": 1001, "message": "User does not exist."})
            return httpx.Response(200, json={"path": request.url.path, "query": request.url.query.decode()})

        return UpstreamClient("https://api.example.com/v2", transport=httpx.MockTransport(handler))

    @pytest.fixture
    def config(self, credential_key):
        """Service config without real secrets."""
        return get_config("proxy", 8000, credential_key=credential_key, env="test")

    def _service(self, config, store, issuer, upstream):
        return ProxyService(config, store=store, issuer=issuer, upstream=upstream)

    def test_root_endpoint(self, config, memory_store, make_issuer, upstream):
        """Test root endpoint."""
        client = TestClient(self._service(config, memory_store, make_issuer(), upstream).app)

        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "proxy"

    def test_health_endpoint(self, config, memory_store, make_issuer, upstream):
        """Test health reports the credential store."""
        client = TestClient(self._service(config, memory_store, make_issuer(), upstream).app)

        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["dependencies"] == {"redis": "ok"}

        memory_store.available = False
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_proxy_attaches_cached_credential(self, config, memory_store, make_issuer, upstream, upstream_requests, credential_key):
        """Test two requests share one fetched credential."""
        issuer = make_issuer()
        client = TestClient(self._service(config, memory_store, issuer, upstream).app)

        first = client.get("/api/users", params={"page_size": 10})
        second = client.get("/api/users/u-1")

        assert first.status_code == 200
        assert first.json() == {"path": "/v2/users", "query": "page_size=10"}
        assert second.status_code == 200
        assert issuer.calls == 1
        assert [r.headers["Authorization"] for r in upstream_requests] == ["Bearer T1", "Bearer T1"]
        assert memory_store.peek(credential_key) == "T1"

    def test_proxy_relays_upstream_errors(self, config, memory_store, make_issuer, upstream):
        """Test upstream error status and body pass through unchanged."""
        client = TestClient(self._service(config, memory_store, make_issuer(), upstream).app)

        response = client.get("/api/users/missing")

        assert response.status_code == 404
        assert response.json() == {"code": 1001, "message": "User does not exist."}

    def test_issuer_failure_returns_json_error(self, config, memory_store, make_issuer, upstream, upstream_requests):
        """Test an issuer rejection stops the request before the upstream call."""
        issuer = make_issuer(IssuerFailure("invalid_client", status_code=400))
        client = TestClient(self._service(config, memory_store, issuer, upstream).app)

        response = client.get("/api/users")

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "AUTHENTICATION_ERROR"
        assert data["message"] == "Authentication Unsuccessful: invalid_client"
        assert data["request_id"] == response.headers["X-Request-ID"]
        assert upstream_requests == []
        assert memory_store.writes == []

    def test_issuer_failure_without_status_returns_401(self, config, memory_store, make_issuer, upstream):
        """Test failures without an issuer status fall back to 401."""
        issuer = make_issuer(IssuerFailure("Missing client credentials: client_secret"))
        client = TestClient(self._service(config, memory_store, issuer, upstream).app)

        response = client.get("/api/users")

        assert response.status_code == 401
        assert response.json()["message"] == "Authentication Unsuccessful: Missing client credentials: client_secret"

    def test_store_unavailable_returns_503(self, config, memory_store, make_issuer, upstream, upstream_requests):
        """Test a store outage fails the request instead of bypassing the cache."""
        memory_store.available = False
        issuer = make_issuer()
        client = TestClient(self._service(config, memory_store, issuer, upstream).app)

        response = client.get("/api/users")

        assert response.status_code == 503
        assert response.json()["code"] == "CREDENTIAL_STORE_ERROR"
        assert issuer.calls == 0
        assert upstream_requests == []

    def test_request_id_is_propagated(self, config, memory_store, make_issuer, upstream):
        """Test a caller supplied request ID is echoed back."""
        client = TestClient(self._service(config, memory_store, make_issuer(), upstream).app)

        response = client.get("/", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_unhandled_exception_keeps_request_id(self, config, memory_store, make_issuer, upstream):
        """Test a crashing route still returns the error body with the request ID."""
        service = self._service(config, memory_store, make_issuer(), upstream)

        @service.app.get("/boom")
        async def boom():
            raise RuntimeError("kaboom")

        client = TestClient(service.app, raise_server_exceptions=False)

        response = client.get("/boom", headers={"X-Request-ID": "req-9"})

        assert response.status_code == 500
        assert response.headers["X-Request-ID"] == "req-9"
        assert response.json() == {
            "request_id": "req-9",
            "code": "INTERNAL_ERROR",
            "message": "Internal server error",
            "details": {},
        }
        assert service.metrics.get_sample_value(
            "errors_total", {"error_type": "INTERNAL_ERROR", "service": "proxy"}
        ) == 1.0

    def test_lifecycle_starts_store_and_evicts_on_shutdown(self, config, memory_store, make_issuer, upstream, credential_key):
        """Test startup connects the store and shutdown evicts the credential."""
        service = self._service(config, memory_store, make_issuer(), upstream)

        with TestClient(service.app) as client:
            assert memory_store.started is True
            assert client.get("/api/users").status_code == 200
            assert memory_store.peek(credential_key) == "T1"

        assert memory_store.peek(credential_key) is None
        assert memory_store.deletes == [credential_key]
        assert memory_store.stopped is True

    @pytest.mark.asyncio
    async def test_shutdown_closes_store_when_eviction_fails(self, config, memory_store, make_issuer, upstream):
        """Test an eviction failure does not keep the store connection open."""
        service = self._service(config, memory_store, make_issuer(), upstream)
        memory_store.available = False

        await service.shutdown()

        assert memory_store.stopped is True

    def test_metrics_endpoint(self, config, memory_store, make_issuer, upstream):
        """Test the Prometheus endpoint exposes credential cache metrics."""
        client = TestClient(self._service(config, memory_store, make_issuer(), upstream).app)
        client.get("/api/users")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'credential_cache_lookups_total{result="miss"} 1.0' in response.text
