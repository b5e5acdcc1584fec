"""
Mock token issuer implementing the account-credentials token endpoint.
"""

import base64
import binascii
import itertools
from typing import Optional, Tuple

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger


class MockIssuerServer:
    """Mock identity provider that mints opaque access tokens."""

    def __init__(
        self,
        port: int = 8090,
        *,
        account_id: str = "acct-123",
        client_id: str = "proxy-client",
        client_secret: str = "proxy-secret",
        expires_in: int = 3600,
    ):
        self.port = port
        self.logger = get_logger("mock.issuer")
        self.app = FastAPI(title="Mock Token Issuer", version="1.0.0")

        self.account_id = account_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.expires_in = expires_in

        self.tokens_issued = 0
        self.requests_received = 0
        # When set, every token request fails with this status and message
        self.forced_error: Optional[Tuple[int, str]] = None
        self._sequence = itertools.count(1)

        self._setup_routes()

    def _setup_routes(self):
        """Set up mock issuer routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "mock-issuer",
                "message": "Mock token issuer for the credential proxy",
                "version": "1.0.0",
                "tokens_issued": self.tokens_issued,
            }

        @self.app.post("/oauth/token")
        async def token(
            request: Request,
            grant_type: Optional[str] = Query(default=None),
            account_id: Optional[str] = Query(default=None),
        ):
            """Token endpoint."""
            self.requests_received += 1

            if self.forced_error:
                status_code, message = self.forced_error
                return self._error(status_code, message)

            if grant_type != "account_credentials":
                return self._error(400, "unsupported_grant_type")

            if not self._check_basic_auth(request.headers.get("Authorization")):
                return self._error(400, "invalid_client")

            if account_id != self.account_id:
                return self._error(400, "Invalid account_id")

            self.tokens_issued += 1
            access_token = f"mock-token-{next(self._sequence)}"
            self.logger.info("Issued mock token", tokens_issued=self.tokens_issued)

            return {
                "access_token": access_token,
                "token_type": "bearer",
                "expires_in": self.expires_in,
                "scope": "user:read:admin meeting:read:admin",
            }

    def _check_basic_auth(self, header: Optional[str]) -> bool:
        if not header or not header.startswith("Basic "):
            return False
        try:
            decoded = base64.b64decode(header[6:]).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return False
        client_id, _, client_secret = decoded.partition(":")
        return client_id == self.client_id and client_secret == self.client_secret

    def _error(self, status_code: int, message: str) -> JSONResponse:
        self.logger.warning("Rejected token request", status_code=status_code, error=message)
        return JSONResponse(status_code=status_code, content={"reason": message, "message": message})

    def run(self):
        """Run the mock issuer."""
        import uvicorn
        uvicorn.run(self.app, host="0.0.0.0", port=self.port)


if __name__ == "__main__":
    server = MockIssuerServer()
    server.run()
