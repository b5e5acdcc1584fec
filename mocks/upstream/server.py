"""
Mock upstream REST API that records the credential each request carried.
"""

from typing import Any, Dict, List

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from shared.logging import get_logger


class MockUpstreamServer:
    """Mock upstream API; accepts only tokens minted by the mock issuer."""

    def __init__(self, port: int = 8091, token_prefix: str = "mock-token-"):
        self.port = port
        self.token_prefix = token_prefix
        self.logger = get_logger("mock.upstream")
        self.app = FastAPI(title="Mock Upstream", version="1.0.0")

        self.users: Dict[str, Dict[str, Any]] = {
            "u-1": {"id": "u-1", "email": "jane.smith@example.com", "type": 1},
            "u-2": {"id": "u-2", "email": "john.doe@example.com", "type": 2},
        }
        self.received: List[Dict[str, Any]] = []

        self._setup_routes()

    def _setup_routes(self):
        """Set up mock upstream routes."""

        @self.app.middleware("http")
        async def require_bearer(request: Request, call_next):
            authorization = request.headers.get("Authorization", "")
            self.received.append({
                "method": request.method,
                "path": request.url.path,
                "query": request.url.query,
                "authorization": authorization,
            })
            if not authorization.startswith(f"Bearer {self.token_prefix}"):
                return JSONResponse(status_code=401, content={"code": 124, "message": "Invalid access token."})
            return await call_next(request)

        @self.app.get("/users")
        async def list_users(request: Request):
            """List users, honouring page_size."""
            page_size = int(request.query_params.get("page_size", 30))
            users = list(self.users.values())[:page_size]
            return {"page_size": page_size, "total_records": len(self.users), "users": users}

        @self.app.get("/users/{user_id}")
        async def get_user(user_id: str):
            """Get one user."""
            if user_id not in self.users:
                return JSONResponse(status_code=404, content={"code": 1001, "message": "User does not exist."})
            return self.users[user_id]

        @self.app.post("/users")
        async def create_user(request: Request):
            """Create a user from the posted JSON body."""
            payload = await request.json()
            user_id = f"u-{len(self.users) + 1}"
            self.users[user_id] = {"id": user_id, **payload.get("user_info", {})}
            return JSONResponse(status_code=201, content=self.users[user_id])

        @self.app.delete("/users/{user_id}")
        async def delete_user(user_id: str):
            """Delete a user."""
            self.users.pop(user_id, None)
            return Response(status_code=204)
