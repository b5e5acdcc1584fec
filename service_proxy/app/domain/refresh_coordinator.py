"""
Credential refresh coordinator for the Proxy Service.

Runs in front of every credentialed request: it reads the cached
credential from the store, fetches and stores a new one when the entry is
absent, and attaches ``Authorization: Bearer <token>`` to the request
state for downstream handlers.

Concurrent cache misses in one process share a single refresh: the first
caller starts a task, later callers await the same task and receive the
same credential or the same failure.
"""

import asyncio
from typing import TYPE_CHECKING, Dict, Optional, Union

from fastapi import Request

from shared.logging import get_logger
from shared.errors import AuthenticationError
from ..credentials.models import IssuerFailure, bearer

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..adapters.token_issuer_client import TokenIssuerClient
    from ..credentials.store import CredentialStore


AUTH_FAILURE_PREFIX = "Authentication Unsuccessful"


class RefreshCoordinator:
    """Per-request gate that keeps a valid credential in the store."""

    def __init__(
        self,
        store: "CredentialStore",
        issuer: "TokenIssuerClient",
        credential_key: str,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.issuer = issuer
        self.credential_key = credential_key
        self.metrics = metrics
        self.logger = get_logger("proxy.refresh_coordinator")
        self._inflight: Dict[str, asyncio.Task] = {}

    async def __call__(self, request: Request) -> str:
        return await self.authorize(request)

    async def authorize(self, request: Request) -> str:
        """Resolve the credential and attach it to the request state."""
        authorization = bearer(await self.get_credential())
        request.state.authorization = authorization
        return authorization

    async def get_credential(self) -> str:
        """Return a valid credential, fetching a new one when the store has none."""
        value = await self.store.get(self.credential_key)
        if value is not None:
            self._record_lookup("hit")
            return value

        self._record_lookup("miss")
        result = await self._refresh_once()
        if isinstance(result, IssuerFailure):
            raise AuthenticationError(
                f"{AUTH_FAILURE_PREFIX}: {result.message}",
                details={"issuer_status": result.status_code},
                status_code=result.effective_status
            )
        return result

    async def evict(self) -> bool:
        """Delete the cached credential so the next start fetches a fresh one."""
        removed = await self.store.delete(self.credential_key)
        if self.metrics:
            self.metrics.increment_counter("credential_evictions_total")
        self.logger.info("Evicted cached credential", key=self.credential_key, removed=removed)
        return removed

    async def _refresh_once(self) -> Union[str, IssuerFailure]:
        key = self.credential_key
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(key))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._refresh_finished(key, done))
        else:
            self.logger.debug("Joining in-flight credential refresh", key=key)

        # Shielded so a cancelled caller does not cancel the refresh for
        # every other waiter.
        return await asyncio.shield(task)

    async def _refresh(self, key: str) -> Union[str, IssuerFailure]:
        # A refresh that finished just before this one started may already
        # have written the key.
        value = await self.store.get(key)
        if value is not None:
            return value

        result = await self.issuer.fetch()
        if isinstance(result, IssuerFailure):
            return result

        await self.store.set(key, result.value, result.ttl_seconds)
        self.logger.info(
            "Refreshed cached credential",
            key=key,
            ttl_seconds=result.ttl_seconds,
            expires_at=result.expires_at.isoformat()
        )
        return result.value

    def _refresh_finished(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark store errors as retrieved when every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    def _record_lookup(self, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("credential_cache_lookups_total", result=result)
