"""
Shared fixtures for Proxy Service tests.
"""

import asyncio
from typing import Optional

import pytest

from service_proxy.app.credentials.models import IssuedCredential
from shared.test_helpers import InMemoryCredentialStore


CREDENTIAL_KEY = "proxy:access_token"


class StubTokenIssuer:
    """
    Scripted token issuer.

    Returns the queued results in order; once the queue is empty it mints
    ``T1``, ``T2``, ... with ``default_ttl``. ``gate`` (when set) holds every
    fetch until the event fires, which lets tests pile up concurrent callers.
    """

    def __init__(self, results: Optional[list] = None, default_ttl: int = 3600):
        self._results = list(results or [])
        self.default_ttl = default_ttl
        self.calls = 0
        self.gate: Optional[asyncio.Event] = None

    async def fetch(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)

        if self._results:
            return self._results.pop(0)
        return IssuedCredential(value=f"T{self.calls}", ttl_seconds=self.default_ttl)


@pytest.fixture
def credential_key():
    """Store key used by the coordinator under test."""
    return CREDENTIAL_KEY


@pytest.fixture
def memory_store():
    """Empty in-memory credential store."""
    return InMemoryCredentialStore()


@pytest.fixture
def make_issuer():
    """Factory for scripted token issuers."""
    def _make(*results, default_ttl: int = 3600) -> StubTokenIssuer:
        return StubTokenIssuer(list(results), default_ttl=default_ttl)
    return _make
