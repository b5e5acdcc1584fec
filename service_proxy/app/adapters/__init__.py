"""
Adapters package for the Proxy Service.

Contains HTTP client wrappers for external dependencies (token issuer,
upstream API). Adapters encapsulate base URLs, request shapes and error
mapping; they never touch the credential store.
"""

from .token_issuer_client import TokenIssuerClient
from .upstream_client import UpstreamClient, UpstreamResponse

__all__ = [
    "TokenIssuerClient",
    "UpstreamClient",
    "UpstreamResponse",
]
