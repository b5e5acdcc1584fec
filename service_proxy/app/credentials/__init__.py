"""
Credential package for the Proxy Service.

Provides the credential models and a Redis-backed store that keeps the
single cached access token with a native TTL.
"""

from .models import IssuedCredential, IssuerFailure, TokenResponse
from .store import CredentialStore

__all__ = [
    "CredentialStore",
    "IssuedCredential",
    "IssuerFailure",
    "TokenResponse",
]
