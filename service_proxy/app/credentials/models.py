"""
Credential data models for the Proxy Service.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field


DEFAULT_FAILURE_STATUS = 401


class TokenResponse(BaseModel):
    """Success body returned by the token endpoint."""
    access_token: str = Field(min_length=1)
    expires_in: int = Field(gt=0)
    token_type: Optional[str] = None
    scope: Optional[str] = None


@dataclass(frozen=True)
class IssuedCredential:
    """A bearer credential minted by the token issuer."""
    value: str = field(repr=False)
    ttl_seconds: int
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.ttl_seconds)

    @property
    def authorization(self) -> str:
        return bearer(self.value)


@dataclass(frozen=True)
class IssuerFailure:
    """Why the token issuer could not provide a credential."""
    message: str
    status_code: Optional[int] = None

    @property
    def effective_status(self) -> int:
        """HTTP status to reject the request with; only 4xx/5xx pass through."""
        if self.status_code is not None and 400 <= self.status_code < 600:
            return self.status_code
        return DEFAULT_FAILURE_STATUS


FetchResult = Union[IssuedCredential, IssuerFailure]


def bearer(value: str) -> str:
    """Format a credential as an Authorization header value."""
    return f"Bearer {value}"
