"""
Redis-backed credential store for the Proxy Service.

The store is the single source of truth for "is there a valid credential":
Redis expires keys natively, so an entry that is present is an entry that
is valid. Expiry is fixed when the key is written; reads never extend it.
"""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import CredentialStoreError


# Redis TTL sentinels
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


class CredentialStore:
    """Key/value store with per-key expiry, shared by all request handlers."""

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.logger = get_logger("proxy.credentials.store")
        self.redis: Optional[redis.Redis] = client

    async def start(self):
        """Connect to Redis and verify the connection."""
        try:
            if self.redis is None:
                self.redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=True,
                    health_check_interval=30
                )

            # Test connection
            await self.redis.ping()

            self.logger.info("Credential store started")

        except RedisError as e:
            self.logger.error("Failed to start credential store", error=str(e))
            raise CredentialStoreError(f"Failed to connect to credential store: {e}")

    async def stop(self):
        """Close the Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Credential store stopped")

    async def get(self, key: str) -> Optional[str]:
        """
        Return the stored value, or None when the key is absent.

        Never-set keys, expired keys and keys without a TTL all read as
        absent. A TTL-less value cannot have been written by this store and
        is not trusted.
        """
        client = self._client()
        try:
            # GET and TTL run in one MULTI/EXEC so the TTL always belongs to
            # the value that was read.
            async with client.pipeline(transaction=True) as pipe:
                value, ttl = await pipe.get(key).ttl(key).execute()
        except RedisError as e:
            self.logger.error("Credential store read failed", key=key, error=str(e))
            raise CredentialStoreError(f"Credential store read failed: {e}")

        if value is None or ttl == TTL_MISSING:
            return None
        if ttl == TTL_NO_EXPIRY:
            self.logger.warning("Ignoring stored credential without expiry", key=key)
            return None

        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Write the value with a fixed expiry, resetting any previous countdown."""
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        client = self._client()
        try:
            await client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            self.logger.error("Credential store write failed", key=key, error=str(e))
            raise CredentialStoreError(f"Credential store write failed: {e}")

        self.logger.debug("Stored credential", key=key, ttl=ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        """Remove the key. Returns True when something was deleted."""
        client = self._client()
        try:
            removed = await client.delete(key)
        except RedisError as e:
            self.logger.error("Credential store delete failed", key=key, error=str(e))
            raise CredentialStoreError(f"Credential store delete failed: {e}")

        return bool(removed)

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except RedisError:
            return False

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise CredentialStoreError("Credential store is not connected")
        return self.redis
