"""
Redis-backed idempotency keys.

Used by the seat adjustment endpoint, whose increment / decrement actions
must not be applied twice when a client retries after an ambiguous failure.

Lifecycle of a key
------------------
1. ``claim``    -- SET NX EX with a pending marker and a short TTL, so a
   claim left behind by a crashed worker lapses quickly.  Only one
   request wins.
2. ``complete`` -- overwrite the marker with the serialized response, kept
   for the full TTL.  Call it only once the change is committed.
3. ``release``  -- on failure, delete the key if it still holds *our*
   pending marker (atomic via Lua), so the client may retry.
"""

from __future__ import annotations

import uuid
from typing import Optional

import redis.asyncio as aioredis

PENDING_PREFIX = "pending:"


class IdempotencyStore:
    def __init__(
        self,
        client: aioredis.Redis,
        scope: str,
        key: str,
        ttl_seconds: int = 86400,
        pending_ttl_seconds: int = 30,
    ):
        self.redis = client
        self.key = f"idempotency:{scope}:{key}"
        self.ttl = ttl_seconds
        self.pending_ttl = min(pending_ttl_seconds, ttl_seconds)
        self.marker = f"{PENDING_PREFIX}{uuid.uuid4()}"

    async def claim(self) -> bool:
        """Try to claim the key. Returns True if this request owns it."""
        return bool(
            await self.redis.set(self.key, self.marker, nx=True, ex=self.pending_ttl)
        )

    async def stored_response(self) -> Optional[str]:
        """The response recorded by the owning request, or None while pending."""
        value = await self.redis.get(self.key)
        if value is None or value.startswith(PENDING_PREFIX):
            return None
        return value

    async def complete(self, response: str) -> None:
        await self.redis.set(self.key, response, ex=self.ttl)

    async def release(self) -> None:
        """Drop the claim only if it is still our pending marker."""
        lua = """
        if redis.call("get", KEYS[1]) == ARGV[1] then
            return redis.call("del", KEYS[1])
        else
            return 0
        end
        """
        await self.redis.eval(lua, 1, self.key, self.marker)
