"""
Redis-based distributed lock.

Used by the payout ledger so that only one payout request per driver runs
its read-validate-transfer-write sequence at a time, across every API
process.  Contention is scoped to a single driver; there is no global lock.

Implementation uses SET NX EX for acquire and a Lua script for
atomic check-and-delete on release.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

from petrotech.domain.errors import ConflictError


class LockNotAcquired(ConflictError):
    code = "lock_not_acquired"


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        lua = """
        if redis.call("get", KEYS[1]) == ARGV[1] then
            return redis.call("del", KEYS[1])
        else
            return 0
        end
        """
        await self.redis.eval(lua, 1, self.key, self.token)

    # context-manager support
    async def __aenter__(self):
        acquired = await self.acquire()
        if not acquired:
            raise LockNotAcquired(f"Operation already in progress ({self.key})")
        return self

    async def __aexit__(self, *args):
        await self.release()


def lock_factory(client: aioredis.Redis, ttl_seconds: int = 30):
    """Return ``key -> DistributedLock`` bound to *client*."""

    def _make(key: str) -> DistributedLock:
        return DistributedLock(client, key, ttl_seconds=ttl_seconds)

    return _make
