"""
Redis-based distributed lock.

Two uses:

* ``ride-command:<id>`` -- held while a lifecycle command is applied to a
  ride, so two API processes never interleave commands on the same ride.
* ``ride-monitor``      -- held by the monitor worker so only one instance
  scans for alerts per cycle.

Acquire is ``SET NX EX``; release is an atomic check-and-delete in Lua so a
holder whose TTL expired never deletes a lock now owned by someone else.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    """Raised when entering the lock context while another holder owns it."""


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    @classmethod
    def for_ride(
        cls, client: aioredis.Redis, ride_id: int, ttl_seconds: int = 10
    ) -> "DistributedLock":
        return cls(client, f"ride-command:{ride_id}", ttl_seconds)

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> None:
        """Release only if we still own the lock."""
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)

    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()
