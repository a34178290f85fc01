"""
Redis backend: key ``<prefix>:<uuid>:<digest>``.
"""

from typing import Optional

import redis.asyncio as aioredis

DEFAULT_PREFIX = "wabot"


class RedisBackend:
    def __init__(self, client: aioredis.Redis, uuid: str, prefix: str = DEFAULT_PREFIX):
        if client.connection_pool.connection_kwargs.get("decode_responses"):
            raise ValueError("RedisBackend needs a client that returns bytes (decode_responses=False).")
        self._redis = client
        self._prefix = f"{prefix}:{uuid}:"

    @classmethod
    def from_url(cls, url: str, uuid: str, prefix: str = DEFAULT_PREFIX) -> "RedisBackend":
        return cls(aioredis.from_url(url), uuid, prefix)

    def _key(self, digest: str) -> str:
        return self._prefix + digest

    async def open(self) -> None:
        pass

    async def read(self, digest: str) -> Optional[bytes]:
        return await self._redis.get(self._key(digest))

    async def write(self, digest: str, blob: bytes) -> None:
        await self._redis.set(self._key(digest), blob)

    async def delete(self, digest: str) -> None:
        await self._redis.delete(self._key(digest))

    async def clear(self) -> None:
        keys = [key async for key in self._redis.scan_iter(match=f"{self._prefix}*")]
        if keys:
            await self._redis.delete(*keys)
