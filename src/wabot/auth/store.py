"""
Encrypted credential store.

One ``CredentialStore`` owns the digest keying, the read cache and the
encryption pipeline; a ``StorageBackend`` only moves opaque bytes by digest.
Backends: wabot.auth.local, wabot.auth.mongo, wabot.auth.redis.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid as uuid_lib
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

from wabot.auth.codec import SecretCodec, storage_key
from wabot.auth.creds import init_auth_creds
from wabot.errors import InvalidIdentity, NotInitialized

logger = logging.getLogger("wabot.auth.store")

CREDS_KEY = "creds"

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


def validate_uuid(value: Union[str, uuid_lib.UUID]) -> str:
    text = str(value)
    if not _UUID_RE.match(text):
        raise InvalidIdentity(f"'{text}' is not a valid UUID.", details={"uuid": text})
    return text


class StorageBackend(Protocol):
    """Raw bytes by digest. Implementations hold no cache of their own."""

    async def open(self) -> None: ...

    async def read(self, digest: str) -> Optional[bytes]: ...

    async def write(self, digest: str, blob: bytes) -> None: ...

    async def delete(self, digest: str) -> None: ...

    async def clear(self) -> None: ...


class KeyAccessor:
    """Key material by ``(kind, id)``, handed to the transport."""

    def __init__(self, store: "CredentialStore"):
        self._store = store

    async def get(self, kind: str, ids: list[str]) -> dict[str, Any]:
        values = await asyncio.gather(*(self._store.read(f"{kind}-{id_}") for id_ in ids))
        return dict(zip(ids, values))

    async def set(self, data: dict[str, Optional[dict[str, Any]]]) -> None:
        tasks = []
        for kind, entries in data.items():
            if not entries:
                continue
            for id_, value in entries.items():
                key = f"{kind}-{id_}"
                if value is None:
                    tasks.append(self._store.delete(key))
                else:
                    tasks.append(self._store.write(key, value))
        await asyncio.gather(*tasks)


@dataclass
class AuthState:
    creds: dict[str, Any]
    keys: KeyAccessor


class CredentialStore:
    def __init__(
        self,
        uuid: Union[str, uuid_lib.UUID],
        backend: StorageBackend,
        creds_factory: Callable[[], dict[str, Any]] = init_auth_creds,
    ):
        self.uuid = validate_uuid(uuid)
        self._backend = backend
        self._codec = SecretCodec(self.uuid)
        self._creds_factory = creds_factory
        self._cache: dict[str, bytes] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._creds: Optional[dict[str, Any]] = None

    @property
    def creds(self) -> Optional[dict[str, Any]]:
        return self._creds

    def _bump(self, digest: str) -> None:
        self._generations[digest] = self._generations.get(digest, 0) + 1

    def _version(self, digest: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(digest, 0)

    async def read(self, key: str) -> Any:
        digest = storage_key(key)
        blob = self._cache.get(digest)
        if blob is None:
            version = self._version(digest)
            blob = await self._backend.read(digest)
            if blob is None:
                return None
            # a write or delete that landed during the backend read wins
            if self._version(digest) == version:
                self._cache[digest] = blob
        return self._codec.decode(blob)

    async def write(self, key: str, value: Any) -> None:
        digest = storage_key(key)
        blob = self._codec.encode(value)
        self._bump(digest)
        await self._backend.write(digest, blob)
        self._cache[digest] = blob

    async def delete(self, key: str) -> None:
        digest = storage_key(key)
        self._bump(digest)
        await self._backend.delete(digest)
        self._cache.pop(digest, None)

    async def init(self) -> AuthState:
        await self._backend.open()
        creds = await self.read(CREDS_KEY)
        if creds is None:
            logger.info(f"No stored credentials for {self.uuid}, generating fresh ones")
            creds = self._creds_factory()
        self._creds = creds
        return AuthState(creds=creds, keys=KeyAccessor(self))

    async def load_stored(self) -> Optional[dict[str, Any]]:
        """Stored credentials or None. Never generates fresh ones."""
        await self._backend.open()
        return await self.read(CREDS_KEY)

    async def save(self) -> None:
        if self._creds is None:
            raise NotInitialized()
        await self.write(CREDS_KEY, self._creds)

    async def remove(self) -> None:
        """Irreversibly wipe every record for this identity. Safe to repeat."""
        self._epoch += 1
        await self._backend.clear()
        self._cache.clear()
        self._creds = None
        logger.warning(f"Credentials for {self.uuid} removed")
