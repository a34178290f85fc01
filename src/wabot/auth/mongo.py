"""
MongoDB backend: one document per record, ``{uuid, key, encrypted}`` with the
blob base64-encoded.
"""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any, Optional

from pymongo import ASCENDING, AsyncMongoClient

if TYPE_CHECKING:
    from pymongo.asynchronous.collection import AsyncCollection


class MongoBackend:
    def __init__(self, collection: "AsyncCollection[Any]", uuid: str):
        self._collection = collection
        self._uuid = uuid

    @classmethod
    def from_uri(cls, uri: str, uuid: str, database: str = "wabot", collection: str = "auth") -> "MongoBackend":
        client: AsyncMongoClient[Any] = AsyncMongoClient(uri)
        return cls(client[database][collection], uuid)

    async def open(self) -> None:
        await self._collection.create_index([("uuid", ASCENDING), ("key", ASCENDING)], unique=True)

    async def read(self, digest: str) -> Optional[bytes]:
        document = await self._collection.find_one({"uuid": self._uuid, "key": digest})
        if not document:
            return None
        return base64.b64decode(document["encrypted"])

    async def write(self, digest: str, blob: bytes) -> None:
        await self._collection.update_one(
            {"uuid": self._uuid, "key": digest},
            {"$set": {"encrypted": base64.b64encode(blob).decode("ascii")}},
            upsert=True,
        )

    async def delete(self, digest: str) -> None:
        await self._collection.delete_one({"uuid": self._uuid, "key": digest})

    async def clear(self) -> None:
        await self._collection.delete_many({"uuid": self._uuid})
