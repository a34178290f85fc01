"""
Integration tests for the Redis credential backend against a real server.

Requires environment variables:
  WABOT_REDIS_URL  — e.g. redis://localhost:6379/15 (the test identity's keys are wiped)

Run: WABOT_REDIS_URL=redis://localhost:6379/15 pytest tests/integration/ -v
"""

import os
import uuid

import pytest

from wabot.auth.codec import storage_key
from wabot.auth.redis import RedisBackend
from wabot.auth.store import CredentialStore

REDIS_URL = os.environ.get("WABOT_REDIS_URL", "")

pytestmark = pytest.mark.skipif(not REDIS_URL, reason="WABOT_REDIS_URL not set")


def make_store() -> tuple[CredentialStore, RedisBackend]:
    identity = str(uuid.uuid4())
    backend = RedisBackend.from_url(REDIS_URL, identity, prefix="wabot-test")
    return CredentialStore(identity, backend), backend


class TestRedisBackend:
    @pytest.mark.asyncio
    async def test_creds_round_trip_and_wipe(self):
        store, backend = make_store()
        try:
            state = await store.init()
            await store.save()
            await state.keys.set({"pre-key": {str(i): {"private": os.urandom(32)} for i in range(20)}})

            reloaded = CredentialStore(store.uuid, backend)
            assert (await reloaded.init()).creds["registrationId"] == state.creds["registrationId"]
            assert await backend.read(storage_key("pre-key-19")) is not None
        finally:
            await store.remove()
        assert await backend.read(storage_key("creds")) is None
