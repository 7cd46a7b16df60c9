import json

import pytest
from redis.exceptions import ConnectionError

from storystudio.core.redis import RedisManager
from storystudio.services.submissions import KEY_PREFIX, RedisSubmissionStore
from storystudio.workers.base import JobStoreError


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.values = {}
        self.expiry = {}
        self.fail = fail

    def set(self, key, value, ex=None):
        if self.fail:
            raise ConnectionError("redis down")
        self.values[key] = value
        self.expiry[key] = ex

    def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.values.get(key)


@pytest.mark.anyio
async def test_save_then_load(parameters):
    redis = FakeRedis()
    store = RedisSubmissionStore(redis, ttl_seconds=60)

    await store.save("job-1", parameters)
    loaded = await store.load("job-1")

    key = f"{KEY_PREFIX}job-1"
    assert redis.expiry[key] == 60
    assert json.loads(redis.values[key])["storyText"] == parameters.story_text
    assert loaded == parameters


@pytest.mark.anyio
async def test_load_missing_returns_none():
    store = RedisSubmissionStore(FakeRedis())

    assert await store.load("ghost") is None


@pytest.mark.anyio
async def test_redis_outage(parameters):
    store = RedisSubmissionStore(FakeRedis(fail=True))

    with pytest.raises(JobStoreError):
        await store.save("job-1", parameters)
    assert await store.load("job-1") is None


@pytest.mark.parametrize("url, masked", [
    ("redis://:secret@cache:6379/0", "redis://***@cache:6379/0"),
    ("rediss://user:pw@host:6380", "rediss://***@host:6380"),
    ("redis://localhost:6379", "redis://localhost:6379"),
])
def test_redis_url_masking(url, masked):
    assert RedisManager(url).masked_url == masked
