"""
Test configuration and fixtures.
"""

import asyncio
import fnmatch
import pytest
import httpx
from fastapi.testclient import TestClient
from redis.exceptions import TimeoutError as RedisTimeoutError

from gateway.main import app
from gateway.api import health as health_api
from gateway.core.health import HealthProber
from gateway.core.redis_client import redis_client
from gateway.services.proxy import ServiceProxy, proxy_service
from fakes import FakeBackends


class MockPipeline:
    """Queues commands and replays them against MockRedis on execute."""

    def __init__(self, redis):
        self._redis = redis
        self._commands = []

    def __getattr__(self, name):
        def queue(*args):
            self._commands.append((name, args))
            return self
        return queue

    async def execute(self):
        results = []
        for name, args in self._commands:
            results.append(await getattr(self._redis, name)(*args))
        self._commands = []
        return results

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self._commands = []


class MockRedis:
    """Mock Redis client for testing."""

    def __init__(self):
        self._data = {}
        self._lists = {}

    def pipeline(self, transaction=True):
        return MockPipeline(self)

    async def get(self, key):
        return self._data.get(key)

    async def incr(self, key):
        val = int(self._data.get(key, 0)) + 1
        self._data[key] = str(val)
        return val

    async def expire(self, key, seconds):
        return True

    async def delete(self, *keys):
        for key in keys:
            self._data.pop(key, None)
            self._lists.pop(key, None)
        return len(keys)

    async def keys(self, pattern):
        names = list(self._data.keys()) + list(self._lists.keys())
        return [k for k in names if fnmatch.fnmatch(k, pattern)]

    # Lists
    async def lpush(self, key, *values):
        if key not in self._lists:
            self._lists[key] = []
        for v in values:
            self._lists[key].insert(0, v)
        return len(self._lists[key])

    async def ltrim(self, key, start, end):
        if key in self._lists:
            if end == -1:
                self._lists[key] = self._lists[key][start:]
            else:
                self._lists[key] = self._lists[key][start:end+1]
        return True

    async def lrange(self, key, start, end):
        if key not in self._lists:
            return []
        if end == -1:
            return self._lists[key][start:]
        return self._lists[key][start:end+1]

    async def aclose(self):
        return None


class SlowRedis(MockRedis):
    """Metrics store that stalls, then times out like an unreachable server."""

    delay = 1.0

    async def incr(self, key):
        await asyncio.sleep(self.delay)
        raise RedisTimeoutError("Timeout reading from socket")


@pytest.fixture
def mock_redis():
    """Create mock Redis instance."""
    return MockRedis()


@pytest.fixture
def slow_redis():
    """Create a Redis mock whose writes stall."""
    return SlowRedis()


@pytest.fixture
def backends(monkeypatch):
    """Route every proxied call and health check through FakeBackends."""
    fake = FakeBackends()
    transport = httpx.MockTransport(fake.handle)

    proxies = []
    for name, target in proxy_service.registry.items():
        proxy = ServiceProxy(target, transport=transport)
        proxies.append(proxy)
        monkeypatch.setitem(proxy_service.proxies, name, proxy)
    prober = HealthProber(transport=transport)
    monkeypatch.setattr(health_api, "health_prober", prober)

    fake.transport = transport
    yield fake

    # Tests may swap in their own proxies; close those too
    for proxy in proxy_service.proxies.values():
        if proxy not in proxies:
            proxies.append(proxy)

    async def close_all():
        for proxy in proxies:
            await proxy.close()
        await prober.close()

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(close_all())
    finally:
        loop.close()


@pytest.fixture
def client(mock_redis, backends, monkeypatch):
    """Create test client with mocked Redis and backends."""
    monkeypatch.setattr(redis_client, "_client", mock_redis)
    return TestClient(app)
