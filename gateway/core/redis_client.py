"""
Redis client for gateway request metrics.
"""

import redis.asyncio as redis
from typing import Dict, List, Optional
from gateway.config import settings


LATENCY_SAMPLES = 1000


class RedisClient:
    """Async Redis client wrapper."""

    def __init__(self):
        self._client: Optional[redis.Redis] = None

    async def initialize(self) -> None:
        """Initialize Redis connection."""
        self._client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_timeout,
        )

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        """Get Redis client."""
        if not self._client:
            raise RuntimeError("Redis client not initialized")
        return self._client

    # Metrics
    async def record_request(
        self,
        metric: str,
        labels: str,
        service: str,
        latency_ms: float
    ) -> None:
        """Increment a counter and push a latency sample in one round trip."""
        counter_key = f"metric:{metric}:{labels}"
        latency_key = f"latency:{service}"

        async with self.client.pipeline(transaction=False) as pipe:
            pipe.incr(counter_key)
            pipe.expire(counter_key, 86400)  # 24 hours
            pipe.lpush(latency_key, str(latency_ms))
            pipe.ltrim(latency_key, 0, LATENCY_SAMPLES - 1)
            pipe.expire(latency_key, 3600)
            await pipe.execute()

    async def get_metrics(self) -> Dict[str, int]:
        """Get all counters, keyed by 'name:labels'."""
        keys = await self.client.keys("metric:*")
        metrics = {}

        for key in keys:
            value = await self.client.get(key)
            metric_name = key.replace("metric:", "", 1)
            metrics[metric_name] = int(value) if value else 0

        return metrics

    async def get_latencies(self, service: str) -> List[float]:
        """Get recorded latency samples for a service, newest first."""
        values = await self.client.lrange(f"latency:{service}", 0, -1)
        return [float(v) for v in values]

    async def reset_metrics(self) -> None:
        """Delete all counters and latency samples."""
        for pattern in ("metric:*", "latency:*"):
            keys = await self.client.keys(pattern)
            if keys:
                await self.client.delete(*keys)


# Global Redis client instance
redis_client = RedisClient()
