"""
Prometheus-compatible metrics endpoints.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from redis.exceptions import RedisError
from typing import Dict

from gateway.core.redis_client import redis_client


router = APIRouter()


class MetricsResponse(BaseModel):
    """Metrics response."""
    counters: Dict[str, int]


def _unavailable(e: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "success": False,
            "message": "Metrics store unavailable",
            "error": str(e),
        },
    )


def _percentile(values: list, fraction: float) -> float:
    return values[min(int(len(values) * fraction), len(values) - 1)]


@router.get("", response_model=MetricsResponse)
async def get_metrics():
    """Get all request counters."""
    try:
        counters = await redis_client.get_metrics()
    except (RuntimeError, RedisError) as e:
        return _unavailable(e)

    return MetricsResponse(counters=counters)


@router.get("/prometheus", response_class=PlainTextResponse)
async def get_prometheus_metrics():
    """Get metrics in Prometheus format."""
    try:
        counters = await redis_client.get_metrics()
    except (RuntimeError, RedisError) as e:
        return _unavailable(e)

    lines = []

    lines.append("# HELP gateway_requests Proxied requests by outcome")
    lines.append("# TYPE gateway_requests counter")
    for name, value in sorted(counters.items()):
        # "requests_total:service=x,status=200"
        metric_name, _, labels = name.partition(":")
        if labels:
            labels = ",".join(
                f'{key}="{val}"'
                for key, _, val in (pair.partition("=") for pair in labels.split(","))
            )
            lines.append(f"gateway_{metric_name}{{{labels}}} {value}")
        else:
            lines.append(f"gateway_{metric_name} {value}")

    return "\n".join(lines) + "\n"


@router.get("/latency/{service}")
async def get_latency_stats(service: str):
    """Get latency statistics for a backend service."""
    try:
        values = await redis_client.get_latencies(service)
    except (RuntimeError, RedisError) as e:
        return _unavailable(e)

    if not values:
        return {
            "service": service,
            "samples": 0,
            "message": "No latency data available"
        }

    values.sort()
    count = len(values)

    return {
        "service": service,
        "samples": count,
        "avg_ms": round(sum(values) / count, 2),
        "p50_ms": round(_percentile(values, 0.5), 2),
        "p95_ms": round(_percentile(values, 0.95), 2),
        "p99_ms": round(_percentile(values, 0.99), 2),
        "min_ms": round(values[0], 2),
        "max_ms": round(values[-1], 2)
    }


@router.post("/reset")
async def reset_metrics():
    """Reset all metrics (for testing)."""
    try:
        await redis_client.reset_metrics()
    except (RuntimeError, RedisError) as e:
        return _unavailable(e)

    return {"message": "Metrics reset"}
