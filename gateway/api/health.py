"""
Health and status endpoints.
"""

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from gateway.config import settings
from gateway.core.health import health_prober
from gateway.services.proxy import proxy_service


router = APIRouter()


class ServiceHealth(BaseModel):
    """Backend entry on the aggregate status page."""
    url: str
    status: str


class GatewayStatusResponse(BaseModel):
    """Aggregate gateway status."""
    service: str
    status: str
    version: str
    healthy_services: int
    total_services: int
    services: Dict[str, ServiceHealth]
    message: str


class HealthResponse(BaseModel):
    """Gateway liveness."""
    status: str
    service: str
    version: str


class BackendStatus(BaseModel):
    """One row of the backend health table."""
    service: str
    url: str
    status: str
    status_code: Optional[int] = None
    checked_at: datetime


class StatusTableResponse(BaseModel):
    """Per-backend health table."""
    healthy_services: int
    total_services: int
    services: List[BackendStatus]


def _monitored_targets():
    return [t for t in proxy_service.registry.values() if t.monitored]


@router.get("/", response_model=GatewayStatusResponse)
async def gateway_status():
    """Gateway status with a live probe of every monitored backend."""
    results = await health_prober.probe_all(_monitored_targets())

    services = {
        result.service: ServiceHealth(url=result.url, status=result.state.value)
        for result in results
    }
    healthy = sum(1 for result in results if result.is_healthy)

    return GatewayStatusResponse(
        service=settings.service_name,
        status="healthy",
        version=settings.version,
        healthy_services=healthy,
        total_services=len(results),
        services=services,
        message=f"{settings.app_name} is running",
    )


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Gateway liveness, independent of backend state."""
    return HealthResponse(
        status="healthy",
        service=settings.service_name,
        version=settings.version,
    )


@router.get("/api/status", response_model=StatusTableResponse)
async def backend_status():
    """Health table for every registered backend, reserved ones included."""
    results = await health_prober.probe_all(proxy_service.registry.values())

    return StatusTableResponse(
        healthy_services=sum(1 for result in results if result.is_healthy),
        total_services=len(results),
        services=[
            BackendStatus(
                service=result.service,
                url=result.url,
                status=result.state.value,
                status_code=result.status_code,
                checked_at=result.checked_at,
            )
            for result in results
        ],
    )
