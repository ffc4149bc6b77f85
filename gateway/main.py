"""
DailyTrackr Gateway - Main Application
Reverse-proxy front door for the DailyTrackr backend services.
"""

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway.config import settings
from gateway.api import health, proxy, metrics
from gateway.core.errors import GatewayError
from gateway.core.headers import cors_policy_headers
from gateway.core.health import health_prober
from gateway.core.logging import configure_logging
from gateway.core.redis_client import redis_client
from gateway.services.proxy import proxy_service


configure_logging(settings)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    logger.info("gateway_starting", environment=settings.environment)

    if settings.metrics_enabled:
        await redis_client.initialize()
        logger.info("metrics_store_configured", redis_url=settings.redis_url)

    for target in proxy_service.registry.values():
        logger.info(
            "backend_registered",
            service=target.name,
            url=target.base_url,
            prefixes=list(target.prefixes),
        )

    yield

    # Cleanup
    await proxy_service.close()
    await health_prober.close()
    await redis_client.close()
    logger.info("gateway_stopped")


app = FastAPI(
    title=settings.app_name,
    description="Reverse-proxy gateway for the DailyTrackr productivity services",
    version=settings.version,
    lifespan=lifespan
)

# CORS middleware (preflight); wildcard origin is never combined with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers,
    max_age=settings.cors_max_age,
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(debug=settings.debug),
        headers=dict(cors_policy_headers(settings)),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    headers = dict(cors_policy_headers(settings))
    headers.update(getattr(exc, "headers", None) or {})
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=headers,
    )


# Include routers; the proxy router holds the catch-all and must stay last
app.include_router(health.router, tags=["Health"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
app.include_router(proxy.router, tags=["Proxy"])


def run() -> None:
    """Console entry point."""
    uvicorn.run(
        "gateway.main:app",
        host=settings.gateway_host,
        port=settings.gateway_port,
        log_level=settings.log_level.lower(),
    )
