"""
Proxy endpoints: route map and the catch-all forwarder.
"""

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel
from typing import List

from gateway.services.proxy import proxy_service


router = APIRouter()


PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


class RouteEntry(BaseModel):
    """One rewrite rule."""
    pattern: str
    rule: str
    service: str
    target: str


class RouteMapResponse(BaseModel):
    """Gateway routing table."""
    message: str
    routes: List[RouteEntry]
    note: str


@router.get("/debug/routes", response_model=RouteMapResponse)
async def route_map():
    """Routing table, longest prefix first."""
    return RouteMapResponse(
        message="Gateway route mapping",
        routes=[RouteEntry(**entry) for entry in proxy_service.rewriter.route_map()],
        note="Rules are evaluated in the order listed; the first match wins",
    )


@router.get("/api/docs", response_model=RouteMapResponse)
async def api_docs():
    """Alias of /debug/routes."""
    return await route_map()


# Catch-all proxy route
@router.api_route("/{full_path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy_request(request: Request, full_path: str) -> Response:
    """
    Proxy request to the backend bound to its prefix.

    Examples:
        GET /api/habits/api/v1/habits?active=true -> habit-service /api/v1/habits?active=true
        GET /api/activities/health -> activity-service /health
        POST /auth/login -> user-service /auth/login
    """
    return await proxy_service.forward_request(request)
