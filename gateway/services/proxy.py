"""
Reverse Proxy Service.

Routes requests to backend services with:
- Prefix rewriting onto each backend's native paths
- Hop-by-hop header filtering and forwarding context
- Per-backend pooled connections and a hard exchange deadline
- Cancellation when the caller disconnects
"""

import asyncio
import time
from typing import Dict, Optional, Tuple

import httpx
import structlog
from fastapi import Request, Response
from redis.exceptions import RedisError
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect

from gateway.config import settings, Settings
from gateway.core.errors import (
    BackendTimeoutError,
    BackendUnavailableError,
    ClientDisconnectedError,
    GatewayError,
    InvalidRequestBodyError,
    ResponseReadError,
    RouteNotFoundError,
)
from gateway.core.headers import (
    HeaderList,
    add_forwarding_headers,
    apply_cors_policy,
    decode_raw_headers,
    encode_headers,
    filter_request_headers,
    filter_response_headers,
)
from gateway.core.path_rewriter import PathRewriter, RouteMatch
from gateway.core.redis_client import redis_client
from gateway.core.registry import ProxyTarget, build_registry


logger = structlog.get_logger(__name__)


class ServiceProxy:
    """
    Forwards requests to a single backend.

    Owns one pooled HTTP client for the process lifetime.
    """

    def __init__(
        self,
        target: ProxyTarget,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.target = target
        self.timeout = timeout or settings.proxy_timeout
        self.poll_interval = settings.disconnect_poll_interval
        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            limits=httpx.Limits(
                max_connections=settings.max_connections,
                max_keepalive_connections=settings.max_keepalive_connections,
                keepalive_expiry=settings.keepalive_expiry,
            ),
            follow_redirects=False,
            transport=transport,
        )
        # Only the caller's headers go upstream, not httpx's defaults
        self.client.headers.clear()

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def forward(self, request: Request, route: RouteMatch) -> Response:
        """
        Forward request to the backend and relay its response.

        Args:
            request: Incoming request
            route: Rewritten backend path for this request

        Returns:
            Backend response with filtered headers and the exact body bytes

        Raises:
            GatewayError: body unreadable, backend down, timed out, or
                response unreadable
        """
        start_time = time.perf_counter()
        log = logger.bind(
            method=request.method,
            path=request.url.path,
            service=self.target.name,
            backend_url=route.url,
        )

        try:
            body = await request.body()
        except (ClientDisconnect, RuntimeError) as e:
            self._log_failure(log, start_time, e)
            raise InvalidRequestBodyError(error=str(e)) from e

        headers = add_forwarding_headers(
            filter_request_headers(decode_raw_headers(request.headers.raw)),
            client_host=request.client.host if request.client else None,
            scheme=request.url.scheme,
            host=request.headers.get("host"),
        )

        try:
            upstream, content = await self._until_disconnect(
                request,
                asyncio.wait_for(
                    self._exchange(request.method, route.url, headers, body),
                    timeout=self.timeout,
                ),
            )

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            self._log_failure(log, start_time, e)
            await self._record_failure_metrics("requests_timeout", start_time)
            raise BackendTimeoutError(
                error="Request timed out",
                service=self.target.base_url
            ) from e

        except ResponseReadError as e:
            self._log_failure(log, start_time, e)
            await self._record_failure_metrics("requests_error", start_time)
            raise

        except ClientDisconnectedError as e:
            self._log_failure(log, start_time, e)
            raise

        except httpx.HTTPError as e:
            self._log_failure(log, start_time, e)
            await self._record_failure_metrics("requests_connection_error", start_time)
            raise BackendUnavailableError(
                error=str(e) or type(e).__name__,
                service=self.target.base_url
            ) from e

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        log.info(
            "proxy_success",
            status=upstream.status_code,
            bytes=len(content),
            elapsed_ms=round(elapsed_ms, 2),
        )
        response = self._build_response(request, upstream, content)
        # Runs after the body has been sent
        response.background = BackgroundTask(
            self._record_metrics,
            "requests_total",
            elapsed_ms,
            labels=f"service={self.target.name},status={upstream.status_code}"
        )
        return response

    async def _exchange(
        self,
        method: str,
        url: str,
        headers: HeaderList,
        body: bytes
    ) -> Tuple[httpx.Response, bytes]:
        """Send the request and read the raw (undecoded) response body."""
        upstream_request = self.client.build_request(
            method=method,
            url=url,
            headers=headers,
            content=body,
        )
        upstream = await self.client.send(upstream_request, stream=True)

        try:
            content = b"".join([chunk async for chunk in upstream.aiter_raw()])
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as e:
            raise ResponseReadError(
                error=str(e) or type(e).__name__,
                service=self.target.base_url
            ) from e
        finally:
            await upstream.aclose()

        return upstream, content

    async def _until_disconnect(self, request: Request, awaitable):
        """Await the backend call, cancelling it if the caller goes away."""
        task = asyncio.ensure_future(awaitable)

        try:
            while True:
                done, _ = await asyncio.wait({task}, timeout=self.poll_interval)
                if task in done:
                    return task.result()
                if await request.is_disconnected():
                    raise ClientDisconnectedError(service=self.target.base_url)
        finally:
            if not task.done():
                task.cancel()

    def _build_response(
        self,
        request: Request,
        upstream: httpx.Response,
        content: bytes
    ) -> Response:
        headers = filter_response_headers(upstream.headers.multi_items())
        headers = apply_cors_policy(headers, settings)

        has_length = any(name.lower() == "content-length" for name, _ in headers)
        allows_body = not (
            upstream.status_code < 200 or upstream.status_code in (204, 304)
        )
        if not has_length and allows_body and request.method != "HEAD":
            headers.append(("Content-Length", str(len(content))))

        response = Response(content=content, status_code=upstream.status_code)
        response.raw_headers = encode_headers(headers)
        return response

    def _log_failure(self, log, start_time: float, error: Exception) -> None:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        log.error(
            "proxy_failed",
            reason=type(error).__name__,
            error=str(error),
            elapsed_ms=round(elapsed_ms, 2),
        )

    async def _record_metrics(
        self,
        metric: str,
        latency_ms: float,
        labels: str = None
    ) -> None:
        """Record counters and latency; never fails the request."""
        if not settings.metrics_enabled:
            return

        try:
            await redis_client.record_request(
                metric,
                labels or f"service={self.target.name}",
                self.target.name,
                latency_ms,
            )
        except (RuntimeError, RedisError) as e:
            logger.debug("metrics_unavailable", reason=str(e))

    async def _record_failure_metrics(self, metric: str, start_time: float) -> None:
        """Record a failed call without holding the error response past the budget."""
        latency_ms = (time.perf_counter() - start_time) * 1000
        try:
            await asyncio.wait_for(
                self._record_metrics(metric, latency_ms),
                timeout=settings.metrics_write_budget,
            )
        except asyncio.TimeoutError:
            logger.debug("metrics_skipped", metric=metric, reason="write budget exceeded")


class ProxyService:
    """
    Gateway dispatcher: one ServiceProxy per registered backend.
    """

    def __init__(self, registry: Dict[str, ProxyTarget]):
        self.registry = registry
        self.rewriter = PathRewriter(registry)
        self.proxies: Dict[str, ServiceProxy] = {
            name: ServiceProxy(target) for name, target in registry.items()
        }

    @classmethod
    def from_settings(cls, config: Settings) -> "ProxyService":
        return cls(build_registry(config))

    async def close(self):
        """Close every backend client."""
        for proxy in self.proxies.values():
            await proxy.close()

    def resolve(self, path: str, query: str = "") -> RouteMatch:
        """
        Resolve an inbound path to its backend.

        Raises:
            RouteNotFoundError: no registered prefix matches
        """
        route = self.rewriter.rewrite(path, query)
        if route is None:
            raise RouteNotFoundError(error=f"No backend registered for '{path}'")
        return route

    async def forward_request(self, request: Request) -> Response:
        """Resolve and forward one inbound request."""
        # Keep percent-encoding intact on the way to the backend
        raw_path = request.scope.get("raw_path")
        path = raw_path.decode("latin-1") if raw_path else request.url.path

        try:
            route = self.resolve(path, request.url.query)
        except GatewayError:
            logger.warning("route_not_found", method=request.method, path=path)
            raise

        return await self.proxies[route.target.name].forward(request, route)


# Global proxy service instance
proxy_service = ProxyService.from_settings(settings)
