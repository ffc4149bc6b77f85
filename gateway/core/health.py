"""
Backend health probing.

States:
- HEALTHY: health endpoint answered 2xx
- UNHEALTHY: answered, but not 2xx
- DOWN: no answer (refused, DNS failure, timeout)
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

import httpx
import structlog

from gateway.config import settings
from gateway.core.registry import ProxyTarget


logger = structlog.get_logger(__name__)


class HealthState(str, Enum):
    """Backend health classification."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DOWN = "down"


@dataclass
class HealthStatus:
    """Result of one probe."""
    service: str
    url: str
    state: HealthState
    checked_at: datetime
    status_code: Optional[int] = None

    @property
    def is_healthy(self) -> bool:
        return self.state == HealthState.HEALTHY


class HealthProber:
    """Issues bounded-timeout GETs against backend health paths. No retries."""

    def __init__(
        self,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.timeout = timeout or settings.health_check_timeout
        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=False,
            transport=transport,
        )

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def probe(self, target: ProxyTarget) -> HealthStatus:
        """Probe one backend and classify the outcome."""
        status_code = None

        try:
            response = await self.client.get(target.health_url)
            status_code = response.status_code
            state = HealthState.HEALTHY if response.is_success else HealthState.UNHEALTHY
        except httpx.HTTPError as e:
            logger.warning(
                "health_probe_failed",
                service=target.name,
                url=target.health_url,
                reason=type(e).__name__,
            )
            state = HealthState.DOWN

        return HealthStatus(
            service=target.name,
            url=target.base_url,
            state=state,
            checked_at=datetime.now(timezone.utc),
            status_code=status_code,
        )

    async def probe_all(self, targets: Iterable[ProxyTarget]) -> List[HealthStatus]:
        """Probe targets concurrently; order follows the input."""
        return list(await asyncio.gather(*(self.probe(target) for target in targets)))


# Global prober instance
health_prober = HealthProber()
