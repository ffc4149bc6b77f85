"""
Backend service registry.

Static table binding each logical backend to its address, health path and
the gateway prefixes routed to it. Built once at startup, never mutated.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from gateway.config import Settings


@dataclass(frozen=True)
class ProxyTarget:
    """One backend service the gateway forwards to."""
    name: str
    base_url: str
    health_path: str = "/health"
    prefixes: Tuple[str, ...] = ()
    native_paths: Tuple[str, ...] = ()
    monitored: bool = True

    @property
    def health_url(self) -> str:
        return f"{self.base_url}{self.health_path}"


# name -> (port field, gateway prefixes, backend-native versioned paths, monitored)
_SERVICE_LAYOUT = (
    ("user-service", "user_service", ("/api/users",), ("/api/v1/users",), True),
    ("activity-service", "activity_service", ("/api/activities",), ("/api/v1/activities",), True),
    (
        "habit-service",
        "habit_service",
        ("/api/habits", "/api/habit-logs"),
        ("/api/v1/habits", "/api/v1/habit-logs"),
        True,
    ),
    ("stat-service", "stat_service", ("/api/stats",), ("/api/v1/stats",), True),
    ("ai-service", "ai_service", ("/api/ai",), ("/api/v1/ai",), True),
    # Reserved: routed, but not part of the aggregate status page yet
    (
        "notification-service",
        "notification_service",
        ("/api/notifications",),
        ("/api/v1/notifications",),
        False,
    ),
)

# Bare auth routes go straight to the identity backend, path untouched
AUTH_PASSTHROUGH_PREFIX = "/auth"
AUTH_SERVICE = "user-service"


def _base_url(settings: Settings, field: str) -> str:
    override: Optional[str] = getattr(settings, f"{field}_url")
    if override:
        return override.rstrip("/")
    port = getattr(settings, f"{field}_port")
    return f"{settings.service_scheme}://{settings.service_host}:{port}"


def build_registry(settings: Settings) -> Dict[str, ProxyTarget]:
    """Build the immutable name -> ProxyTarget mapping from settings."""
    registry: Dict[str, ProxyTarget] = {}

    for name, field, prefixes, native_paths, monitored in _SERVICE_LAYOUT:
        registry[name] = ProxyTarget(
            name=name,
            base_url=_base_url(settings, field),
            health_path=settings.health_path,
            prefixes=prefixes,
            native_paths=native_paths,
            monitored=monitored,
        )

    return registry
