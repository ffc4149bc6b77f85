"""
Configuration settings for the DailyTrackr Gateway.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "DailyTrackr Gateway"
    service_name: str = "dailytrackr-gateway"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = True

    # Gateway listener
    gateway_host: str = "0.0.0.0"
    gateway_port: int = 3000

    # Backend services
    service_scheme: str = "http"
    service_host: str = "localhost"
    user_service_port: int = 3001
    activity_service_port: int = 3002
    habit_service_port: int = 3003
    notification_service_port: int = 3004
    stat_service_port: int = 3005
    ai_service_port: int = 3006

    # Full base URL overrides (e.g. container hostnames)
    user_service_url: Optional[str] = None
    activity_service_url: Optional[str] = None
    habit_service_url: Optional[str] = None
    notification_service_url: Optional[str] = None
    stat_service_url: Optional[str] = None
    ai_service_url: Optional[str] = None

    health_path: str = "/health"

    # Proxy
    proxy_timeout: float = 25.0  # whole backend exchange, seconds
    health_check_timeout: float = 5.0
    max_connections: int = 100
    max_keepalive_connections: int = 10
    keepalive_expiry: float = 30.0  # seconds
    disconnect_poll_interval: float = 0.5  # seconds

    # CORS
    cors_allow_methods: List[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"]
    cors_allow_headers: List[str] = [
        "Origin", "Content-Type", "Authorization", "Accept", "X-Requested-With"
    ]
    cors_expose_headers: List[str] = ["Content-Length", "Authorization"]
    cors_max_age: int = 43200  # 12 hours

    # Redis (request metrics)
    redis_url: str = "redis://localhost:6379"
    metrics_enabled: bool = True
    redis_socket_timeout: float = 1.0
    metrics_write_budget: float = 0.05  # seconds an error response may wait on metrics

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
