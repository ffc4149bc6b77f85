"""
Gateway error taxonomy.

Every gateway-level failure is terminal for its request and is rendered as
a JSON body with ``success: false``.
"""

from typing import Optional

from fastapi import status


# Non-standard, but the conventional status for a caller that hung up
HTTP_499_CLIENT_CLOSED_REQUEST = 499


class GatewayError(Exception):
    """Base class for failures produced by the gateway itself."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Gateway error"

    def __init__(
        self,
        error: Optional[str] = None,
        service: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.error = error
        self.service = service
        if message:
            self.message = message
        super().__init__(error or self.message)

    def to_dict(self, debug: bool = False) -> dict:
        body = {"success": False, "message": self.message}
        if self.service:
            body["service"] = self.service
        if debug and self.error:
            body["error"] = self.error
        return body


class RouteNotFoundError(GatewayError):
    """Inbound path matches no registered prefix."""
    status_code = status.HTTP_404_NOT_FOUND
    message = "Route not found"


class InvalidRequestBodyError(GatewayError):
    """Inbound body could not be buffered."""
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request body"


class BackendUnavailableError(GatewayError):
    """Connection refused, DNS failure or other transport error."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Service temporarily unavailable"


class BackendTimeoutError(GatewayError):
    """Backend exchange exceeded the proxy deadline."""
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    message = "Service timeout"


class ResponseReadError(GatewayError):
    """Backend closed the connection mid-body."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Failed to read service response"


class ClientDisconnectedError(GatewayError):
    """Caller went away before the backend answered."""
    status_code = HTTP_499_CLIENT_CLOSED_REQUEST
    message = "Client closed request"
