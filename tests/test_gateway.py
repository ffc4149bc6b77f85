"""
Tests for the gateway front door: route map, CORS preflight, error envelope.
"""

from fakes import make_response


class TestRouteMap:
    """Informational routing endpoints."""

    def test_debug_routes(self, client):
        response = client.get("/debug/routes")

        assert response.status_code == 200
        routes = response.json()["routes"]
        by_pattern = {route["pattern"]: route for route in routes}
        assert by_pattern["/api/habits/api/v1/habits/*"]["service"] == "habit-service"
        assert by_pattern["/api/habits/api/v1/habits/*"]["rule"] == "native"
        assert by_pattern["/auth/*"]["target"] == "http://localhost:3001"

    def test_api_docs_alias(self, client):
        assert client.get("/api/docs").json() == client.get("/debug/routes").json()


class TestCors:
    """Browser preflight and gateway-generated responses."""

    def test_preflight_answered_by_gateway(self, client, backends):
        response = client.options(
            "/api/habits/api/v1/habits",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-credentials" not in response.headers
        assert backends.requests == []

    def test_plain_options_is_proxied(self, client, backends):
        backends.serve("habit-service", lambda request: make_response(204))

        response = client.options("/api/habits/api/v1/habits")

        assert response.status_code == 204
        assert backends.last_request.method == "OPTIONS"

    def test_error_responses_carry_cors(self, client):
        response = client.get("/api/ai/api/v1/ai/daily-summary")

        assert response.status_code == 503
        assert response.headers["access-control-allow-origin"] == "*"


class TestErrorEnvelope:
    """Every gateway error uses the same JSON shape."""

    def test_unmatched_path(self, client):
        response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_methods_on_gateway_endpoints_fall_through(self, client):
        response = client.delete("/health")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "message": "Route not found",
            "error": "No backend registered for '/health'",
        }

    def test_unsupported_method_envelope_carries_cors(self, client, backends):
        response = client.request("TRACE", "/api/habits/api/v1/habits")

        assert response.status_code == 405
        assert response.json()["success"] is False
        assert response.headers["access-control-allow-origin"] == "*"
        assert "allow" in response.headers
        assert backends.requests == []
