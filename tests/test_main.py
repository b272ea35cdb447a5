"""
Tests for application-level endpoints and error handling.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient


class TestRootAndHealth:
    """Tests for GET / and GET /health."""

    def test_root_banner(self, api_client: TestClient):
        response = api_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "running" in data["message"]

    def test_health_connected(self, api_client: TestClient):
        response = api_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert data["database"] == "Connected"
        assert "timestamp" in data

    def test_health_disconnected(self, api_client: TestClient):
        with patch("akshara.api.app.check_connection", return_value=False):
            response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "Disconnected"


class TestErrorEnvelope:
    """Tests for the JSON error envelope."""

    def test_unknown_route(self, api_client: TestClient):
        response = api_client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_malformed_body_is_400(self, api_client: TestClient, auth_headers):
        response = api_client.post(
            "/ai/process-text",
            headers={**auth_headers, "Content-Type": "application/json"},
            content="{not json",
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_unexpected_error_is_500(self, api_client: TestClient, auth_headers):
        from akshara.api.app import app

        client = TestClient(app, raise_server_exceptions=False)
        with patch(
            "akshara.api.routes.users._profile",
            side_effect=RuntimeError("boom"),
        ):
            response = client.get("/user/profile", headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal server error"}
