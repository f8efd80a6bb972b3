"""
API tests for the health check and JSON error handlers.
"""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from extensions import db


class TestHealth:

    def test_healthy(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json() == {"status": "healthy", "database": "connected"}

    def test_database_down(self, client):
        with patch.object(db.session, "execute",
                          side_effect=OperationalError("SELECT 1", {}, Exception("down"))):
            response = client.get("/api/health")

        assert response.status_code == 500
        assert response.get_json() == {"status": "unhealthy", "database": "disconnected"}


class TestErrorHandlers:

    def test_unknown_route(self, client):
        response = client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.get_json()["error"] == "Resource not found"

    def test_wrong_method(self, client):
        response = client.delete("/api/health")
        assert response.status_code == 405
        assert response.get_json()["error"] == "Method not allowed"
