"""Tests for the health check endpoint."""

from fastapi.testclient import TestClient

from directupload.core.config import settings
from directupload.main import create_app


def test_health_endpoint(services, monkeypatch):
    """Test that the health endpoint returns correct response."""
    monkeypatch.setattr(settings, "SWEEPER_ENABLED", False)

    with TestClient(create_app(services)) as client:
        response = client.get("/health")

    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == settings.SERVICE_NAME
    assert data["version"] == "0.1.0"
    assert data["storage_backend"] == settings.STORAGE_BACKEND
