from fastapi.testclient import TestClient

from src.api.main import app


def test_health_check():
    # No context manager: the lifespan (rules + migrations) is not run.
    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "api"}


def test_routers_mounted():
    paths = {route.path for route in app.routes}
    assert "/api/analytics/session" in paths
    assert "/api/analytics/track" in paths
    assert "/api/analytics/action" in paths
    assert "/api/analytics/total" in paths
    assert "/api/admin/analytics/journeys" in paths
    assert "/api/admin/analytics/export" in paths
    assert "/api/admin/analytics/filters" in paths
    assert "/api/admin/analytics/journey/{visitor_id}" in paths
