from fastapi.testclient import TestClient

from bucketgate.main import app


def test_health_endpoint_returns_ok(restore_settings):
    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert "time" in body
