from app.core.config import PROJECT_NAME


def test_health_endpoint(client):
    """Test health endpoint"""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["app_name"] == PROJECT_NAME
