import pytest


@pytest.mark.django_db
class TestHealth:
    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "no-cache" in response["Cache-Control"]

    def test_readiness(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["database"] == "up"

    def test_schema_is_public(self, client):
        response = client.get("/api/schema")
        assert response.status_code == 200
