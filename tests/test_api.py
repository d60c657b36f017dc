"""Tests for the HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from conftest import applicant
from underwriter.api.app import app
from underwriter.api.deps import get_service
from underwriter.config import get_settings

MODEL = "InsuranceRiskAssessment"


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("API_KEY", "secret")
    get_settings.cache_clear()
    yield "secret"
    get_settings.cache_clear()


class TestModelRoutes:
    """Tests for model discovery."""

    def test_health(self, client):
        """Should report the service as up."""
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_list_models(self, client):
        """Should list the loaded model."""
        response = client.get("/api/models")
        assert response.status_code == 200
        assert [m["name"] for m in response.json()] == [MODEL]

    def test_get_model(self, client):
        """Should describe decisions in evaluation order."""
        response = client.get(f"/{MODEL}")
        assert response.status_code == 200
        assert [d["name"] for d in response.json()["decisions"]] == [
            "Driver Risk Score",
            "Vehicle Risk Factor",
            "Insurance Assessment",
        ]

    def test_unknown_model(self, client):
        """Should return 404 for other model names."""
        assert client.get("/CreditScoring").status_code == 404
        assert client.post("/CreditScoring", json=applicant(30, 5, 0)).status_code == 404


class TestEvaluateRoutes:
    """Tests for evaluation endpoints."""

    def test_evaluate_all(self, client):
        """Should return every decision result with the execution id header."""
        response = client.post(f"/{MODEL}", json=applicant(22, 2, 3, "Sports", 2023))

        assert response.status_code == 200
        body = response.json()
        assert body["Driver Risk Score"] == 100
        assert body["Vehicle Risk Factor"] == pytest.approx(1.5)
        assert body["Insurance Assessment"]["RiskCategory"] == "High"
        assert body["Insurance Assessment"]["BasePremium"] == 2500
        assert body["Insurance Assessment"]["Eligible"] is False
        assert len(response.headers["X-Execution-Id"]) == 8

    def test_evaluate_single_decision(self, client):
        """Should evaluate one decision from driver data alone."""
        response = client.post(f"/{MODEL}/Driver Risk Score", json=applicant(19, 1, 0))

        assert response.status_code == 200
        assert response.json() == {"Driver Risk Score": 80}

    def test_unknown_decision(self, client):
        """Should return 404 for decisions not in the model."""
        response = client.post(f"/{MODEL}/Credit Score", json=applicant(19, 1, 0))
        assert response.status_code == 404

    def test_evaluation_failure_is_422(self, client):
        """Should return the errors and partial results on failure."""
        response = client.post(f"/{MODEL}", json=applicant(30, 8, 0, "Truck", 2020))

        assert response.status_code == 422
        body = response.json()
        assert body["status"] == "FAILED"
        assert body["results"] == {"Driver Risk Score": 20}
        assert [e["kind"] for e in body["errors"]] == ["type_mismatch", "missing_dependency"]
        assert "X-Execution-Id" in response.headers

    def test_rejects_non_scalar_fields(self, client):
        """Should validate the request body."""
        response = client.post(f"/{MODEL}", json={"Driver": {"Age": [35]}})
        assert response.status_code == 422
        assert "detail" in response.json()


class TestApiKey:
    """Tests for the optional API key."""

    def test_open_without_configured_key(self, client):
        """Should allow requests when no key is configured."""
        assert client.get(f"/{MODEL}").status_code == 200

    def test_requires_configured_key(self, client, api_key):
        """Should reject requests without the configured key."""
        assert client.get(f"/{MODEL}").status_code == 401
        assert client.get(f"/{MODEL}", headers={"X-API-Key": "wrong"}).status_code == 401
        assert client.get(f"/{MODEL}", headers={"X-API-Key": api_key}).status_code == 200

    def test_health_is_public(self, client, api_key):
        """Should keep the health check open."""
        assert client.get("/api/health").status_code == 200
