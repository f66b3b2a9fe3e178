"""
Tests for the HTTP surface (FastAPI TestClient, no oracle).

Usage:
    pytest tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.api.review_routes import get_oracle


@pytest.fixture
def client():
    app.dependency_overrides[get_oracle] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def crash_payload():
    reviews = (
        [{"text": "Great app, I use it every day", "rating": 5, "timestamp": "2025-05-02T08:00:00Z"}] * 60
        + [{"text": "App crashes on startup every time", "rating": 1, "timestamp": 1746172800}] * 40
    )
    return {"app_name": "Snap", "store": "google", "reviews": reviews}


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAnalyzeEndpoint:

    def test_analyze(self, client):
        response = client.post("/api/reviews/analyze", json=crash_payload())
        assert response.status_code == 200

        data = response.json()
        assert data["appName"] == "Snap"
        assert data["totalReviews"] == 100
        assert data["averageRating"] == 3.4
        assert data["trend"][0]["month"] == "2025-05"
        assert data["insights"][0]["metrics"]["mentions"] == 40
        assert data["insights"][0]["impact"] == "High"

    def test_camel_case_app_name(self, client):
        payload = crash_payload()
        payload["appName"] = payload.pop("app_name")
        response = client.post("/api/reviews/analyze", json=payload)
        assert response.json()["appName"] == "Snap"

    def test_no_usable_reviews(self, client):
        response = client.post("/api/reviews/analyze", json={"reviews": [{"text": "no rating"}]})
        assert response.status_code == 400

    def test_empty_reviews(self, client):
        response = client.post("/api/reviews/analyze", json={"app_name": "Snap", "reviews": []})
        assert response.status_code == 400
