from fastapi.testclient import TestClient

from staybook.auth import create_access_token
from staybook.main import app


client = TestClient(app)


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("status") == "ok"


def test_request_id_echoed():
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers.get("X-Request-ID") == "abc123"
    r = client.get("/health")
    assert r.headers.get("X-Request-ID")


def test_metrics_exposed():
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "http_requests_total" in r.text


def test_me_reflects_token_claims():
    token = create_access_token("user-me-1", role="customer", phone="+919812345678", name="Asha")
    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["id"] == "user-me-1"
    assert body["role"] == "customer"
    assert body["phone"] == "+919812345678"
    assert body["name"] == "Asha"


def test_missing_and_invalid_tokens_rejected():
    r = client.get("/auth/me")
    assert r.status_code == 401
    assert r.json()["code"] == "unauthorized"
    r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.headers.get("WWW-Authenticate") == "Bearer"


def test_unknown_role_falls_back_to_customer():
    token = create_access_token("user-me-2", role="superuser")
    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["role"] == "customer"
