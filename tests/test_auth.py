"""Tests for admin login and the optional admin gate."""

import pytest
from jose import jwt

from teacher_reviews.settings import settings


def test_login_with_admin_credentials(client):
    response = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200
    data = response.json()
    assert data["user"] == {"username": "admin", "role": "admin"}
    claims = jwt.decode(data["token"], settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    assert claims["sub"] == "admin"
    assert "exp" not in claims


def test_login_with_wrong_password(client):
    response = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_admin_routes_open_by_default(client):
    body = {"name": "Dr. A", "field": "Math", "experience": 5, "bio": "x"}
    assert client.post("/api/teachers", json=body).status_code == 201


@pytest.fixture
def admin_gate(monkeypatch):
    monkeypatch.setattr(settings, "require_admin_auth", True)


def test_admin_gate_requires_token(client, admin_gate):
    body = {"name": "Dr. A", "field": "Math", "experience": 5, "bio": "x"}
    assert client.post("/api/teachers", json=body).status_code == 401

    bad = client.post("/api/teachers", json=body, headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401

    token = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"}).json()["token"]
    ok = client.post("/api/teachers", json=body, headers={"Authorization": f"Bearer {token}"})
    assert ok.status_code == 201


def test_admin_gate_leaves_student_routes_open(client, admin_gate, store):
    from teacher_reviews.store import TEACHERS
    store.write_all(TEACHERS, [{"id": "t1", "name": "Dr. A", "field": "Math", "experience": 5, "bio": "x", "photo": ""}])
    assert client.get("/api/teachers").status_code == 200
    body = {"teacherId": "t1", "comment": "Very patient teacher.", "metrics": {
        "teaching": 5, "knowledge": 5, "engagement": 4, "approachability": 5, "responsiveness": 4}}
    assert client.post("/api/reviews", json=body).status_code == 201
