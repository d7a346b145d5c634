import asyncio

from fastapi.testclient import TestClient

from cush.core.config import settings
from cush.core.security import Role
from cush.main import app
from cush.services import user_service

client = TestClient(app)

ADMIN = {
    "email": "root@example.com",
    "password": "correct-horse",
    "firstName": "Root",
    "lastName": "Admin",
}


def test_admin_check_and_setup():
    assert client.get("/api/admin/check").json() == {"adminExists": False}

    response = client.post("/api/admin/setup", json={**ADMIN, "setupKey": settings.ADMIN_SETUP_KEY})
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Admin user created successfully"
    assert data["user"]["role"] == "admin"
    assert data["user"]["emailVerified"] is True
    assert "password" not in data["user"]

    assert client.get("/api/admin/check").json() == {"adminExists": True}


def test_setup_promotes_existing_user(make_user):
    user, _ = make_user(email="root@example.com")
    response = client.post("/api/admin/setup", json={**ADMIN, "setupKey": settings.ADMIN_SETUP_KEY})
    assert response.json()["message"] == "Existing user promoted to admin"
    assert asyncio.run(user_service.get_user_by_id(user["id"]))["role"] == "admin"


def test_setup_with_wrong_key_is_forbidden():
    response = client.post("/api/admin/setup", json={**ADMIN, "setupKey": "guess"})
    assert response.status_code == 403
    assert client.get("/api/admin/check").json() == {"adminExists": False}


def test_setup_without_configured_key(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_SETUP_KEY", None)
    response = client.post("/api/admin/setup", json={**ADMIN, "setupKey": "anything"})
    assert response.status_code == 500
    assert response.json()["code"] == "SETUP_NOT_CONFIGURED"


def test_setup_validates_payload():
    response = client.post("/api/admin/setup", json={"email": "root@example.com", "setupKey": "x"})
    assert response.status_code == 422


def test_user_listing_is_paginated_newest_first(make_user):
    _, headers = make_user(role=Role.ADMIN)
    for _ in range(4):
        make_user()

    page = client.get("/api/admin/users", params={"page": 1, "limit": 2}, headers=headers).json()
    assert page["pagination"] == {"total": 5, "page": 1, "limit": 2, "totalPages": 3}
    assert len(page["users"]) == 2
    assert all("password" not in u for u in page["users"])

    created = [u["createdAt"] for u in page["users"]]
    assert created == sorted(created, reverse=True)

    last = client.get("/api/admin/users", params={"page": 3, "limit": 2}, headers=headers).json()
    assert len(last["users"]) == 1


def test_user_detail_and_role_change(make_user):
    _, admin_headers = make_user(role=Role.ADMIN)
    user, user_headers = make_user()
    client.post("/api/users/activity", json={"type": "page_view"}, headers=user_headers)

    detail = client.get(f"/api/admin/users/{user['id']}", params={"activities": "true"}, headers=admin_headers).json()
    assert detail["user"]["id"] == user["id"]
    assert [a["type"] for a in detail["activities"]] == ["page_view"]

    response = client.patch(f"/api/admin/users/{user['id']}", json={"role": "support"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "support"

    assert client.patch(
        f"/api/admin/users/{user['id']}", json={"role": "overlord"}, headers=admin_headers
    ).status_code == 422
    assert client.get("/api/admin/users/missing", headers=admin_headers).status_code == 404


def test_user_management_requires_admin(make_user):
    user, headers = make_user()
    assert client.get("/api/admin/users", headers=headers).status_code == 403
    assert client.patch(f"/api/admin/users/{user['id']}", json={"role": "admin"}, headers=headers).status_code == 403


def test_activity_log_is_capped(make_user):
    user, _ = make_user()
    for i in range(105):
        asyncio.run(user_service.update_user_activity(user["id"], activity_type=f"a{i}"))

    activities = asyncio.run(user_service.get_user_activities(user["id"], limit=200))
    assert len(activities) == 100
    assert activities[0]["type"] == "a104"
