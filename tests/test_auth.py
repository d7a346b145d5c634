import asyncio

import pytest
from fastapi.testclient import TestClient

from cush.core.config import settings
from cush.core.exceptions import AuthenticationError, ConflictError
from cush.db import keys
from cush.db.redis_client import get_store
from cush.main import app
from cush.services import auth_service, user_service

client = TestClient(app)

REGISTRATION = {
    "email": "Ada@Example.com",
    "password": "correct-horse",
    "firstName": "Ada",
    "lastName": "Obi",
    "country": "Nigeria",
}


@pytest.fixture(autouse=True)
def fresh_cookies():
    client.cookies.clear()


def register(**overrides):
    return client.post("/api/auth/register", json={**REGISTRATION, **overrides})


def test_register_normalizes_email_and_hides_password():
    response = register()
    assert response.status_code == 201
    data = response.json()
    assert data["user"]["email"] == "ada@example.com"
    assert data["user"]["emailVerified"] is False
    assert data["user"]["role"] == "user"
    assert "password" not in data["user"]
    # Resend is not configured in tests
    assert data["emailSkipped"] is True


def test_register_issues_verification_token():
    user = register().json()["user"]
    token = asyncio.run(get_store().get(keys.user_verification_key(user["id"])))
    assert token
    assert asyncio.run(get_store().get(keys.verification_key(token))) == user["id"]


def test_duplicate_registration_is_a_conflict_regardless_of_case():
    assert register().status_code == 201
    response = register(email="ADA@example.com ")
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


def test_concurrent_registrations_for_one_email():
    async def race():
        return await asyncio.gather(
            *[
                user_service.register_user("race@example.com", "correct-horse", "Ra", "Ce", send_emails=False)
                for _ in range(2)
            ],
            return_exceptions=True,
        )

    results = asyncio.run(race())
    assert sum(isinstance(r, ConflictError) for r in results) == 1
    assert sum(isinstance(r, dict) for r in results) == 1


def test_login_is_case_insensitive_and_sets_cookie():
    user = register().json()["user"]

    response = client.post("/api/auth/login", json={"email": "  ADA@example.COM ", "password": "correct-horse"})
    assert response.status_code == 200
    data = response.json()
    assert data["user"]["id"] == user["id"]
    assert data["user"]["name"] == "Ada Obi"
    assert data["token"]
    assert settings.SESSION_COOKIE_NAME in response.cookies

    stored = asyncio.run(user_service.get_user_by_id(user["id"]))
    assert stored["loginCount"] == 1
    assert stored["lastLoginAt"] is not None


@pytest.mark.parametrize("email,password", [
    ("ada@example.com", "wrong-password"),
    ("nobody@example.com", "correct-horse"),
])
def test_bad_credentials_share_one_message(email, password):
    register()
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"
    assert response.json()["error"] == "Invalid email or password"


def test_unverified_login_refused_when_verification_required(monkeypatch):
    register()
    monkeypatch.setattr(settings, "REQUIRE_EMAIL_VERIFICATION", True)

    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(auth_service.authenticate("ada@example.com", "correct-horse"))
    assert excinfo.value.reason == AuthenticationError.VERIFICATION_REQUIRED

    response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "correct-horse"})
    assert response.status_code == 401
    assert response.json()["code"] == "EMAIL_VERIFICATION_REQUIRED"


def test_authenticate_does_not_write():
    user = register().json()["user"]
    asyncio.run(auth_service.authenticate("ada@example.com", "correct-horse"))
    assert asyncio.run(user_service.get_user_by_id(user["id"]))["loginCount"] == 0


def test_verify_email_flow():
    user = register().json()["user"]
    token = asyncio.run(get_store().get(keys.user_verification_key(user["id"])))

    login = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "correct-horse"}).json()
    headers = {"Authorization": f"Bearer {login['token']}"}

    response = client.get("/api/auth/verify", params={"token": token}, headers=headers)
    assert response.status_code == 200
    # Refreshed cookie for the signed-in user
    assert settings.SESSION_COOKIE_NAME in response.cookies
    assert asyncio.run(user_service.get_user_by_id(user["id"]))["emailVerified"] is True

    # Tokens are single-use
    assert client.get("/api/auth/verify", params={"token": token}).status_code == 422


def test_resend_verification_replaces_token():
    user = register().json()["user"]
    first = asyncio.run(get_store().get(keys.user_verification_key(user["id"])))

    response = client.post("/api/auth/resend-verification", json={"email": "ada@example.com"})
    assert response.status_code == 200

    second = asyncio.run(get_store().get(keys.user_verification_key(user["id"])))
    assert second != first
    assert asyncio.run(get_store().get(keys.verification_key(first))) is None


def test_resend_verification_for_unknown_email():
    response = client.post("/api/auth/resend-verification", json={"email": "ghost@example.com"})
    assert response.status_code == 404


def test_session_endpoint(make_user):
    assert client.get("/api/auth/session").json() == {"user": None}

    user, headers = make_user()
    data = client.get("/api/auth/session", headers=headers).json()
    assert data["user"]["id"] == user["id"]
    assert data["user"]["role"] == "user"


def test_logout_clears_cookie():
    response = client.post("/api/auth/logout")
    assert response.status_code == 200
    assert settings.SESSION_COOKIE_NAME in response.headers.get("set-cookie", "")


def test_activity_heartbeat(make_user):
    user, headers = make_user()
    response = client.post("/api/users/activity", json={"type": "page_view"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["activity"]["type"] == "page_view"

    activities = asyncio.run(user_service.get_user_activities(user["id"]))
    assert [a["type"] for a in activities] == ["page_view"]
