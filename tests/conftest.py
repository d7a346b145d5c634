import asyncio
import uuid

import pytest

from cush.core.config import settings
from cush.core.security import Role, SessionClaims, create_session_token
from cush.db.memory_store import LocalStore
from cush.db.redis_client import KeyValueStore, set_store
from cush.main import app
from cush.services import astropay_service, chat_service, email_service, payment_service, realtime_service
from cush.services import user_service

WEBHOOK_SECRET = "whsec_test_secret"
SETUP_KEY = "let-me-in"


@pytest.fixture(autouse=True)
def store(monkeypatch, tmp_path):
    """Fresh in-memory store and test-friendly settings for every test."""
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", None)
    monkeypatch.setattr(settings, "ADMIN_SETUP_KEY", SETUP_KEY)
    monkeypatch.setattr(settings, "RESEND_API_KEY", None)
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    monkeypatch.setattr(settings, "REQUIRE_EMAIL_VERIFICATION", False)

    monkeypatch.setattr(email_service, "_email_service", None)
    monkeypatch.setattr(payment_service, "_stripe_service", None)
    monkeypatch.setattr(astropay_service, "_astropay_service", None)
    monkeypatch.setattr(chat_service, "_chat_service", None)
    monkeypatch.setattr(realtime_service, "_hub", None)

    kv = KeyValueStore(LocalStore(), backend="memory")
    set_store(kv)
    yield kv
    set_store(None)
    app.dependency_overrides.clear()


def bearer(claims: SessionClaims) -> dict:
    return {"Authorization": f"Bearer {create_session_token(claims)}"}


@pytest.fixture
def make_user():
    """
    Factory: registers a user directly through the service and returns
    (public user, auth headers).
    """
    def _make(role: Role = Role.USER, email: str = None, password: str = "correct-horse", verified: bool = True):
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        user = asyncio.run(user_service.register_user(
            email=email,
            password=password,
            first_name="Test",
            last_name="User",
            role=role,
            email_verified=verified,
            send_emails=False,
        ))
        claims = SessionClaims(id=user["id"], email=user["email"], role=role, email_verified=verified)
        return user, bearer(claims)

    return _make
