from datetime import timedelta

import jwt
import pytest
from fastapi.testclient import TestClient

from cush.core.access import ADMIN_PATHS, PUBLIC_PATHS, AccessOutcome, evaluate_access, matches_path
from cush.core.config import settings
from cush.core.security import (
    Capability,
    Role,
    SessionClaims,
    create_session_token,
    decode_session_token,
    has_capability,
)
from cush.main import app

client = TestClient(app)


def claims(role=Role.USER, verified=True):
    return SessionClaims(id="u1", email="u1@example.com", role=role, email_verified=verified)


@pytest.mark.parametrize("path,session,outcome,location", [
    ("/dashboard", None, AccessOutcome.REDIRECT_LOGIN, "/login?callbackUrl=%2Fdashboard"),
    ("/api/admin/stats", None, AccessOutcome.REJECT, None),
    ("/api/auth/login", None, AccessOutcome.CONTINUE, None),
    ("/", None, AccessOutcome.CONTINUE, None),
    ("/_next/static/chunk.js", None, AccessOutcome.CONTINUE, None),
    ("/login", claims(), AccessOutcome.REDIRECT_DASHBOARD, "/dashboard"),
    ("/register", claims(), AccessOutcome.REDIRECT_DASHBOARD, "/dashboard"),
    ("/admin/users", claims(), AccessOutcome.REDIRECT_DASHBOARD, "/dashboard"),
    ("/admin/users", claims(Role.SUPPORT), AccessOutcome.REDIRECT_DASHBOARD, "/dashboard"),
    ("/admin/users", claims(Role.ADMIN), AccessOutcome.CONTINUE, None),
    ("/dashboard", claims(verified=False), AccessOutcome.REDIRECT_VERIFICATION, "/unverified-email"),
    ("/unverified-email", claims(verified=False), AccessOutcome.CONTINUE, None),
    ("/api/documents", claims(verified=False), AccessOutcome.CONTINUE, None),
    ("/dashboard", claims(), AccessOutcome.CONTINUE, None),
])
def test_evaluate_access(path, session, outcome, location):
    decision = evaluate_access(path, session)
    assert decision.outcome == outcome
    assert decision.location == location


def test_prefix_rules_respect_segment_boundaries():
    assert matches_path("/api/auth/login", ["/api/auth"])
    assert matches_path("/api/auth", ["/api/auth"])
    assert not matches_path("/api/authority", ["/api/auth"])
    assert matches_path("/static/logo.png", ["/static/"])
    # The root rule never acts as a prefix
    assert not matches_path("/dashboard", ["/"])


def test_unknown_role_has_no_capabilities():
    assert not has_capability("superuser", Capability.VIEW_STATS)
    assert has_capability("admin", Capability.VIEW_STATS)
    assert has_capability(Role.SUPPORT, Capability.REVIEW_DOCUMENTS)
    assert not has_capability(Role.SUPPORT, Capability.MANAGE_USERS)


def test_session_token_round_trip():
    token = create_session_token(claims(Role.ADMIN))
    decoded = decode_session_token(token)
    assert decoded == claims(Role.ADMIN)


def test_expired_or_tampered_token_is_no_session():
    expired = create_session_token(claims(), expires_in=timedelta(seconds=-10))
    assert decode_session_token(expired) is None

    forged = jwt.encode({"sub": "u1", "role": "admin"}, "not-the-secret", algorithm="HS256")
    assert decode_session_token(forged) is None
    assert decode_session_token("") is None
    assert decode_session_token(None) is None


def test_page_request_without_session_redirects_to_login():
    response = client.get("/dashboard", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/login?callbackUrl=%2Fdashboard"


def test_api_request_without_session_is_rejected():
    response = client.get("/api/documents")
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"


def test_session_cookie_is_accepted(make_user):
    user, headers = make_user()
    token = headers["Authorization"].split(" ", 1)[1]
    cookie_client = TestClient(app, cookies={settings.SESSION_COOKIE_NAME: token})

    response = cookie_client.get("/api/auth/session")
    assert response.json()["user"]["id"] == user["id"]


def test_public_health_endpoints():
    assert client.get("/live").json() == {"status": "alive"}
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["checks"]["store"] == "fallback"


def _public_paths():
    for rule in PUBLIC_PATHS:
        yield rule
        # The root rule matches only itself
        if rule != "/":
            yield f"{rule}/sub"


@pytest.mark.parametrize("path", list(_public_paths()))
def test_public_paths_never_redirect_to_login(path):
    assert evaluate_access(path, None).outcome != AccessOutcome.REDIRECT_LOGIN


@pytest.mark.parametrize("path", [p for rule in ADMIN_PATHS for p in (rule, f"{rule}/x/y")])
@pytest.mark.parametrize("role", [Role.USER, Role.SUPPORT])
def test_admin_paths_send_non_admins_to_dashboard(path, role):
    decision = evaluate_access(path, claims(role))
    assert decision.outcome == AccessOutcome.REDIRECT_DASHBOARD
    assert decision.location == "/dashboard"
