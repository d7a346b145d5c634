import asyncio

import pytest
from fastapi.testclient import TestClient

from cush.core.exceptions import ExternalServiceError
from cush.core.security import Role
from cush.db import keys
from cush.db.redis_client import get_store
from cush.main import app
from cush.services.stats_service import compute_stats

client = TestClient(app)


def seed(store, key, record):
    asyncio.run(store.set_json(key, record))


def test_stats_on_sample_store(make_user):
    store = get_store()
    for _ in range(3):
        make_user()

    seed(store, keys.document_key("d1"), {"id": "d1", "userId": "x", "status": "pending"})
    seed(store, keys.document_key("d2"), {"id": "d2", "userId": "x", "status": "approved"})
    seed(store, keys.application_key(keys.LOAN, "l1"), {"id": "l1", "userId": "x", "status": "pending"})

    assert asyncio.run(compute_stats()) == {
        "users": 3,
        "documents": {"total": 2, "pending": 1},
        "applications": {
            "loans": {"total": 1, "pending": 1},
            "policeCertificates": {"total": 0, "pending": 0},
        },
    }


def test_index_keys_are_not_counted(make_user):
    store = get_store()
    user, _ = make_user()

    # Email pointer already exists; add the per-user and per-application lists
    asyncio.run(store.lpush(keys.user_documents_key(user["id"]), "d1"))
    asyncio.run(store.sadd(keys.user_notifications_key(user["id"]), "n1"))
    seed(store, keys.document_key("d1"), {"id": "d1", "userId": user["id"], "status": "pending"})
    seed(store, keys.application_key(keys.POLICE_CERTIFICATE, "p1"), {"id": "p1", "status": "pending_payment"})
    seed(store, keys.application_key(keys.POLICE_CERTIFICATE, "p2"), {"id": "p2", "status": "processing"})
    asyncio.run(store.lpush(keys.application_documents_key(keys.POLICE_CERTIFICATE, "p1"), "d1"))

    stats = asyncio.run(compute_stats())
    assert stats["users"] == 1
    assert stats["documents"] == {"total": 1, "pending": 1}
    assert stats["applications"]["policeCertificates"] == {"total": 2, "pending": 1}


def test_stats_fail_whole_on_corrupt_record():
    store = get_store()
    seed(store, keys.document_key("d1"), {"id": "d1", "status": "pending"})
    asyncio.run(store.set(keys.document_key("d2"), "{not json"))

    with pytest.raises(ExternalServiceError):
        asyncio.run(compute_stats())


def test_stats_endpoint_requires_admin(make_user):
    assert client.get("/api/admin/stats").status_code == 401

    _, user_headers = make_user()
    response = client.get("/api/admin/stats", headers=user_headers)
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"

    _, support_headers = make_user(role=Role.SUPPORT)
    assert client.get("/api/admin/stats", headers=support_headers).status_code == 403

    _, admin_headers = make_user(role=Role.ADMIN)
    response = client.get("/api/admin/stats", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["users"] == 3
