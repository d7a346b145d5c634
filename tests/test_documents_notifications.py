import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from cush.core.config import settings
from cush.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from cush.core.security import Role
from cush.db import keys
from cush.db.redis_client import get_store
from cush.main import app
from cush.services import document_service, notification_service, realtime_service

client = TestClient(app)

PDF = b"%PDF-1.4 test document"


def upload(headers, filename="passport.pdf", content=PDF, content_type="application/pdf", **form):
    return client.post(
        "/api/documents/upload",
        files={"file": (filename, content, content_type)},
        data=form,
        headers=headers,
    )


LOAN = {
    "loanType": "personal",
    "amount": 5000,
    "purpose": "Relocation",
    "duration": "12 months",
    "employmentStatus": "employed",
    "monthlyIncome": 2500,
}


def open_loan(headers):
    return client.post("/api/applications/loan", json=LOAN, headers=headers).json()["applicationId"]


def test_upload_stores_file_and_notifies(make_user):
    user, headers = make_user()
    loan_id = open_loan(headers)
    response = upload(headers, name="Passport", applicationId=loan_id, applicationType="loan")
    assert response.status_code == 201
    document = response.json()["document"]
    assert document["status"] == "pending"
    assert document["name"] == "Passport"
    assert document["size"] == len(PDF)

    path = Path(settings.UPLOAD_DIR) / document["storagePath"]
    assert path.read_bytes() == PDF

    store = get_store()
    assert asyncio.run(store.lrange(keys.user_documents_key(user["id"]), 0, -1)) == [document["id"]]
    assert asyncio.run(store.lrange(keys.application_documents_key("loan", loan_id), 0, -1)) == [document["id"]]

    notifications = client.get("/api/notifications", headers=headers).json()
    assert notifications["unreadCount"] == 1
    assert notifications["notifications"][0]["title"] == "Document Uploaded"


def test_upload_cannot_attach_to_someone_elses_application(make_user):
    _, owner_headers = make_user()
    attacker, attacker_headers = make_user()
    loan_id = open_loan(owner_headers)

    response = upload(attacker_headers, applicationId=loan_id, applicationType="loan")
    assert response.status_code == 403

    store = get_store()
    assert asyncio.run(store.lrange(keys.application_documents_key("loan", loan_id), 0, -1)) == []
    assert asyncio.run(store.lrange(keys.user_documents_key(attacker["id"]), 0, -1)) == []
    assert not (Path(settings.UPLOAD_DIR) / attacker["id"]).exists()


@pytest.mark.parametrize("form,status", [
    ({"applicationId": "missing", "applicationType": "loan"}, 404),
    ({"applicationId": "app-1", "applicationType": "mortgage"}, 422),
    ({"applicationId": "app-1"}, 422),
    ({"applicationType": "loan"}, 422),
])
def test_upload_rejects_bad_application_links(make_user, form, status):
    _, headers = make_user()
    response = upload(headers, **form)
    assert response.status_code == status
    assert client.get("/api/documents", headers=headers).json() == {"documents": []}


@pytest.mark.parametrize("filename,content,content_type", [
    ("empty.pdf", b"", "application/pdf"),
    ("script.sh", b"echo hi", "text/x-shellscript"),
])
def test_upload_rejects_bad_files(make_user, filename, content, content_type):
    _, headers = make_user()
    response = upload(headers, filename=filename, content=content, content_type=content_type)
    assert response.status_code == 422


def test_upload_size_limit(make_user, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 8)
    received = []
    original = document_service.upload_document

    async def recording(claims, **kwargs):
        received.append(len(kwargs["data"]))
        return await original(claims, **kwargs)

    monkeypatch.setattr(document_service, "upload_document", recording)
    _, headers = make_user()
    response = upload(headers)
    assert response.status_code == 422
    assert response.json()["details"]["maxBytes"] == 8
    # Only limit + 1 bytes are read from the upload
    assert received == [9]


def test_upload_filename_cannot_escape_user_directory(make_user):
    user, headers = make_user()
    document = upload(headers, filename="../../etc/passwd.pdf").json()["document"]
    assert document["storagePath"].startswith(f"{user['id']}/")
    assert ".." not in document["storagePath"]


def test_document_access_rules(make_user):
    owner, owner_headers = make_user()
    _, other_headers = make_user()
    _, support_headers = make_user(role=Role.SUPPORT)
    document = upload(owner_headers).json()["document"]

    assert client.get(f"/api/documents/{document['id']}", headers=owner_headers).status_code == 200
    assert client.get(f"/api/documents/{document['id']}", headers=other_headers).status_code == 403
    assert client.get(f"/api/documents/{document['id']}", headers=support_headers).status_code == 200

    download = client.get(f"/api/documents/{document['id']}/download", headers=owner_headers)
    assert download.status_code == 200
    assert download.content == PDF

    assert client.get("/api/documents", headers=other_headers).json() == {"documents": []}
    assert len(client.get("/api/documents", headers=owner_headers).json()["documents"]) == 1


def test_review_updates_status_and_notifies(make_user):
    owner, owner_headers = make_user()
    _, support_headers = make_user(role=Role.SUPPORT)
    _, user_headers = make_user()
    document = upload(owner_headers).json()["document"]

    body = {"status": "approved", "notes": "Looks good"}
    assert client.patch(f"/api/admin/documents/{document['id']}", json=body, headers=user_headers).status_code == 403

    response = client.patch(f"/api/admin/documents/{document['id']}", json=body, headers=support_headers)
    assert response.status_code == 200
    reviewed = response.json()["document"]
    assert reviewed["status"] == "approved"
    assert reviewed["reviewedBy"]
    assert reviewed["reviewedAt"]

    titles = [n["title"] for n in client.get("/api/notifications", headers=owner_headers).json()["notifications"]]
    assert "Document Approved" in titles


def test_review_rejects_unknown_status():
    with pytest.raises(ValidationError):
        asyncio.run(document_service.update_document_status("d1", "lost", reviewed_by="admin"))


def test_delete_document(make_user):
    owner, owner_headers = make_user()
    _, other_headers = make_user()
    document = upload(owner_headers).json()["document"]
    path = Path(settings.UPLOAD_DIR) / document["storagePath"]

    assert client.delete(f"/api/documents/{document['id']}", headers=other_headers).status_code == 403
    assert client.delete(f"/api/documents/{document['id']}", headers=owner_headers).status_code == 200

    assert not path.exists()
    assert asyncio.run(get_store().lrange(keys.user_documents_key(owner["id"]), 0, -1)) == []
    assert client.get(f"/api/documents/{document['id']}", headers=owner_headers).status_code == 404


def test_notification_lifecycle(make_user):
    user, headers = make_user()
    other, _ = make_user()

    first = asyncio.run(notification_service.create_notification(user["id"], "One", "first"))
    asyncio.run(notification_service.create_notification(user["id"], "Two", "second", "warning"))

    with pytest.raises(AuthorizationError):
        asyncio.run(notification_service.mark_as_read(first["id"], other["id"]))

    response = client.post(f"/api/notifications/{first['id']}/read", headers=headers)
    assert response.status_code == 200
    assert response.json()["notification"]["read"] is True
    assert client.get("/api/notifications", headers=headers).json()["unreadCount"] == 1

    assert client.post("/api/notifications/read-all", headers=headers).json()["updated"] == 1
    assert client.get("/api/notifications", headers=headers).json()["unreadCount"] == 0

    assert client.delete(f"/api/notifications/{first['id']}", headers=headers).status_code == 200
    with pytest.raises(ResourceNotFoundError):
        asyncio.run(notification_service.mark_as_read(first["id"], user["id"]))


def test_notifications_pagination(make_user):
    user, headers = make_user()
    for i in range(3):
        asyncio.run(notification_service.create_notification(user["id"], f"N{i}", "body"))

    page = client.get("/api/notifications", params={"limit": 2, "offset": 0}, headers=headers).json()
    assert len(page["notifications"]) == 2
    assert page["unreadCount"] == 3


def test_unknown_notification_type():
    with pytest.raises(ValidationError):
        asyncio.run(notification_service.create_notification("u1", "Title", "Body", "shouting"))


def test_events_queue_until_collected(make_user):
    user, headers = make_user()
    asyncio.run(realtime_service.emit_to_user(user["id"], "notification", {"n": 1}))
    asyncio.run(realtime_service.emit_to_user(user["id"], "notification", {"n": 2}))

    events = client.get("/api/socket/events", headers=headers).json()["events"]
    assert [e["data"]["n"] for e in events] == [1, 2]
    assert client.get("/api/socket/events", headers=headers).json()["events"] == []


def test_socket_flushes_queued_events(make_user):
    user, headers = make_user()
    asyncio.run(realtime_service.emit_to_user(user["id"], "notification", {"n": 1}))
    token = headers["Authorization"].split(" ", 1)[1]

    with client.websocket_connect(f"/api/socket?token={token}") as websocket:
        assert websocket.receive_json()["data"] == {"n": 1}
        websocket.send_text("ping")
        assert websocket.receive_text() == "pong"

    assert asyncio.run(realtime_service.get_pending_events(user["id"])) == []


def test_socket_rejects_missing_session():
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/api/socket?token=bogus"):
            pass
    assert excinfo.value.code == 1008
