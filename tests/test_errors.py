from fastapi.testclient import TestClient
from cush.main import app
import pytest

client = TestClient(app)


def test_404_not_found(make_user):
    _, headers = make_user()
    response = client.get("/non-existent-route", headers=headers)
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "NOT_FOUND"


def test_405_method_not_allowed(make_user):
    _, headers = make_user()
    response = client.delete("/api/auth/session", headers=headers)
    assert response.status_code == 405
    assert response.json()["code"] == "METHOD_NOT_ALLOWED"


def test_422_validation_error():
    # Registration is public, so the body is validated before any auth
    response = client.post("/api/auth/register", json={"email": "not-an-email", "password": "short"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    fields = {tuple(err["loc"])[-1] for err in data["details"]}
    assert {"email", "password", "firstName", "lastName"} <= fields


def test_validation_error_structure(make_user):
    # We can define a temporary route to test validation
    from pydantic import BaseModel

    class Item(BaseModel):
        name: str
        price: int

    @app.post("/api/test-validation")
    def create_item(item: Item):
        return item

    _, headers = make_user()
    response = client.post("/api/test-validation", json={"name": "foo", "price": "invalid"}, headers=headers)
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


def test_custom_exception(make_user):
    from cush.core.exceptions import ResourceNotFoundError

    @app.get("/api/test-custom-error")
    def trigger_custom_error():
        raise ResourceNotFoundError(message="Item not found")

    _, headers = make_user()
    response = client.get("/api/test-custom-error", headers=headers)
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "Item not found"


@pytest.mark.parametrize("exc_name,status,code", [
    ("ConflictError", 409, "CONFLICT"),
    ("AuthorizationError", 403, "FORBIDDEN"),
    ("ExternalServiceError", 502, "EXTERNAL_SERVICE_ERROR"),
    ("WebhookSignatureError", 400, "INVALID_SIGNATURE"),
])
def test_error_status_mapping(make_user, exc_name, status, code):
    from cush.core import exceptions

    exc_class = getattr(exceptions, exc_name)
    path = f"/api/test-raise-{exc_name.lower()}"

    @app.get(path)
    def trigger():
        raise exc_class()

    _, headers = make_user()
    response = client.get(path, headers=headers)
    assert response.status_code == status
    assert response.json()["code"] == code
