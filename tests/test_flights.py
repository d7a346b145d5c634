import pytest
from fastapi.testclient import TestClient

from cush.core.exceptions import ValidationError
from cush.core.security import Role
from cush.main import app
from cush.services.email_service import EmailService
from cush.services import flight_service

client = TestClient(app)

BOOKING = {
    "passengerName": "Ada Obi",
    "passengerEmail": "ada@example.com",
    "outboundFlight": "BR123",
    "departureAirport": "Murtala Muhammed International Airport",
    "departureCode": "LOS",
    "arrivalAirport": "Heathrow Airport",
    "arrivalCode": "LHR",
    "departureDate": "2026-12-01",
    "price": 640.0,
}


class RecordingEmailService(EmailService):
    def __init__(self):
        super().__init__(api_key="re_test")
        self.sent = []

    def _send_sync(self, payload):
        self.sent.append(payload)
        return {"id": "msg_1"}


def test_search_is_deterministic():
    first = flight_service.search_flights("LOS", "LHR", "2026-12-01", "business", 2)
    second = flight_service.search_flights("los", "lhr", "2026-12-01", "business", 2)
    assert first == second
    assert 3 <= len(first) <= 5
    assert all(f["departureCode"] == "LOS" and f["arrivalCode"] == "LHR" for f in first)
    assert [f["departureTime"] for f in first] == sorted(f["departureTime"] for f in first)


def test_cabin_class_scales_price():
    economy = flight_service.search_flights("LOS", "LHR", "2026-12-01", "economy")
    assert all(200 <= f["price"] <= 499 for f in economy)
    first_class = flight_service.search_flights("LOS", "LHR", "2026-12-01", "first")
    assert all(1000 <= f["price"] <= 2495 for f in first_class)


@pytest.mark.parametrize("origin,destination,date,cabin", [
    ("LOS", "LOS", "2026-12-01", "economy"),
    ("XXX", "LHR", "2026-12-01", "economy"),
    ("LAGOS", "LHR", "2026-12-01", "economy"),
    ("LOS", "LHR", "01/12/2026", "economy"),
    ("LOS", "LHR", "2026-12-01", "steerage"),
])
def test_search_rejects_bad_input(origin, destination, date, cabin):
    with pytest.raises(ValidationError):
        flight_service.search_flights(origin, destination, date, cabin)


def test_airport_search():
    assert len(flight_service.search_airports("")) == len(flight_service.AIRPORTS)
    assert [a["code"] for a in flight_service.search_airports("lagos")] == ["LOS"]
    assert [a["code"] for a in flight_service.search_airports("nigeria")] == ["LOS", "ABV", "PHC"]


def test_search_endpoint(make_user):
    _, headers = make_user()
    response = client.get("/api/flights", params={
        "from": "LOS", "to": "JFK", "departureDate": "2026-12-01", "cabinClass": "premium",
    }, headers=headers)
    assert response.status_code == 200
    assert all(f["cabinClass"] == "premium" for f in response.json()["flights"])

    assert client.get("/api/flights", params={"from": "LOS"}, headers=headers).status_code == 422


def test_booking_lifecycle(make_user):
    _, headers = make_user()

    created = client.post("/api/flights", json=BOOKING, headers=headers)
    assert created.status_code == 201
    booking = created.json()["booking"]
    assert booking["status"] == "pending"
    assert booking["bookingReference"].startswith("CU")
    assert len(booking["bookingReference"]) == 8

    listed = client.get("/api/flights", params={"type": "bookings"}, headers=headers).json()["bookings"]
    assert [b["id"] for b in listed] == [booking["id"]]

    assert client.patch(f"/api/flights/{booking['id']}", json={"action": "confirm"}, headers=headers).status_code == 422

    confirmed = client.patch(f"/api/flights/{booking['id']}", json={
        "action": "confirm", "paymentId": "pay_1", "paymentMethod": "card",
    }, headers=headers).json()["booking"]
    assert confirmed["status"] == "confirmed"
    assert confirmed["paymentId"] == "pay_1"

    titles = [n["title"] for n in client.get("/api/notifications", headers=headers).json()["notifications"]]
    assert "Flight Booked" in titles

    # Confirming twice is refused
    assert client.patch(f"/api/flights/{booking['id']}", json={
        "action": "confirm", "paymentId": "pay_2", "paymentMethod": "card",
    }, headers=headers).status_code == 422

    cancelled = client.patch(f"/api/flights/{booking['id']}", json={"action": "cancel"}, headers=headers)
    assert cancelled.json()["booking"]["status"] == "cancelled"
    again = client.patch(f"/api/flights/{booking['id']}", json={"action": "cancel"}, headers=headers)
    assert again.status_code == 200


def test_confirmation_email_uses_template(make_user, monkeypatch):
    _, headers = make_user()
    recorder = RecordingEmailService()
    monkeypatch.setattr("cush.services.email_service._email_service", recorder)

    booking = client.post("/api/flights", json=BOOKING, headers=headers).json()["booking"]
    client.patch(f"/api/flights/{booking['id']}", json={
        "action": "confirm", "paymentId": "pay_1", "paymentMethod": "card",
    }, headers=headers)

    assert recorder.sent[0]["to"] == ["ada@example.com"]
    assert recorder.sent[0]["subject"] == "Your flight LOS → LHR is confirmed"
    assert booking["bookingReference"] in recorder.sent[0]["html"]


def test_passenger_update_cannot_touch_status(make_user):
    _, headers = make_user()
    booking = client.post("/api/flights", json=BOOKING, headers=headers).json()["booking"]

    updated = client.patch(f"/api/flights/{booking['id']}", json={
        "passengerPhone": "+447700900000", "status": "confirmed",
    }, headers=headers).json()["booking"]
    assert updated["passengerPhone"] == "+447700900000"
    assert updated["status"] == "pending"


def test_bookings_are_private(make_user):
    _, owner_headers = make_user()
    _, other_headers = make_user()
    _, admin_headers = make_user(role=Role.ADMIN)
    booking = client.post("/api/flights", json=BOOKING, headers=owner_headers).json()["booking"]

    assert client.get(f"/api/flights/{booking['id']}", headers=other_headers).status_code == 403
    assert client.get(f"/api/flights/{booking['id']}", headers=admin_headers).status_code == 200
