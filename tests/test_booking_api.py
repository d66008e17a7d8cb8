from __future__ import annotations
import pytest

from app import create_app
from blueprints.auth.routes import reset_rate_limits
from extensions import db
from models import DailySlot, User

DAY = "2024-06-01"

@pytest.fixture()
def app():
    reset_rate_limits()
    app = create_app("test")
    with app.app_context():
        db.create_all()
        for email, name, role in (("member@example.com", "member", "MEMBER"),
                                  ("other@example.com", "other", "MEMBER"),
                                  ("admin@example.com", "admin", "ADMIN")):
            u = User(email=email, username=name, role=role)
            u.set_password("pass")
            db.session.add(u)
        db.session.commit()
    yield app

def _client(app, email="member@example.com"):
    c = app.test_client()
    r = c.post("/api/v1/auth/login", json={"email": email, "password": "pass"})
    assert r.status_code == 200, r.get_json()
    return c

def _first_slot_id(client) -> int:
    return client.get(f"/api/v1/slots?date={DAY}").get_json()["slots"][0]["id"]

def test_slots_require_login(app):
    r = app.test_client().get(f"/api/v1/slots?date={DAY}")
    assert r.status_code == 401

def test_slots_listing_initializes_day(app):
    c = _client(app)
    r = c.get(f"/api/v1/slots?date={DAY}")
    assert r.status_code == 200
    js = r.get_json()
    assert js["date"] == DAY
    assert len(js["slots"]) == 9
    first = js["slots"][0]
    assert first["start"] == "05:00" and first["end"] == "07:00"
    assert first["label"] == "5:00 AM - 7:00 AM"
    assert first["available"] == 50 and first["available_pct"] == 100.0
    assert first["level"] == "high" and first["is_full"] is False
    assert first["booked_by_me"] is False
    assert js["slots"][-1]["label"] == "9:00 PM - 11:00 PM"

def test_slots_bad_date(app):
    c = _client(app)
    r = c.get("/api/v1/slots?date=june")
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_input"

def test_book_list_cancel_flow(app):
    c = _client(app)
    slot_id = _first_slot_id(c)

    r = c.post("/api/v1/bookings", json={"slot_id": slot_id})
    assert r.status_code == 201, r.get_json()
    js = r.get_json()
    booking_id = js["booking"]["id"]
    assert len(js["booking"]["booking_code"]) == 8
    assert js["slot"]["current_bookings"] == 1
    assert js["slot"]["available"] == 49

    slots = c.get(f"/api/v1/slots?date={DAY}").get_json()["slots"]
    assert slots[0]["booked_by_me"] is True and slots[1]["booked_by_me"] is False

    items = c.get("/api/v1/bookings").get_json()["items"]
    assert [b["id"] for b in items] == [booking_id]
    assert items[0]["slot"]["date"] == DAY

    r = c.delete(f"/api/v1/bookings/{booking_id}")
    assert r.status_code == 200
    r = c.delete(f"/api/v1/bookings/{booking_id}")
    assert r.status_code == 404
    assert r.get_json()["error"] == "not_found"

    with app.app_context():
        assert db.session.get(DailySlot, slot_id).current_bookings == 0

def test_duplicate_booking_is_409(app):
    c = _client(app)
    slot_id = _first_slot_id(c)
    assert c.post("/api/v1/bookings", json={"slot_id": slot_id}).status_code == 201
    r = c.post("/api/v1/bookings", json={"slot_id": slot_id})
    assert r.status_code == 409
    assert r.get_json()["error"] == "duplicate_booking"

def test_full_slot_is_409(app):
    c = _client(app)
    slot_id = _first_slot_id(c)
    with app.app_context():
        slot = db.session.get(DailySlot, slot_id)
        slot.max_capacity = 1
        db.session.commit()
    other = _client(app, "other@example.com")
    assert other.post("/api/v1/bookings", json={"slot_id": slot_id}).status_code == 201

    r = c.post("/api/v1/bookings", json={"slot_id": slot_id})
    assert r.status_code == 409
    assert r.get_json()["error"] == "slot_full"
    slot = c.get(f"/api/v1/slots?date={DAY}").get_json()["slots"][0]
    assert slot["is_full"] is True and slot["level"] == "low"

def test_unknown_slot_is_404(app):
    c = _client(app)
    r = c.post("/api/v1/bookings", json={"slot_id": 4242})
    assert r.status_code == 404

@pytest.mark.parametrize("payload", [{}, {"slot_id": "abc"}, {"slot_id": 0}])
def test_validation_error(app, payload):
    c = _client(app)
    r = c.post("/api/v1/bookings", json=payload)
    assert r.status_code == 422
    js = r.get_json()
    assert js["error"] == "validation_error"
    assert js["detail"]

def test_idempotency_key_header_replays(app):
    c = _client(app)
    slot_id = _first_slot_id(c)
    h = {"Idempotency-Key": "tap-123"}
    r1 = c.post("/api/v1/bookings", json={"slot_id": slot_id}, headers=h)
    r2 = c.post("/api/v1/bookings", json={"slot_id": slot_id}, headers=h)
    assert r1.status_code == 201 and r2.status_code == 201
    assert r1.get_json()["booking"]["id"] == r2.get_json()["booking"]["id"]
    assert r2.get_json()["slot"]["current_bookings"] == 1

def test_member_cannot_cancel_others_booking(app):
    owner = _client(app)
    slot_id = _first_slot_id(owner)
    booking_id = owner.post("/api/v1/bookings", json={"slot_id": slot_id}).get_json()["booking"]["id"]

    other = _client(app, "other@example.com")
    r = other.delete(f"/api/v1/bookings/{booking_id}")
    assert r.status_code == 404
    assert other.get("/api/v1/bookings").get_json()["items"] == []
    with app.app_context():
        assert db.session.get(DailySlot, slot_id).current_bookings == 1
