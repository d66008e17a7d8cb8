from __future__ import annotations
from datetime import date, time

import pytest
from sqlalchemy import func, update

from app import create_app
from blueprints.booking import ledger
from blueprints.booking.codes import CODE_ALPHABET
from blueprints.booking.errors import (
    DuplicateBooking, InvalidInput, NotFound, SlotFull, TransientStoreFailure,
)
from extensions import db
from models import Booking, DailySlot, User

DAY = date(2024, 6, 1)

@pytest.fixture()
def app():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

def _user(n: int) -> User:
    # хэш не нужен: пользователи здесь не логинятся
    u = User(email=f"u{n}@example.com", username=f"u{n}", password_hash="x", role="MEMBER")
    db.session.add(u)
    db.session.commit()
    return u

def _users(count: int) -> list[int]:
    users = [User(email=f"bulk{i}@example.com", username=f"bulk{i}", password_hash="x")
             for i in range(count)]
    db.session.add_all(users)
    db.session.commit()
    return [u.id for u in users]

def _live_bookings(slot_id: int) -> int:
    return db.session.query(func.count(Booking.id)).filter(Booking.slot_id == slot_id).scalar()

def _assert_counter_matches(slot_id: int):
    slot = db.session.get(DailySlot, slot_id, populate_existing=True)
    assert slot.current_bookings == _live_bookings(slot_id)
    assert 0 <= slot.current_bookings <= slot.max_capacity

# ---------- ensure_day_slots ----------
def test_ensure_day_creates_nine_windows(app):
    slots = ledger.ensure_day_slots("2024-06-01")
    assert len(slots) == 9
    assert [s.start_time for s in slots] == [time(h, 0) for h in range(5, 23, 2)]
    assert slots[0].end_time == time(7, 0)
    assert slots[-1].end_time == time(23, 0)
    assert all(s.current_bookings == 0 and s.max_capacity == 50 for s in slots)
    assert all(s.slot_date == DAY for s in slots)

def test_ensure_day_is_idempotent(app):
    first = ledger.ensure_day_slots(DAY)
    second = ledger.ensure_day_slots(DAY)
    assert [s.id for s in first] == [s.id for s in second]
    assert DailySlot.query.filter_by(slot_date=DAY).count() == 9

def test_ensure_day_fills_missing_windows_only(app):
    db.session.add(DailySlot(slot_date=DAY, start_time=time(9, 0), end_time=time(11, 0),
                             max_capacity=50, current_bookings=0))
    db.session.commit()
    slots = ledger.ensure_day_slots(DAY)
    assert len(slots) == 9
    assert DailySlot.query.filter_by(slot_date=DAY, start_time=time(9, 0)).count() == 1

def test_list_slots_is_pure_read(app):
    assert ledger.list_slots(DAY) == []
    ledger.ensure_day_slots(DAY)
    slots = ledger.list_slots(DAY)
    assert [s.start_time for s in slots] == sorted(s.start_time for s in slots)
    assert ledger.list_slots(date(2024, 6, 2)) == []

def test_bad_date_is_invalid_input(app):
    with pytest.raises(InvalidInput):
        ledger.ensure_day_slots("01/06/2024")

# ---------- book ----------
def test_book_increments_and_issues_code(app):
    u = _user(1)
    slot = ledger.ensure_day_slots(DAY)[0]
    booking = ledger.book(u.id, slot.id)
    assert booking.id is not None
    assert len(booking.booking_code) == 8
    assert set(booking.booking_code) <= set(CODE_ALPHABET)
    assert ledger.get_slot(slot.id).current_bookings == 1
    _assert_counter_matches(slot.id)

def test_duplicate_booking_rejected_without_side_effects(app):
    u = _user(1)
    slot = ledger.ensure_day_slots(DAY)[0]
    ledger.book(u.id, slot.id)
    with pytest.raises(DuplicateBooking):
        ledger.book(u.id, slot.id)
    assert ledger.get_slot(slot.id).current_bookings == 1
    _assert_counter_matches(slot.id)

def test_last_seat_goes_to_one_of_two_users(app):
    slot = ledger.ensure_day_slots(DAY)[0]
    for uid in _users(49):
        ledger.book(uid, slot.id)
    assert ledger.get_slot(slot.id).current_bookings == 49

    a, b = _user(1), _user(2)
    ledger.book(a.id, slot.id)
    with pytest.raises(SlotFull):
        ledger.book(b.id, slot.id)
    assert ledger.get_slot(slot.id).current_bookings == 50
    assert Booking.query.filter_by(user_id=b.id).count() == 0
    _assert_counter_matches(slot.id)

def test_unknown_slot_and_user(app):
    u = _user(1)
    slot = ledger.ensure_day_slots(DAY)[0]
    with pytest.raises(NotFound):
        ledger.book(u.id, 9999)
    with pytest.raises(NotFound):
        ledger.book(9999, slot.id)
    assert ledger.get_slot(slot.id).current_bookings == 0

@pytest.mark.parametrize("bad", [0, -3, "abc", None, True, 1.5])
def test_malformed_ids_are_invalid_input(app, bad):
    with pytest.raises(InvalidInput):
        ledger.book(bad, 1)
    with pytest.raises(InvalidInput):
        ledger.book(1, bad)

def test_idempotent_replay_returns_same_booking(app):
    u = _user(1)
    slot = ledger.ensure_day_slots(DAY)[0]
    first = ledger.book(u.id, slot.id, idempotency_key="req-1")
    again = ledger.book(u.id, slot.id, idempotency_key="req-1")
    assert again.id == first.id
    assert again.booking_code == first.booking_code
    assert ledger.get_slot(slot.id).current_bookings == 1

def test_idempotency_key_reused_for_other_slot(app):
    u = _user(1)
    s1, s2 = ledger.ensure_day_slots(DAY)[:2]
    ledger.book(u.id, s1.id, idempotency_key="req-1")
    with pytest.raises(InvalidInput):
        ledger.book(u.id, s2.id, idempotency_key="req-1")
    assert ledger.get_slot(s2.id).current_bookings == 0

def test_code_collision_is_retried(app, monkeypatch):
    u1, u2 = _user(1), _user(2)
    slot = ledger.ensure_day_slots(DAY)[0]
    codes = iter(["AAAAAAAA", "AAAAAAAA", "BBBBBBBB"])
    monkeypatch.setattr(ledger, "generate_booking_code", lambda length=8: next(codes))
    ledger.book(u1.id, slot.id)
    second = ledger.book(u2.id, slot.id)
    assert second.booking_code == "BBBBBBBB"
    assert ledger.get_slot(slot.id).current_bookings == 2
    _assert_counter_matches(slot.id)

def test_code_collisions_exhausted(app, monkeypatch):
    u1, u2 = _user(1), _user(2)
    slot = ledger.ensure_day_slots(DAY)[0]
    monkeypatch.setattr(ledger, "generate_booking_code", lambda length=8: "AAAAAAAA")
    ledger.book(u1.id, slot.id)
    with pytest.raises(TransientStoreFailure) as ei:
        ledger.book(u2.id, slot.id)
    assert ei.value.retryable is True
    assert ledger.get_slot(slot.id).current_bookings == 1

# ---------- cancel ----------
def test_book_cancel_book_restores_count(app):
    u = _user(1)
    slot = ledger.ensure_day_slots(DAY)[0]
    b = ledger.book(u.id, slot.id)
    ledger.cancel(b.id)
    assert ledger.get_slot(slot.id).current_bookings == 0
    ledger.book(u.id, slot.id)
    assert ledger.get_slot(slot.id).current_bookings == 1
    _assert_counter_matches(slot.id)

def test_double_cancel_decrements_once(app):
    u1, u2 = _user(1), _user(2)
    slot = ledger.ensure_day_slots(DAY)[0]
    b = ledger.book(u1.id, slot.id)
    ledger.book(u2.id, slot.id)
    booking_id = b.id
    ledger.cancel(booking_id)
    with pytest.raises(NotFound):
        ledger.cancel(booking_id)
    assert ledger.get_slot(slot.id).current_bookings == 1
    _assert_counter_matches(slot.id)

def test_cancel_someone_elses_booking_is_not_found(app):
    owner, other = _user(1), _user(2)
    slot = ledger.ensure_day_slots(DAY)[0]
    b = ledger.book(owner.id, slot.id)
    with pytest.raises(NotFound):
        ledger.cancel(b.id, user_id=other.id)
    assert ledger.get_slot(slot.id).current_bookings == 1
    ledger.cancel(b.id, user_id=owner.id)
    assert ledger.get_slot(slot.id).current_bookings == 0

def test_cancel_with_broken_counter_rolls_back(app):
    u = _user(1)
    slot = ledger.ensure_day_slots(DAY)[0]
    b = ledger.book(u.id, slot.id)
    booking_id = b.id
    # рассинхрон счётчика, созданный в обход ledger
    db.session.execute(update(DailySlot).where(DailySlot.id == slot.id).values(current_bookings=0))
    db.session.commit()
    with pytest.raises(TransientStoreFailure):
        ledger.cancel(booking_id)
    assert db.session.get(Booking, booking_id) is not None

# ---------- reads ----------
def test_user_bookings_newest_first(app):
    u = _user(1)
    slots = ledger.ensure_day_slots(DAY)
    ids = [ledger.book(u.id, s.id).id for s in slots[:3]]
    items = ledger.user_bookings(u.id)
    assert [b.id for b in items] == list(reversed(ids))
    assert items[0].slot.slot_date == DAY

def test_slot_bookings_and_find_by_code(app):
    u1, u2 = _user(1), _user(2)
    slot = ledger.ensure_day_slots(DAY)[0]
    b1 = ledger.book(u1.id, slot.id)
    ledger.book(u2.id, slot.id)
    assert [b.user.username for b in ledger.slot_bookings(slot.id)] == ["u1", "u2"]

    found = ledger.find_by_code(b1.booking_code.lower())
    assert found.id == b1.id
    with pytest.raises(InvalidInput):
        ledger.find_by_code("0O1I")
    with pytest.raises(NotFound):
        ledger.find_by_code("ZZZZZZZZ")
    with pytest.raises(NotFound):
        ledger.slot_bookings(9999)

def test_counter_invariant_over_mixed_operations(app):
    uids = _users(6)
    slots = ledger.ensure_day_slots(DAY)[:2]
    made = []
    for i, uid in enumerate(uids):
        made.append(ledger.book(uid, slots[i % 2].id).id)
    for booking_id in made[::3]:
        ledger.cancel(booking_id)
    for s in slots:
        _assert_counter_matches(s.id)
