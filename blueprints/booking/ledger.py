# blueprints/booking/ledger.py
"""
Booking ledger: slot occupancy and member bookings.

Capacity is never checked and written in separate steps. A booking takes a
seat with one conditional UPDATE (``current_bookings < max_capacity`` in the
WHERE clause) and the (user, slot) unique constraint rejects a second
booking of the same slot; both happen in one transaction, so a rejected
insert also gives the seat back. Cancellation deletes the row first and
only decrements the counter when that delete actually removed it.

Every failure is reported as a ``LedgerError`` subclass; store errors are
rolled back and surface as ``TransientStoreFailure``.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app
from sqlalchemy import delete, insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from config import DEFAULT_SLOT_WINDOWS
from extensions import db
from models import Booking, DailySlot, User
from .codes import generate_booking_code, is_valid_booking_code
from .errors import (
    DuplicateBooking, InvalidInput, LedgerError, NotFound, SlotFull, TransientStoreFailure,
)
from .events import SlotChange

logger = logging.getLogger(__name__)

MAX_IDEMPOTENCY_KEY_LEN = 64


class _CodeCollision(Exception):
    pass


# ---------- helpers ----------
@contextmanager
def store_errors(operation: str):
    try:
        yield
    except (LedgerError, _CodeCollision):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning("store failure during %s: %s", operation, e.__class__.__name__,
                       extra={"event": "store_failure"})
        raise TransientStoreFailure(f"{operation} failed, safe to retry") from e

@contextmanager
def read_only(operation: str):
    """Run a read and end its transaction right away.

    On SQLite every transaction holds the write lock (BEGIN IMMEDIATE), so a
    read left open would block writers until the request ends. Loaded objects
    stay usable: the commit does not expire them.
    """
    with store_errors(operation):
        yield
        session = db.session()
        expire = session.expire_on_commit
        session.expire_on_commit = False
        try:
            session.commit()
        finally:
            session.expire_on_commit = expire

def coerce_id(value, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"{name} must be a positive integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise InvalidInput(f"{name} must be a positive integer")
    return value

def _coerce_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise InvalidInput("date must be YYYY-MM-DD") from None

def _coerce_key(value) -> Optional[str]:
    if value is None:
        return None
    key = str(value).strip()
    if not key or len(key) > MAX_IDEMPOTENCY_KEY_LEN:
        raise InvalidInput(f"idempotency key must be 1..{MAX_IDEMPOTENCY_KEY_LEN} characters")
    return key

def gym_today() -> date:
    """Current calendar day in the gym's time zone."""
    try:
        tz = ZoneInfo(current_app.config.get("GYM_TIMEZONE") or "UTC")
    except ZoneInfoNotFoundError:
        tz = timezone.utc
    return datetime.now(tz).date()

def _code_length() -> int:
    return int(current_app.config.get("BOOKING_CODE_LENGTH", 8))

def slot_windows() -> List[Tuple[time, time]]:
    return list(current_app.config.get("SLOT_WINDOWS") or DEFAULT_SLOT_WINDOWS)

def _snapshot(slot: DailySlot, action: str) -> SlotChange:
    return SlotChange(
        slot_id=slot.id,
        slot_date=slot.slot_date,
        start_time=slot.start_time,
        current_bookings=slot.current_bookings,
        max_capacity=slot.max_capacity,
        action=action,
    )

def _publish(change: SlotChange) -> None:
    channel = current_app.extensions.get("slot_channel")
    if channel is not None:
        channel.publish(change)


# ---------- day initialization / reads ----------
def _insert_missing_slots(rows: List[dict]) -> int:
    dialect = db.session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    else:
        dialect_insert = None

    if dialect_insert is not None:
        stmt = (dialect_insert(DailySlot)
                .values(rows)
                .on_conflict_do_nothing(index_elements=["slot_date", "start_time"]))
        return db.session.execute(stmt).rowcount or 0

    created = 0
    for row in rows:
        try:
            with db.session.begin_nested():
                db.session.execute(insert(DailySlot).values(**row))
            created += 1
        except IntegrityError:
            # создан параллельным вызовом
            continue
    return created

def list_slots(day) -> List[DailySlot]:
    """Slots of one day, ordered by start time. Pure read."""
    day = _coerce_date(day)
    with read_only("list_slots"):
        return list(DailySlot.query
                    .filter(DailySlot.slot_date == day)
                    .order_by(DailySlot.start_time.asc())
                    .all())

def ensure_day_slots(day) -> List[DailySlot]:
    """Create the fixed windows for ``day`` if missing and return the day's slots.

    Safe to call concurrently: rows are inserted with ON CONFLICT DO NOTHING
    on (slot_date, start_time), so a racing caller's rows are skipped, not
    duplicated.
    """
    day = _coerce_date(day)
    windows = slot_windows()
    existing = list_slots(day)
    if len(existing) >= len(windows):
        return existing

    have = {s.start_time for s in existing}
    capacity = int(current_app.config.get("SLOT_CAPACITY", 50))
    now = datetime.utcnow()
    rows = [
        {"slot_date": day, "start_time": start, "end_time": end,
         "max_capacity": capacity, "current_bookings": 0, "created_at": now}
        for start, end in windows if start not in have
    ]
    with store_errors("ensure_day_slots"):
        created = _insert_missing_slots(rows)
        db.session.commit()
    if created:
        logger.info("day slots created", extra={"event": "slots_created", "date": day.isoformat(),
                                                  "count": created})
    return list_slots(day)

def get_slot(slot_id) -> DailySlot:
    slot_id = coerce_id(slot_id, "slot_id")
    with read_only("get_slot"):
        slot = db.session.get(DailySlot, slot_id)
    if slot is None:
        raise NotFound("slot not found")
    return slot


# ---------- book ----------
def _classify_integrity_error(user_id: int, slot_id: int, key: Optional[str], code: str) -> Booking:
    """After a rolled back insert: find out which constraint fired.

    Returns the existing booking for an idempotent replay, otherwise raises.
    """
    existing = Booking.query.filter_by(user_id=user_id, slot_id=slot_id).first()
    if existing is not None:
        if key is not None and existing.idempotency_key == key:
            return existing
        raise DuplicateBooking("you already booked this slot")
    if key is not None and Booking.query.filter_by(user_id=user_id, idempotency_key=key).first():
        raise InvalidInput("idempotency key already used for another slot")
    if Booking.query.filter_by(booking_code=code).first() is not None:
        raise _CodeCollision(code)
    if db.session.get(User, user_id) is None:
        raise NotFound("user not found")
    raise TransientStoreFailure("booking conflicted with a concurrent change, retry")

def _book_once(user_id: int, slot_id: int, key: Optional[str], code: str) -> Tuple[Booking, Optional[SlotChange]]:
    with store_errors("book"):
        if key is not None:
            replay = Booking.query.filter_by(user_id=user_id, idempotency_key=key).first()
            if replay is not None:
                if replay.slot_id != slot_id:
                    raise InvalidInput("idempotency key already used for another slot")
                db.session.commit()
                return replay, None

        if db.session.get(User, user_id) is None:
            raise NotFound("user not found")
        if Booking.query.filter_by(user_id=user_id, slot_id=slot_id).first() is not None:
            raise DuplicateBooking("you already booked this slot")

        res = db.session.execute(
            update(DailySlot)
            .where(DailySlot.id == slot_id, DailySlot.current_bookings < DailySlot.max_capacity)
            .values(current_bookings=DailySlot.current_bookings + 1)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            if db.session.get(DailySlot, slot_id) is None:
                raise NotFound("slot not found")
            raise SlotFull("no seats left in this slot")

        booking = Booking(user_id=user_id, slot_id=slot_id, booking_code=code, idempotency_key=key)
        db.session.add(booking)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            replay = _classify_integrity_error(user_id, slot_id, key, code)
            db.session.commit()
            return replay, None

        slot = db.session.get(DailySlot, slot_id, populate_existing=True)
        change = _snapshot(slot, "booked")
        booking_id = booking.id
        db.session.commit()

    logger.info("booking created", extra={"event": "booking_created", "user_id": user_id,
                                           "slot_id": slot_id, "booking_id": booking_id, "code": code})
    return booking, change

def book(user_id, slot_id, idempotency_key: Optional[str] = None) -> Booking:
    """Reserve one seat of ``slot_id`` for ``user_id``.

    Raises DuplicateBooking, SlotFull, NotFound, InvalidInput or
    TransientStoreFailure; nothing is written when it raises. With an
    idempotency key, repeating a successful request returns the same booking.
    """
    user_id = coerce_id(user_id, "user_id")
    slot_id = coerce_id(slot_id, "slot_id")
    key = _coerce_key(idempotency_key)
    attempts = max(int(current_app.config.get("BOOKING_CODE_ATTEMPTS", 5)), 1)

    for _ in range(attempts):
        code = generate_booking_code(_code_length())
        try:
            booking, change = _book_once(user_id, slot_id, key, code)
        except _CodeCollision:
            logger.info("booking code collision", extra={"event": "booking_code_collision",
                                                          "slot_id": slot_id})
            continue
        except (SlotFull, DuplicateBooking) as e:
            logger.info("booking rejected", extra={"event": "booking_rejected", "reason": e.code,
                                                   "user_id": user_id, "slot_id": slot_id})
            raise
        if change is not None:
            _publish(change)
        return booking
    raise TransientStoreFailure("could not allocate a unique booking code")


# ---------- cancel ----------
def cancel(booking_id, user_id=None) -> None:
    """Delete a booking and give its seat back.

    ``user_id`` restricts the cancel to the owner's bookings; someone else's
    booking is reported as NotFound. A booking that is already gone is
    NotFound and never decrements the slot again.
    """
    booking_id = coerce_id(booking_id, "booking_id")
    if user_id is not None:
        user_id = coerce_id(user_id, "user_id")

    with store_errors("cancel"):
        booking = db.session.get(Booking, booking_id)
        if booking is None or (user_id is not None and booking.user_id != user_id):
            raise NotFound("booking not found")
        slot_id, owner_id, code = booking.slot_id, booking.user_id, booking.booking_code
        db.session.expunge(booking)

        res = db.session.execute(
            delete(Booking).where(Booking.id == booking_id)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise NotFound("booking not found")

        res = db.session.execute(
            update(DailySlot)
            .where(DailySlot.id == slot_id, DailySlot.current_bookings > 0)
            .values(current_bookings=DailySlot.current_bookings - 1)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise TransientStoreFailure("slot counter is out of sync, cancel rolled back")

        slot = db.session.get(DailySlot, slot_id, populate_existing=True)
        change = _snapshot(slot, "cancelled")
        db.session.commit()

    logger.info("booking cancelled", extra={"event": "booking_cancelled", "user_id": owner_id,
                                             "slot_id": slot_id, "booking_id": booking_id, "code": code})
    _publish(change)


# ---------- member / admin reads ----------
def user_bookings(user_id) -> List[Booking]:
    """Live bookings of a user with their slots, newest first."""
    user_id = coerce_id(user_id, "user_id")
    with read_only("user_bookings"):
        return list(Booking.query
                    .options(joinedload(Booking.slot))
                    .filter(Booking.user_id == user_id)
                    .order_by(Booking.created_at.desc(), Booking.id.desc())
                    .all())

def slot_bookings(slot_id) -> List[Booking]:
    slot = get_slot(slot_id)
    with read_only("slot_bookings"):
        return list(Booking.query
                    .options(joinedload(Booking.user))
                    .filter(Booking.slot_id == slot.id)
                    .order_by(Booking.created_at.asc(), Booking.id.asc())
                    .all())

def find_by_code(code: str) -> Booking:
    """Look a booking up by the code a member shows at the front desk."""
    normalized = (code or "").strip().upper()
    if not is_valid_booking_code(normalized, _code_length()):
        raise InvalidInput("malformed booking code")
    with read_only("find_by_code"):
        booking = (Booking.query
                   .options(joinedload(Booking.slot), joinedload(Booking.user))
                   .filter(Booking.booking_code == normalized)
                   .first())
    if booking is None:
        raise NotFound("booking not found")
    return booking
