from __future__ import annotations
import logging

from flask import jsonify, request
from flask_login import current_user
from pydantic import ValidationError

from blueprints.auth.routes import admin_required, user_to_dict
from blueprints.booking import ledger
from blueprints.booking.routes import validation_error
from blueprints.booking.schemas import EnsureDayIn, booking_to_dict, slot_to_dict
from blueprints.core.filters import occupancy_level, occupancy_pct
from . import api_bp

logger = logging.getLogger(__name__)


def _admin_slot(slot) -> dict:
    out = slot_to_dict(slot)
    pct = occupancy_pct(slot.current_bookings, slot.max_capacity)
    out["occupancy_pct"] = pct
    out["occupancy_level"] = occupancy_level(pct)
    return out

def _occupancy_totals(slots) -> dict:
    booked = sum(s.current_bookings for s in slots)
    capacity = sum(s.max_capacity for s in slots)
    return {
        "slots": len(slots),
        "booked": booked,
        "capacity": capacity,
        "available": max(capacity - booked, 0),
        "occupancy_pct": occupancy_pct(booked, capacity),
        "full_slots": sum(1 for s in slots if s.available <= 0),
    }

# ---------- занятость ----------
@api_bp.get("/admin/occupancy")
@admin_required
def occupancy():
    raw = request.args.get("date")
    day = raw if raw else ledger.gym_today()
    # только чтение: день не создаём
    slots = ledger.list_slots(day)
    return jsonify({
        "ok": True,
        "date": str(day),
        "slots": [_admin_slot(s) for s in slots],
        "totals": _occupancy_totals(slots),
    })

@api_bp.post("/admin/slots/ensure")
@admin_required
def ensure_day():
    payload = request.get_json(silent=True) or {}
    try:
        data = EnsureDayIn.model_validate(payload)
    except ValidationError as ve:
        return validation_error(ve)
    slots = ledger.ensure_day_slots(data.date)
    logger.info("day ensured by admin", extra={"event": "admin_ensure_day", "user_id": current_user.id,
                                               "date": data.date.isoformat(), "count": len(slots)})
    return jsonify({"ok": True, "date": data.date.isoformat(),
                    "slots": [slot_to_dict(s) for s in slots]})

@api_bp.get("/admin/slots/<int:slot_id>/bookings")
@admin_required
def slot_bookings(slot_id: int):
    slot = ledger.get_slot(slot_id)
    items = ledger.slot_bookings(slot_id)
    return jsonify({
        "ok": True,
        "slot": slot_to_dict(slot),
        "items": [{"id": b.id, "booking_code": b.booking_code,
                   "created_at": b.created_at.isoformat(), "user": user_to_dict(b.user)}
                  for b in items],
    })

# ---------- бронирования ----------
@api_bp.get("/admin/bookings/by-code/<code>")
@admin_required
def booking_by_code(code: str):
    booking = ledger.find_by_code(code)
    out = booking_to_dict(booking)
    out["user"] = user_to_dict(booking.user)
    return jsonify({"ok": True, "booking": out})

@api_bp.delete("/admin/bookings/<int:booking_id>")
@admin_required
def cancel_booking(booking_id: int):
    ledger.cancel(booking_id)
    logger.info("booking cancelled by admin", extra={"event": "admin_cancel", "user_id": current_user.id,
                                                     "booking_id": booking_id})
    return jsonify({"ok": True, "id": booking_id})
