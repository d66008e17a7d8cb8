# blueprints/booking/routes.py
from __future__ import annotations
import logging

from flask import jsonify, request
from flask_login import current_user
from pydantic import ValidationError

from blueprints.auth.routes import member_required
from . import bp, api_bp
from . import ledger
from .errors import LedgerError
from .schemas import BookingIn, booking_to_dict, slot_to_dict

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


# ---------- ошибки ----------
@bp.app_errorhandler(LedgerError)
def _ledger_error(e: LedgerError):
    if e.retryable:
        logger.warning("ledger unavailable", extra={"event": "ledger_unavailable", "path": request.path,
                                                    "reason": e.code})
    return jsonify(e.to_dict()), e.http_status

def pydantic_errors_safe(ve: ValidationError):
    errs = ve.errors()
    for e in errs:
        if "ctx" in e and isinstance(e["ctx"], dict):
            e["ctx"] = {k: str(v) for k, v in e["ctx"].items()}
        e.pop("url", None)
    return errs

def validation_error(ve: ValidationError):
    return jsonify({"error": "validation_error", "detail": pydantic_errors_safe(ve)}), 422


# ---------- API ----------
@api_bp.get("/slots")
@member_required
def api_slots():
    raw = request.args.get("date")
    day = raw if raw else ledger.gym_today()
    slots = ledger.ensure_day_slots(day)
    mine = {b.slot_id for b in ledger.user_bookings(current_user.id)}
    return jsonify({
        "ok": True,
        "date": slots[0].slot_date.isoformat() if slots else str(day),
        "slots": [slot_to_dict(s, mine) for s in slots],
    })

@api_bp.post("/bookings")
@member_required
def api_book():
    payload = request.get_json(silent=True) or {}
    try:
        data = BookingIn.model_validate(payload)
    except ValidationError as ve:
        return validation_error(ve)

    booking = ledger.book(current_user.id, data.slot_id,
                          idempotency_key=request.headers.get(IDEMPOTENCY_HEADER))
    slot = ledger.get_slot(booking.slot_id)
    return jsonify({
        "ok": True,
        "booking": booking_to_dict(booking),
        "slot": slot_to_dict(slot),
    }), 201

@api_bp.get("/bookings")
@member_required
def api_my_bookings():
    items = ledger.user_bookings(current_user.id)
    return jsonify({"ok": True, "items": [booking_to_dict(b) for b in items]})

@api_bp.delete("/bookings/<int:booking_id>")
@member_required
def api_cancel(booking_id: int):
    ledger.cancel(booking_id, user_id=current_user.id)
    return jsonify({"ok": True, "id": booking_id})
