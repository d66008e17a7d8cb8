from __future__ import annotations
from datetime import date as dt_date
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from blueprints.core.filters import (
    availability_level, available_pct, fmt_time, fmt_time_12h,
)
from models import Booking, DailySlot

# ---------- входные данные ----------
class BookingIn(BaseModel):
    slot_id: int = Field(ge=1)

class EnsureDayIn(BaseModel):
    date: dt_date

# ---------- сериализация ----------
def slot_to_dict(slot: DailySlot, booked_slot_ids: Optional[Iterable[int]] = None) -> dict:
    available = slot.available
    pct = available_pct(available, slot.max_capacity)
    out = {
        "id": slot.id,
        "date": slot.slot_date.isoformat(),
        "start": fmt_time(slot.start_time),
        "end": fmt_time(slot.end_time),
        "label": f"{fmt_time_12h(slot.start_time)} - {fmt_time_12h(slot.end_time)}",
        "current_bookings": slot.current_bookings,
        "max_capacity": slot.max_capacity,
        "available": available,
        "available_pct": pct,
        "level": availability_level(pct),
        "is_full": available <= 0,
    }
    if booked_slot_ids is not None:
        out["booked_by_me"] = slot.id in set(booked_slot_ids)
    return out

def booking_to_dict(booking: Booking) -> dict:
    slot = booking.slot
    return {
        "id": booking.id,
        "booking_code": booking.booking_code,
        "created_at": booking.created_at.isoformat(),
        "slot": {
            "id": slot.id,
            "date": slot.slot_date.isoformat(),
            "start": fmt_time(slot.start_time),
            "end": fmt_time(slot.end_time),
            "label": f"{fmt_time_12h(slot.start_time)} - {fmt_time_12h(slot.end_time)}",
        },
    }
