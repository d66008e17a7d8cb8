# blueprints/reports/services.py
from __future__ import annotations
from datetime import date
from io import StringIO
import csv

from blueprints.booking.ledger import read_only
from blueprints.core.filters import fmt_time, occupancy_pct
from models import DailySlot

MAX_REPORT_DAYS = 366

def occupancy_csv(d_from: date, d_to: date) -> str:
    """
    CSV: date;weekday;start;end;booked;capacity;available;occupancy_pct
    Только существующие слоты, дни без инициализации пропускаются.
    """
    with read_only("occupancy_csv"):
        slots = (DailySlot.query
                 .filter(DailySlot.slot_date >= d_from, DailySlot.slot_date <= d_to)
                 .order_by(DailySlot.slot_date.asc(), DailySlot.start_time.asc())
                 .all())

    buf = StringIO()
    w = csv.writer(buf, delimiter=";")
    w.writerow(["date", "weekday", "start", "end", "booked", "capacity", "available", "occupancy_pct"])
    for s in slots:
        w.writerow([
            s.slot_date.isoformat(),
            s.slot_date.strftime("%A"),
            fmt_time(s.start_time),
            fmt_time(s.end_time),
            s.current_bookings,
            s.max_capacity,
            s.available,
            f"{occupancy_pct(s.current_bookings, s.max_capacity):.2f}",
        ])
    return buf.getvalue()
