# blueprints/stats/services.py
"""Workout statistics derived from a member's live bookings."""
from __future__ import annotations
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from flask import current_app

from blueprints.booking.errors import InvalidInput
from blueprints.booking.ledger import coerce_id, gym_today, read_only
from models import Booking, DailySlot

WEEK_DAYS = 7


@dataclass
class StatsBucket:
    date: str
    label: str
    workouts: int = 0
    hours: float = 0.0


@dataclass
class AggregatedStats:
    window_days: int
    date_from: str
    date_to: str
    granularity: str
    total_workouts: int = 0
    total_hours: float = 0.0
    avg_per_week: float = 0.0
    buckets: List[StatsBucket] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _coerce_window(value) -> int:
    max_days = int(current_app.config.get("STATS_MAX_WINDOW_DAYS", 730))
    try:
        days = int(value)
    except (TypeError, ValueError):
        raise InvalidInput("days must be an integer") from None
    if isinstance(value, bool) or not 1 <= days <= max_days:
        raise InvalidInput(f"days must be between 1 and {max_days}")
    return days

def _per_day(user_id: int, d_from: date, d_to: date) -> Dict[date, List[float]]:
    """slot_date -> [workouts, hours]"""
    with read_only("booking_stats"):
        rows = (Booking.query
                .join(DailySlot, Booking.slot_id == DailySlot.id)
                .with_entities(DailySlot.slot_date, DailySlot.start_time, DailySlot.end_time)
                .filter(Booking.user_id == user_id,
                        DailySlot.slot_date >= d_from,
                        DailySlot.slot_date <= d_to)
                .all())
    out: Dict[date, List[float]] = defaultdict(lambda: [0, 0.0])
    for slot_date, start, end in rows:
        hours = (end.hour * 60 + end.minute - start.hour * 60 - start.minute) / 60
        out[slot_date][0] += 1
        out[slot_date][1] += hours
    return out

def booking_stats(user_id, window_days, today: Optional[date] = None) -> AggregatedStats:
    """Totals and chart buckets for the last ``window_days`` days.

    Windows up to STATS_WEEKLY_THRESHOLD_DAYS get one bucket per day; longer
    windows get one bucket every 7 days, each summing the week that ends on
    the bucket's date.
    """
    user_id = coerce_id(user_id, "user_id")
    days = _coerce_window(window_days)
    today = today or gym_today()
    d_from = today - timedelta(days=days)
    weekly = days > int(current_app.config.get("STATS_WEEKLY_THRESHOLD_DAYS", 60))

    per_day = _per_day(user_id, d_from, today)
    total_workouts = int(sum(v[0] for v in per_day.values()))
    total_hours = round(sum(v[1] for v in per_day.values()), 2)

    stats = AggregatedStats(
        window_days=days,
        date_from=d_from.isoformat(),
        date_to=today.isoformat(),
        granularity="week" if weekly else "day",
        total_workouts=total_workouts,
        total_hours=total_hours,
        avg_per_week=round(total_workouts / (days / WEEK_DAYS), 1),
    )

    step = WEEK_DAYS if weekly else 1
    # последняя точка всегда сегодня
    for back in reversed(range(0, days + 1, step)):
        point = today - timedelta(days=back)
        bucket = StatsBucket(date=point.isoformat(), label=point.strftime("%b %d").replace(" 0", " "))
        for j in range(step):
            workouts, hours = per_day.get(point - timedelta(days=j), (0, 0.0))
            bucket.workouts += int(workouts)
            bucket.hours += hours
        bucket.hours = round(bucket.hours, 2)
        stats.buckets.append(bucket)
    return stats
