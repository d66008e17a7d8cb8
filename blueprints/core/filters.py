from __future__ import annotations
from datetime import time

# доля свободных мест -> уровень доступности (для посетителя)
HIGH_AVAILABILITY_PCT = 70.0
MEDIUM_AVAILABILITY_PCT = 30.0

# доля занятых мест -> уровень загрузки (для админа), строго больше порога
HIGH_OCCUPANCY_PCT = 70.0
MEDIUM_OCCUPANCY_PCT = 40.0

def fmt_time(value: time | None) -> str:
    if not value:
        return ""
    return value.strftime("%H:%M")

def fmt_time_12h(value: time | None) -> str:
    if value is None:
        return ""
    hour = value.hour % 12 or 12
    suffix = "PM" if value.hour >= 12 else "AM"
    return f"{hour}:{value.minute:02d} {suffix}"

def available_pct(available: int, capacity: int) -> float:
    if not capacity:
        return 0.0
    return round(max(available, 0) / capacity * 100.0, 2)

def availability_level(pct: float) -> str:
    if pct >= HIGH_AVAILABILITY_PCT:
        return "high"
    if pct >= MEDIUM_AVAILABILITY_PCT:
        return "medium"
    return "low"

def occupancy_pct(booked: int, capacity: int) -> float:
    if not capacity:
        return 0.0
    return round(min(max(booked, 0), capacity) / capacity * 100.0, 2)

def occupancy_level(pct: float) -> str:
    if pct > HIGH_OCCUPANCY_PCT:
        return "high"
    if pct > MEDIUM_OCCUPANCY_PCT:
        return "medium"
    return "low"
