# blueprints/booking/events.py
"""
In-process change channel for slot occupancy.

Publishing happens after the ledger commits; delivery is best effort and a
subscriber that raises never affects the publisher. Topics:

    slot:<id>         changes of one slot
    day:<YYYY-MM-DD>  changes of any slot on that day
    *                 every change
"""
from __future__ import annotations
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import date, time
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotChange:
    slot_id: int
    slot_date: date
    start_time: time
    current_bookings: int
    max_capacity: int
    action: str  # booked | cancelled

    @property
    def topics(self) -> tuple[str, str]:
        return slot_topic(self.slot_id), day_topic(self.slot_date)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["slot_date"] = self.slot_date.isoformat()
        data["start_time"] = self.start_time.strftime("%H:%M")
        return data


Subscriber = Callable[[SlotChange], None]

ALL_TOPIC = "*"


def slot_topic(slot_id: int) -> str:
    return f"slot:{slot_id}"


def day_topic(day: date) -> str:
    return f"day:{day.isoformat()}"


class SlotChannel:
    def __init__(self):
        self._subs: Dict[str, List[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register callback for topic; returns a function that unsubscribes it."""
        with self._lock:
            self._subs.setdefault(topic, []).append(callback)

        def _unsubscribe():
            with self._lock:
                subs = self._subs.get(topic, [])
                if callback in subs:
                    subs.remove(callback)
                if not subs:
                    self._subs.pop(topic, None)
        return _unsubscribe

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subs.get(topic, []))

    def publish(self, change: SlotChange) -> int:
        """Deliver change to every subscriber of its topics. Returns deliveries made."""
        with self._lock:
            targets = [cb for t in (*change.topics, ALL_TOPIC) for cb in self._subs.get(t, [])]
        delivered = 0
        for cb in targets:
            try:
                cb(change)
                delivered += 1
            except Exception:
                logger.exception("slot subscriber failed", extra={"event": "slot_subscriber_failed",
                                                                   "slot_id": change.slot_id})
        return delivered
