from datetime import datetime
from extensions import db

class DailySlot(db.Model):
    __tablename__ = "daily_slots"

    id = db.Column(db.Integer, primary_key=True)
    slot_date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    max_capacity = db.Column(db.Integer, nullable=False, default=50)
    current_bookings = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    bookings = db.relationship("Booking", back_populates="slot")

    __table_args__ = (
        db.UniqueConstraint("slot_date", "start_time", name="uq_daily_slots_date_start"),
        db.CheckConstraint("current_bookings >= 0", name="ck_daily_slots_bookings_non_negative"),
        db.CheckConstraint("current_bookings <= max_capacity", name="ck_daily_slots_bookings_le_capacity"),
        db.CheckConstraint("start_time < end_time", name="ck_daily_slots_interval"),
    )

    @property
    def available(self) -> int:
        return max(self.max_capacity - self.current_bookings, 0)

    @property
    def duration_hours(self) -> float:
        start = self.start_time.hour + self.start_time.minute / 60
        end = self.end_time.hour + self.end_time.minute / 60
        return end - start

    def __repr__(self):
        return f"<DailySlot {self.slot_date} {self.start_time:%H:%M} {self.current_bookings}/{self.max_capacity}>"
