from datetime import datetime
from extensions import db

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    slot_id = db.Column(db.Integer, db.ForeignKey("daily_slots.id", ondelete="RESTRICT"), nullable=False, index=True)
    booking_code = db.Column(db.String(16), nullable=False)
    idempotency_key = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="bookings")
    slot = db.relationship("DailySlot", back_populates="bookings")

    __table_args__ = (
        db.UniqueConstraint("user_id", "slot_id", name="uq_bookings_user_slot"),
        db.UniqueConstraint("booking_code", name="uq_bookings_code"),
        # NULL ключи не конфликтуют между собой (SQLite и PostgreSQL)
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_bookings_user_idempotency_key"),
    )

    def __repr__(self):
        return f"<Booking {self.booking_code} user={self.user_id} slot={self.slot_id}>"
