from sqlalchemy import text

from models.db import db
from utils.clock import utcnow

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    schedule_id = db.Column(
        db.Integer, db.ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False, index=True
    )

    status = db.Column(db.String(20), nullable=False, default="pending")
    # status values: pending, confirmed, cancelled

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(200), nullable=True)

    slot = db.relationship("TimeSlot")
    student = db.relationship("User")

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')", name="ck_booking_status"
        ),
        # Hard business-rule: one non-cancelled booking per slot (prevents double booking)
        db.Index(
            "uq_booking_active_slot",
            "schedule_id",
            unique=True,
            sqlite_where=text("status <> 'cancelled'"),
            postgresql_where=text("status <> 'cancelled'"),
        ),
    )
