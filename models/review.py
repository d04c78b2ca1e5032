from datetime import timedelta

from models.db import db
from utils.clock import utcnow

class Review(db.Model):
    __tablename__ = "reviews"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(
        db.Integer, db.ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking", backref=db.backref("review", uselist=False))

    __table_args__ = (
        db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),
    )

    def is_editable(self, now, window_hours: int = 24) -> bool:
        return now - self.created_at < timedelta(hours=window_hours)

    def remaining_edit_hours(self, now, window_hours: int = 24) -> int:
        # whole hours elapsed, truncated
        elapsed = int((now - self.created_at).total_seconds() // 3600)
        return max(0, window_hours - elapsed)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
