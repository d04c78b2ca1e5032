from models.db import db
from utils.clock import utcnow

class TimeSlot(db.Model):
    __tablename__ = "schedules"

    id = db.Column(db.Integer, primary_key=True)

    tutor_id = db.Column(db.Integer, db.ForeignKey("tutors.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    # only the booking engine flips this
    is_booked = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    tutor = db.relationship("TutorProfile")

    __table_args__ = (
        db.CheckConstraint("start_time < end_time", name="ck_schedule_time_order"),
        # Prevent duplicate slot times for same tutor
        db.UniqueConstraint("tutor_id", "date", "start_time", "end_time", name="uq_tutor_timeslot"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tutor_id": self.tutor_id,
            "date": self.date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "is_booked": self.is_booked,
        }
