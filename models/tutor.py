from models.db import db
from utils.clock import utcnow

class TutorProfile(db.Model):
    __tablename__ = "tutors"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False, index=True)

    subject = db.Column(db.String(120), nullable=False)
    bio = db.Column(db.Text, nullable=True)
    hourly_rate = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    user = db.relationship("User", back_populates="tutor_profile")

    __table_args__ = (
        db.CheckConstraint("hourly_rate >= 0", name="ck_tutor_hourly_rate_non_negative"),
    )
