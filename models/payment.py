from models.db import db
from utils.clock import utcnow

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(
        db.Integer, db.ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="IDR")
    payment_method = db.Column(db.String(30), nullable=False)

    status = db.Column(db.String(20), nullable=False, default="pending")  # pending, completed, failed
    transaction_ref = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    attempted_at = db.Column(db.DateTime, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking", backref=db.backref("payment", uselist=False))

    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
        db.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')", name="ck_payment_status"
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "payment_method": self.payment_method,
            "status": self.status,
            "transaction_ref": self.transaction_ref,
            "created_at": self.created_at.isoformat(),
            "attempted_at": self.attempted_at.isoformat() if self.attempted_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
