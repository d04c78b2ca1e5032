"""
Booking engine: slot reservation and the booking status machine.

    pending --(tutor)--> confirmed
    pending --(tutor|student)--> cancelled
    confirmed --(tutor|student)--> cancelled

Reserving a slot and cancelling a booking each run as one transaction that
touches both the booking row and ``TimeSlot.is_booked``, so a slot is marked
booked exactly while it has a pending or confirmed booking.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from models import db
from models.booking import Booking
from models.payment import Payment
from models.review import Review
from models.slot import TimeSlot
from models.tutor import TutorProfile
from models.user import User
from services.actor import ROLE_STUDENT, ROLE_TUTOR, Actor
from services.results import ErrorKind, StorageFailure, failure, success
from services.storage import atomic
from utils import clock

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# (from, to) -> roles allowed to take that edge
TRANSITIONS = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): frozenset({ROLE_TUTOR}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset({ROLE_TUTOR, ROLE_STUDENT}),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): frozenset({ROLE_TUTOR, ROLE_STUDENT}),
}


@dataclass
class BookingDetails:
    id: int
    status: str
    created_at: datetime
    student_id: int
    schedule_id: int
    tutor_id: int
    date: object
    start_time: object
    end_time: object
    student_name: str
    student_email: str
    tutor_name: str
    tutor_subject: str
    hourly_rate: object
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    review_id: Optional[int] = None
    payment_status: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancel_reason": self.cancel_reason,
            "student": {"id": self.student_id, "name": self.student_name, "email": self.student_email},
            "tutor": {
                "id": self.tutor_id,
                "name": self.tutor_name,
                "subject": self.tutor_subject,
                "hourly_rate": str(self.hourly_rate),
            },
            "slot": {
                "id": self.schedule_id,
                "date": self.date.isoformat(),
                "start_time": self.start_time.strftime("%H:%M"),
                "end_time": self.end_time.strftime("%H:%M"),
            },
            "review_id": self.review_id,
            "payment_status": self.payment_status,
        }


def _details_query():
    student = aliased(User)
    tutor_user = aliased(User)
    return (
        db.session.query(Booking, TimeSlot, TutorProfile, student, tutor_user, Review.id, Payment.status)
        .join(TimeSlot, Booking.schedule_id == TimeSlot.id)
        .join(TutorProfile, TimeSlot.tutor_id == TutorProfile.id)
        .join(student, Booking.student_id == student.id)
        .join(tutor_user, TutorProfile.user_id == tutor_user.id)
        .outerjoin(Review, Review.booking_id == Booking.id)
        .outerjoin(Payment, Payment.booking_id == Booking.id)
    )


def _to_details(row) -> BookingDetails:
    booking, slot, tutor, student, tutor_user, review_id, payment_status = row
    return BookingDetails(
        id=booking.id,
        status=booking.status,
        created_at=booking.created_at,
        student_id=student.id,
        schedule_id=slot.id,
        tutor_id=tutor.id,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        student_name=student.full_name,
        student_email=student.email,
        tutor_name=tutor_user.full_name,
        tutor_subject=tutor.subject,
        hourly_rate=tutor.hourly_rate,
        cancelled_at=booking.cancelled_at,
        cancel_reason=booking.cancel_reason,
        review_id=review_id,
        payment_status=payment_status,
    )


def create_booking(actor: Actor, schedule_id: int, now=None):
    """
    Reserve a slot for the student. The availability check and the flip of
    ``is_booked`` are a single conditional UPDATE inside the same transaction
    as the booking insert: of two concurrent callers only one sees rowcount 1.
    """
    now = now or clock.utcnow()

    slot = db.session.get(TimeSlot, schedule_id)
    if slot is None:
        return failure(ErrorKind.NOT_FOUND, "Slot not found")

    if datetime.combine(slot.date, slot.start_time) <= now:
        return failure(ErrorKind.VALIDATION, "Cannot book past/started slots")

    booking = Booking(
        student_id=actor.user_id,
        schedule_id=schedule_id,
        status=BookingStatus.PENDING.value,
        created_at=now,
    )
    try:
        with atomic("reserve slot"):
            res = db.session.execute(
                update(TimeSlot)
                .where(TimeSlot.id == schedule_id, TimeSlot.is_booked.is_(False))
                .values(is_booked=True)
            )
            if res.rowcount != 1:
                db.session.rollback()
                logger.info("Slot %s already booked, student %s rejected", schedule_id, actor.user_id)
                return failure(ErrorKind.SLOT_UNAVAILABLE, "This time slot is no longer available")
            db.session.add(booking)
    except IntegrityError:
        # uq_booking_active_slot backstop
        logger.info("Active booking already exists for slot %s", schedule_id)
        return failure(ErrorKind.SLOT_UNAVAILABLE, "This time slot is no longer available")

    logger.info("Booking %s created for slot %s", booking.id, schedule_id)
    return success(booking)


def update_status(actor: Actor, booking_id: int, new_status, reason: Optional[str] = None, now=None):
    try:
        target = BookingStatus(new_status)
    except ValueError:
        return failure(ErrorKind.VALIDATION, "Invalid booking status")

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        return failure(ErrorKind.NOT_FOUND, "Booking not found")

    current = BookingStatus(booking.status)
    allowed_roles = TRANSITIONS.get((current, target))
    if allowed_roles is None:
        return failure(
            ErrorKind.ILLEGAL_TRANSITION,
            f"Cannot change booking from {current.value} to {target.value}",
            current=current.value,
            requested=target.value,
        )
    if actor.role not in allowed_roles:
        return failure(
            ErrorKind.ILLEGAL_TRANSITION,
            f"A {actor.role} cannot change booking from {current.value} to {target.value}",
            current=current.value,
            requested=target.value,
        )

    now = now or clock.utcnow()
    values = {"status": target.value, "updated_at": now}
    if target is BookingStatus.CANCELLED:
        values["cancelled_at"] = now
        values["cancel_reason"] = (reason or "").strip()[:200] or None

    try:
        with atomic("update booking status"):
            res = db.session.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == current.value)
                .values(**values)
            )
            if res.rowcount != 1:
                db.session.rollback()
                return failure(
                    ErrorKind.ILLEGAL_TRANSITION,
                    "Booking was changed by someone else, refresh and try again",
                )
            if target is BookingStatus.CANCELLED:
                db.session.execute(
                    update(TimeSlot)
                    .where(TimeSlot.id == booking.schedule_id)
                    .values(is_booked=False)
                )
    except IntegrityError as exc:
        raise StorageFailure("Could not update booking status") from exc

    logger.info("Booking %s: %s -> %s by %s %s", booking_id, current.value, target.value, actor.role, actor.user_id)
    db.session.refresh(booking)
    return success(booking)


def get_booking(booking_id: int) -> Optional[BookingDetails]:
    row = _details_query().filter(Booking.id == booking_id).first()
    return _to_details(row) if row else None


def get_bookings_for_student(student_id: int):
    rows = (
        _details_query()
        .filter(Booking.student_id == student_id)
        .order_by(TimeSlot.date.desc(), TimeSlot.start_time.desc(), Booking.id.desc())
        .all()
    )
    return [_to_details(r) for r in rows]


def get_bookings_for_tutor(tutor_id: int):
    rows = (
        _details_query()
        .filter(TimeSlot.tutor_id == tutor_id)
        .order_by(TimeSlot.date.desc(), TimeSlot.start_time.desc(), Booking.id.desc())
        .all()
    )
    return [_to_details(r) for r in rows]


def booking_counts(tutor_id: Optional[int] = None, student_id: Optional[int] = None) -> dict:
    q = db.session.query(Booking.status, func.count(Booking.id))
    if tutor_id is not None:
        q = q.join(TimeSlot, Booking.schedule_id == TimeSlot.id).filter(TimeSlot.tutor_id == tutor_id)
    if student_id is not None:
        q = q.filter(Booking.student_id == student_id)

    counts = empty_counts()
    for status, n in q.group_by(Booking.status).all():
        counts[status] = n
    counts["total"] = sum(n for k, n in counts.items() if k != "total")
    return counts


def empty_counts() -> dict:
    counts = {s.value: 0 for s in BookingStatus}
    counts["total"] = 0
    return counts
