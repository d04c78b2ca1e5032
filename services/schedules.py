"""
Schedule store: tutor time slots and availability queries.

``TimeSlot.is_booked`` is read here but only ever written by
``services.bookings``. Updates and deletes are conditional on the slot being
free, so they cannot race a reservation into a broken state.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking
from models.payment import Payment
from models.review import Review
from models.slot import TimeSlot
from services.actor import Actor
from services.results import ErrorKind, failure, success
from services.storage import atomic
from utils import clock

logger = logging.getLogger(__name__)

# 0 = Sunday ... 6 = Saturday, same as strftime("%w")
WEEKDAYS = range(7)


@dataclass
class RecurringOutcome:
    created: list = field(default_factory=list)  # slot ids
    failed: list = field(default_factory=list)   # (date, reason)

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


def duration_minutes(start_time, end_time) -> int:
    delta = datetime.combine(date.min, end_time) - datetime.combine(date.min, start_time)
    return int(delta.total_seconds() // 60)


def _validate_times(start_time, end_time):
    if end_time <= start_time:
        return failure(ErrorKind.VALIDATION, "End time must be after start time")

    min_minutes = current_app.config.get("MIN_SLOT_MINUTES", 30)
    if duration_minutes(start_time, end_time) < min_minutes:
        return failure(ErrorKind.VALIDATION, f"Schedule must be at least {min_minutes} minutes")
    return None


def validate_slot(slot_date, start_time, end_time, today=None):
    """Returns a failed Result when the slot is not acceptable, None otherwise."""
    today = today or clock.today()
    if slot_date < today:
        return failure(ErrorKind.VALIDATION, "Cannot schedule for past dates")
    return _validate_times(start_time, end_time)


def get_slot(slot_id: int):
    return db.session.get(TimeSlot, slot_id)


def create_slot(actor: Actor, slot_date, start_time, end_time, today=None):
    invalid = validate_slot(slot_date, start_time, end_time, today=today)
    if invalid:
        return invalid

    slot = TimeSlot(
        tutor_id=actor.tutor_id,
        date=slot_date,
        start_time=start_time,
        end_time=end_time,
        is_booked=False,
    )
    try:
        with atomic("create slot"):
            db.session.add(slot)
    except IntegrityError:
        logger.info("Duplicate slot for tutor %s on %s %s", actor.tutor_id, slot_date, start_time)
        return failure(ErrorKind.DUPLICATE, "Slot already exists for that date and time")

    logger.info("Slot %s created for tutor %s", slot.id, actor.tutor_id)
    return success(slot)


def create_recurring_slots(actor: Actor, start_date, end_date, weekdays, start_time, end_time, today=None):
    """
    Creates one slot per date in [start_date, end_date] whose weekday is selected.

    Best effort: every date commits on its own and a rejected date (in the past,
    already scheduled) is recorded in ``failed`` without undoing the others.
    """
    invalid = _validate_times(start_time, end_time)
    if invalid:
        return invalid
    if end_date < start_date:
        return failure(ErrorKind.VALIDATION, "End date must be after start date")

    selected = set(weekdays or ())
    if not selected:
        return failure(ErrorKind.VALIDATION, "Please select at least one day of the week")
    if not selected.issubset(WEEKDAYS):
        return failure(ErrorKind.VALIDATION, "Days of the week must be between 0 (Sunday) and 6 (Saturday)")

    outcome = RecurringOutcome()
    current = start_date
    while current <= end_date:
        if int(current.strftime("%w")) in selected:
            result = create_slot(actor, current, start_time, end_time, today=today)
            if result.ok:
                outcome.created.append(result.value.id)
            else:
                outcome.failed.append((current, result.error.message))
        current += timedelta(days=1)

    logger.info(
        "Recurring slots for tutor %s: %s created, %s failed",
        actor.tutor_id, outcome.created_count, outcome.failed_count,
    )
    return success(outcome)


def update_slot(slot_id: int, slot_date, start_time, end_time, today=None):
    slot = get_slot(slot_id)
    if slot is None:
        return failure(ErrorKind.NOT_FOUND, "Slot not found")

    invalid = validate_slot(slot_date, start_time, end_time, today=today)
    if invalid:
        return invalid

    try:
        with atomic("update slot"):
            res = db.session.execute(
                update(TimeSlot)
                .where(TimeSlot.id == slot_id, TimeSlot.is_booked.is_(False))
                .values(date=slot_date, start_time=start_time, end_time=end_time)
            )
            if res.rowcount != 1:
                db.session.rollback()
                return failure(ErrorKind.SLOT_UNAVAILABLE, "Slot is booked and cannot be changed")
    except IntegrityError:
        return failure(ErrorKind.DUPLICATE, "Slot already exists for that date and time")

    db.session.refresh(slot)
    return success(slot)


def delete_slot(slot_id: int):
    if get_slot(slot_id) is None:
        return failure(ErrorKind.NOT_FOUND, "Slot not found")

    slot_bookings = select(Booking.id).where(Booking.schedule_id == slot_id)
    with atomic("delete slot"):
        # payments are kept for the record, so a slot that has any stays
        paid = db.session.execute(
            select(Payment.id).where(Payment.booking_id.in_(slot_bookings)).limit(1)
        ).first()
        if paid is not None:
            db.session.rollback()
            return failure(ErrorKind.SLOT_UNAVAILABLE, "Slot has payment history and cannot be deleted")

        # only cancelled bookings can remain on a free slot; fetch drops them from the identity map
        history = slot_bookings.where(Booking.status == "cancelled")
        db.session.execute(
            delete(Review).where(Review.booking_id.in_(history)),
            execution_options={"synchronize_session": "fetch"},
        )
        db.session.execute(
            delete(Booking).where(Booking.schedule_id == slot_id, Booking.status == "cancelled"),
            execution_options={"synchronize_session": "fetch"},
        )
        res = db.session.execute(
            delete(TimeSlot).where(TimeSlot.id == slot_id, TimeSlot.is_booked.is_(False))
        )
        if res.rowcount != 1:
            db.session.rollback()
            return failure(ErrorKind.SLOT_UNAVAILABLE, "Slot is booked and cannot be deleted")

    logger.info("Slot %s deleted", slot_id)
    return success()


def is_available(slot_id: int) -> bool:
    slot = get_slot(slot_id)
    return slot is not None and not slot.is_booked


def get_available(tutor_id: int, from_date=None):
    q = TimeSlot.query.filter(TimeSlot.tutor_id == tutor_id, TimeSlot.is_booked.is_(False))
    if from_date:
        q = q.filter(TimeSlot.date >= from_date)
    return q.order_by(TimeSlot.date.asc(), TimeSlot.start_time.asc()).all()


def get_by_tutor(tutor_id: int, from_date=None):
    """All of a tutor's slots as (slot, active booking id or None) pairs."""
    q = (
        db.session.query(TimeSlot, Booking.id)
        .outerjoin(
            Booking,
            and_(Booking.schedule_id == TimeSlot.id, Booking.status != "cancelled"),
        )
        .filter(TimeSlot.tutor_id == tutor_id)
    )
    if from_date:
        q = q.filter(TimeSlot.date >= from_date)
    return q.order_by(TimeSlot.date.asc(), TimeSlot.start_time.asc()).all()
