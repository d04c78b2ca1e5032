"""
Payment ledger: at most one payment row per booking, amount derived from the
slot length and the tutor's hourly rate.

Only payments on confirmed bookings reach the gateway. A pending payment is
charged at most once (``attempted_at`` marks the claim); a failed payment
keeps its row and submitting it again moves it back to pending, optionally
with a different method, before the gateway is called.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking
from models.payment import Payment
from models.slot import TimeSlot
from services.bookings import BookingStatus
from services.gateway import GatewayResult, PaymentGatewayError, SimulatedGateway
from services.results import ErrorKind, failure, success
from services.schedules import duration_minutes
from services.storage import atomic
from utils import clock

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"


def _methods():
    return tuple(current_app.config.get("PAYMENT_METHODS", ("gopay", "dana", "bank_transfer")))


def amount_for(start_time, end_time, hourly_rate) -> Decimal:
    minutes = duration_minutes(start_time, end_time)
    hours = Decimal(minutes // 60) + Decimal(minutes % 60) / Decimal(60)
    return (Decimal(str(hourly_rate)) * hours).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_amount(booking) -> Decimal:
    """Accepts a Booking row or a BookingDetails projection."""
    if isinstance(booking, Booking):
        slot = booking.slot
        return amount_for(slot.start_time, slot.end_time, slot.tutor.hourly_rate)
    return amount_for(booking.start_time, booking.end_time, booking.hourly_rate)


def get_payment(payment_id: int):
    return db.session.get(Payment, payment_id)


def get_payment_for_booking(booking_id: int):
    return Payment.query.filter_by(booking_id=booking_id).first()


def is_payment_completed(booking_id: int) -> bool:
    payment = get_payment_for_booking(booking_id)
    return payment is not None and payment.status == COMPLETED


def create_payment(booking_id: int, method: str, amount=None):
    if method not in _methods():
        return failure(ErrorKind.VALIDATION, "Invalid payment method", allowed=list(_methods()))

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        return failure(ErrorKind.NOT_FOUND, "Booking not found")
    if booking.status != BookingStatus.CONFIRMED.value:
        return failure(ErrorKind.NOT_ELIGIBLE, "Only confirmed bookings can be paid")
    if get_payment_for_booking(booking_id) is not None:
        return failure(ErrorKind.DUPLICATE, "A payment already exists for this booking")

    if amount is None:
        amount = calculate_amount(booking)
    else:
        amount = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)

    payment = Payment(
        booking_id=booking_id,
        amount=amount,
        currency=current_app.config.get("PAYMENT_CURRENCY", "IDR"),
        payment_method=method,
        status=PENDING,
    )
    try:
        with atomic("create payment"):
            db.session.add(payment)
    except IntegrityError:
        return failure(ErrorKind.DUPLICATE, "A payment already exists for this booking")

    logger.info("Payment %s created for booking %s: %s via %s", payment.id, booking_id, amount, method)
    return success(payment)


def _claim_refused(payment_id: int):
    payment = get_payment(payment_id)
    if payment.booking.status != BookingStatus.CONFIRMED.value:
        return failure(ErrorKind.NOT_ELIGIBLE, "Only confirmed bookings can be paid")
    if payment.status == COMPLETED:
        return failure(ErrorKind.ILLEGAL_TRANSITION, "This booking has already been paid")
    return failure(ErrorKind.ILLEGAL_TRANSITION, "Payment is already being processed")


def process_payment(payment_id: int, method=None, gateway=None, now=None):
    payment = get_payment(payment_id)
    if payment is None:
        return failure(ErrorKind.NOT_FOUND, "Payment not found")
    if payment.status == COMPLETED:
        return failure(ErrorKind.ILLEGAL_TRANSITION, "This booking has already been paid")
    if payment.booking.status != BookingStatus.CONFIRMED.value:
        return failure(ErrorKind.NOT_ELIGIBLE, "Only confirmed bookings can be paid")

    method = method or payment.payment_method
    if method not in _methods():
        return failure(ErrorKind.VALIDATION, "Invalid payment method", allowed=list(_methods()))

    # a pending payment is claimable once; failed ones go back to pending for another attempt
    claimable = or_(
        Payment.status == FAILED,
        and_(Payment.status == PENDING, Payment.attempted_at.is_(None)),
    )
    confirmed_bookings = select(Booking.id).where(Booking.status == BookingStatus.CONFIRMED.value)
    with atomic("claim payment"):
        res = db.session.execute(
            update(Payment)
            .where(Payment.id == payment_id, claimable, Payment.booking_id.in_(confirmed_bookings))
            .values(status=PENDING, payment_method=method, attempted_at=clock.utcnow())
        )
        if res.rowcount != 1:
            db.session.rollback()
            return _claim_refused(payment_id)

    gateway = gateway or SimulatedGateway()
    try:
        outcome = gateway.charge(payment, method)
    except PaymentGatewayError as exc:
        logger.warning("Gateway error for payment %s: %s", payment_id, exc)
        outcome = GatewayResult(success=False, message=str(exc))

    if outcome.success:
        values = {"status": COMPLETED, "paid_at": now or clock.utcnow(), "transaction_ref": outcome.reference}
    else:
        values = {"status": FAILED, "transaction_ref": outcome.reference}

    with atomic("record payment result"):
        db.session.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == PENDING)
            .values(**values)
        )

    db.session.refresh(payment)
    logger.info("Payment %s processed: %s", payment_id, payment.status)
    return success(payment)


def _history_query():
    return (
        Payment.query
        .join(Booking, Payment.booking_id == Booking.id)
        .join(TimeSlot, Booking.schedule_id == TimeSlot.id)
    )


def get_payments_for_student(student_id: int):
    return (
        _history_query()
        .filter(Booking.student_id == student_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def get_payments_for_tutor(tutor_id: int):
    return (
        _history_query()
        .filter(TimeSlot.tutor_id == tutor_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )
