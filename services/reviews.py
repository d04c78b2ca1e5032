"""
Review gate: one review per confirmed booking, editable for a fixed window
(24 hours by default) after it was posted and permanent afterwards.

The window is evaluated lazily from the wall clock on every call; callers and
tests can pass ``now`` explicitly.
"""
import logging
from datetime import timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking
from models.review import Review
from services.actor import Actor
from services.bookings import BookingStatus
from services.results import ErrorKind, failure, success
from services.storage import atomic
from utils import clock

logger = logging.getLogger(__name__)


def _window_hours() -> int:
    return int(current_app.config.get("REVIEW_EDIT_WINDOW_HOURS", 24))


def _validate(rating, comment):
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        return failure(ErrorKind.VALIDATION, "Rating must be between 1 and 5")

    max_len = current_app.config.get("REVIEW_COMMENT_MAX_LEN", 1000)
    if comment is not None and len(comment) > max_len:
        return failure(ErrorKind.VALIDATION, f"Comment cannot exceed {max_len} characters")
    return None


def get_review(review_id: int):
    return db.session.get(Review, review_id)


def get_review_for_booking(booking_id: int):
    return Review.query.filter_by(booking_id=booking_id).first()


def has_review(booking_id: int) -> bool:
    return get_review_for_booking(booking_id) is not None


def add_review(actor: Actor, booking_id: int, rating, comment=None, now=None):
    comment = (comment or "").strip() or None
    invalid = _validate(rating, comment)
    if invalid:
        return invalid

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        return failure(ErrorKind.NOT_FOUND, "Booking not found")
    if booking.status != BookingStatus.CONFIRMED.value:
        return failure(ErrorKind.NOT_ELIGIBLE, "Only confirmed bookings can be reviewed")
    if has_review(booking_id):
        return failure(ErrorKind.DUPLICATE, "This booking has already been reviewed")

    review = Review(booking_id=booking_id, rating=rating, comment=comment, created_at=now or clock.utcnow())
    try:
        with atomic("add review"):
            db.session.add(review)
    except IntegrityError:
        # two submissions raced past has_review
        return failure(ErrorKind.DUPLICATE, "This booking has already been reviewed")

    logger.info("Review %s added for booking %s by user %s", review.id, booking_id, actor.user_id)
    return success(review)


def is_editable(review_id: int, now=None) -> bool:
    review = get_review(review_id)
    if review is None:
        return False
    return review.is_editable(now or clock.utcnow(), _window_hours())


def remaining_edit_hours(review_id: int, now=None) -> int:
    review = get_review(review_id)
    if review is None:
        return 0
    return review.remaining_edit_hours(now or clock.utcnow(), _window_hours())


def update_review(review_id: int, rating, comment=None, now=None):
    review = get_review(review_id)
    if review is None:
        return failure(ErrorKind.NOT_FOUND, "Review not found")

    comment = (comment or "").strip() or None
    invalid = _validate(rating, comment)
    if invalid:
        return invalid

    now = now or clock.utcnow()
    window_start = now - timedelta(hours=_window_hours())

    with atomic("update review"):
        res = db.session.execute(
            update(Review)
            .where(Review.id == review_id, Review.created_at > window_start)
            .values(rating=rating, comment=comment, updated_at=now)
        )
        if res.rowcount != 1:
            db.session.rollback()
            return failure(ErrorKind.NOT_ELIGIBLE, "Review can no longer be edited")

    db.session.refresh(review)
    logger.info("Review %s updated", review_id)
    return success(review)
