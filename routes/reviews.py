from flask import Blueprint, request, jsonify, g

from security.rbac import require_roles
from services import bookings, reviews
from utils.audit import log_event
from utils.auth_context import login_required, current_actor, can_access_booking
from utils.responses import error_response

reviews_bp = Blueprint("reviews", __name__)


def _review_payload(review) -> dict:
    return dict(
        review.to_dict(),
        editable=reviews.is_editable(review.id),
        remaining_edit_hours=reviews.remaining_edit_hours(review.id),
    )


@reviews_bp.post("/bookings/<int:booking_id>/review")
@require_roles("STUDENT")
def add_review(booking_id: int):
    actor = current_actor()
    if not can_access_booking(actor, bookings.get_booking(booking_id), student_only=True):
        return jsonify(error="Booking not found"), 404

    data = request.get_json(silent=True) or {}
    comment = data.get("comment")
    if comment is not None and not isinstance(comment, str):
        return jsonify(error="comment must be a string"), 400

    result = reviews.add_review(actor, booking_id, data.get("rating"), comment)
    if not result.ok:
        return error_response(result.error)

    review = result.value
    log_event("REVIEW_CREATE", user_id=g.user.id, entity="review", entity_id=review.id,
              metadata={"booking_id": booking_id, "rating": review.rating})
    return jsonify(_review_payload(review)), 201


@reviews_bp.get("/reviews/<int:review_id>")
@login_required
def get_review(review_id: int):
    review = reviews.get_review(review_id)
    if not review or not can_access_booking(current_actor(), bookings.get_booking(review.booking_id)):
        return jsonify(error="Review not found"), 404
    return jsonify(_review_payload(review)), 200


@reviews_bp.put("/reviews/<int:review_id>")
@require_roles("STUDENT")
def update_review(review_id: int):
    actor = current_actor()
    review = reviews.get_review(review_id)
    if not review or not can_access_booking(actor, bookings.get_booking(review.booking_id), student_only=True):
        return jsonify(error="Review not found"), 404

    data = request.get_json(silent=True) or {}
    comment = data.get("comment")
    if comment is not None and not isinstance(comment, str):
        return jsonify(error="comment must be a string"), 400

    result = reviews.update_review(review_id, data.get("rating"), comment)
    if not result.ok:
        return error_response(result.error)

    log_event("REVIEW_UPDATE", user_id=g.user.id, entity="review", entity_id=review_id,
              metadata={"rating": result.value.rating})
    return jsonify(_review_payload(result.value)), 200
