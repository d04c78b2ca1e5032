from flask import Blueprint, request, jsonify, g

from security.rbac import require_roles
from services import bookings, payments, reviews
from services.results import ErrorKind
from utils.audit import log_event
from utils.auth_context import login_required, current_actor, can_access_booking
from utils.responses import error_response

booking_bp = Blueprint("booking", __name__)


# ---------- STUDENTS: book slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/bookings")
@require_roles("STUDENT")
def create_booking():
    data = request.get_json(silent=True) or {}
    schedule_id = data.get("schedule_id")
    if not isinstance(schedule_id, int) or isinstance(schedule_id, bool):
        return jsonify(error="schedule_id required"), 400

    actor = current_actor()
    result = bookings.create_booking(actor, schedule_id)
    if not result.ok:
        if result.error.kind is ErrorKind.SLOT_UNAVAILABLE:
            log_event("BOOKING_FAIL_SLOT_UNAVAILABLE", user_id=g.user.id, entity="schedule", entity_id=schedule_id)
        return error_response(result.error)

    booking = result.value
    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"schedule_id": schedule_id})
    return jsonify(id=booking.id, status=booking.status), 201


# ---------- STUDENT/TUTOR: view one booking ----------
@booking_bp.get("/bookings/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    actor = current_actor()
    details = bookings.get_booking(booking_id)
    if not can_access_booking(actor, details):
        return jsonify(error="Booking not found"), 404

    out = details.to_dict()
    review = reviews.get_review_for_booking(booking_id)
    if review:
        out["review"] = dict(
            review.to_dict(),
            editable=reviews.is_editable(review.id),
            remaining_edit_hours=reviews.remaining_edit_hours(review.id),
        )
    payment = payments.get_payment_for_booking(booking_id)
    out["payment"] = payment.to_dict() if payment else None
    return jsonify(out), 200


# ---------- STUDENT/TUTOR: confirm or cancel ----------
@booking_bp.post("/bookings/<int:booking_id>/status")
@login_required
def update_booking_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    new_status = (data.get("status") or "").strip().lower()
    reason = data.get("reason")
    if reason is not None and not isinstance(reason, str):
        return jsonify(error="reason must be a string"), 400

    actor = current_actor()
    if not can_access_booking(actor, bookings.get_booking(booking_id)):
        return jsonify(error="Booking not found"), 404

    result = bookings.update_status(actor, booking_id, new_status, reason=reason)
    if not result.ok:
        return error_response(result.error)

    booking = result.value
    log_event("BOOKING_STATUS_CHANGE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"status": booking.status, "reason": booking.cancel_reason})
    return jsonify(id=booking.id, status=booking.status), 200


# ---------- STUDENT/TUTOR: my bookings ----------
@booking_bp.get("/bookings/me")
@login_required
def my_bookings():
    actor = current_actor()
    if actor.is_tutor:
        rows = bookings.get_bookings_for_tutor(actor.tutor_id) if actor.tutor_id else []
    else:
        rows = bookings.get_bookings_for_student(actor.user_id)

    # optional: status filter
    status = request.args.get("status")
    if status:
        rows = [b for b in rows if b.status == status]

    return jsonify([b.to_dict() for b in rows]), 200


@booking_bp.get("/dashboard")
@login_required
def dashboard():
    actor = current_actor()
    if actor.is_tutor:
        counts = bookings.booking_counts(tutor_id=actor.tutor_id) if actor.tutor_id else bookings.empty_counts()
    else:
        counts = bookings.booking_counts(student_id=actor.user_id)
    return jsonify(role=actor.role, bookings=counts), 200
