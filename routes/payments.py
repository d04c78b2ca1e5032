from flask import Blueprint, request, jsonify, g, current_app

from security.rbac import require_roles
from services import bookings, payments
from utils.audit import log_event
from utils.auth_context import login_required, current_actor, can_access_booking
from utils.responses import error_response

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


def _history_row(payment) -> dict:
    slot = payment.booking.slot
    return dict(
        payment.to_dict(),
        slot={
            "id": slot.id,
            "date": slot.date.isoformat(),
            "start_time": slot.start_time.strftime("%H:%M"),
            "end_time": slot.end_time.strftime("%H:%M"),
        },
    )


@payments_bp.get("/quote")
@require_roles("STUDENT")
def quote():
    booking_id = request.args.get("booking_id", type=int)
    details = bookings.get_booking(booking_id) if booking_id else None
    if not can_access_booking(current_actor(), details, student_only=True):
        return jsonify(error="Booking not found"), 404

    existing = payments.get_payment_for_booking(booking_id)
    return jsonify(
        booking_id=booking_id,
        amount=str(payments.calculate_amount(details)),
        currency=current_app.config.get("PAYMENT_CURRENCY", "IDR"),
        methods=list(current_app.config.get("PAYMENT_METHODS", ())),
        payment=existing.to_dict() if existing else None,
    ), 200


@payments_bp.post("")
@require_roles("STUDENT")
def submit_payment():
    data = request.get_json(silent=True) or {}
    booking_id = data.get("booking_id")
    method = data.get("payment_method")
    if not isinstance(booking_id, int) or isinstance(booking_id, bool):
        return jsonify(error="booking_id required"), 400

    if not can_access_booking(current_actor(), bookings.get_booking(booking_id), student_only=True):
        return jsonify(error="Booking not found"), 404

    payment = payments.get_payment_for_booking(booking_id)
    if payment is None:
        # amount is always derived server-side, never taken from the request
        created = payments.create_payment(booking_id, method)
        if not created.ok:
            return error_response(created.error)
        payment = created.value
        log_event("PAYMENT_CREATE", user_id=g.user.id, entity="payment", entity_id=payment.id,
                  metadata={"booking_id": booking_id, "amount": str(payment.amount), "method": method})

    result = payments.process_payment(payment.id, method)
    if not result.ok:
        return error_response(result.error)

    payment = result.value
    log_event("PAYMENT_PROCESSED", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"status": payment.status, "transaction_ref": payment.transaction_ref})

    if payment.status != payments.COMPLETED:
        return jsonify(error="Payment processing failed", payment=payment.to_dict()), 402
    return jsonify(message="Payment completed successfully", payment=payment.to_dict()), 200


@payments_bp.get("/me")
@login_required
def payment_history():
    actor = current_actor()
    if actor.is_tutor:
        rows = payments.get_payments_for_tutor(actor.tutor_id) if actor.tutor_id else []
    else:
        rows = payments.get_payments_for_student(actor.user_id)
    return jsonify([_history_row(p) for p in rows]), 200
