from datetime import datetime

from flask import Blueprint, request, jsonify, g

from security.rbac import require_tutor_profile
from services import schedules
from utils.audit import log_event
from utils.auth_context import current_actor
from utils.responses import error_response

schedules_bp = Blueprint("schedules", __name__, url_prefix="/schedules")


def _parse_date(value):
    # Expect "2026-06-10"
    return datetime.strptime(value, "%Y-%m-%d").date()

def _parse_time(value):
    # Expect "09:00"
    return datetime.strptime(value, "%H:%M").time()

def _parse_slot_fields(data):
    """Returns (date, start, end, error_response)."""
    try:
        slot_date = _parse_date(data.get("date") or "")
    except (TypeError, ValueError):
        return None, None, None, (jsonify(error="Invalid date format. Use YYYY-MM-DD"), 400)
    try:
        start = _parse_time(data.get("start_time") or "")
        end = _parse_time(data.get("end_time") or "")
    except (TypeError, ValueError):
        return None, None, None, (jsonify(error="Invalid time format. Use HH:MM"), 400)
    return slot_date, start, end, None


def _own_slot_or_404(slot_id: int, actor):
    slot = schedules.get_slot(slot_id)
    if not slot or slot.tutor_id != actor.tutor_id:
        return None
    return slot


@schedules_bp.post("")
@require_tutor_profile
def create_slot():
    data = request.get_json(silent=True) or {}
    slot_date, start, end, bad = _parse_slot_fields(data)
    if bad:
        return bad

    actor = current_actor()
    result = schedules.create_slot(actor, slot_date, start, end)
    if not result.ok:
        return error_response(result.error)

    slot = result.value
    log_event("SLOT_CREATE", user_id=g.user.id, entity="schedule", entity_id=slot.id)
    return jsonify(slot.to_dict()), 201


@schedules_bp.post("/recurring")
@require_tutor_profile
def create_recurring():
    data = request.get_json(silent=True) or {}
    try:
        start_date = _parse_date(data.get("start_date") or "")
        end_date = _parse_date(data.get("end_date") or "")
    except (TypeError, ValueError):
        return jsonify(error="Invalid date format. Use YYYY-MM-DD"), 400
    try:
        start = _parse_time(data.get("start_time") or "")
        end = _parse_time(data.get("end_time") or "")
    except (TypeError, ValueError):
        return jsonify(error="Invalid time format. Use HH:MM"), 400

    days = data.get("days_of_week")
    if not isinstance(days, list) or not all(isinstance(d, int) and not isinstance(d, bool) for d in days):
        return jsonify(error="days_of_week must be a list of numbers 0 (Sunday) to 6 (Saturday)"), 400

    actor = current_actor()
    result = schedules.create_recurring_slots(actor, start_date, end_date, days, start, end)
    if not result.ok:
        return error_response(result.error)

    outcome = result.value
    body = {
        "created": outcome.created,
        "created_count": outcome.created_count,
        "failed_count": outcome.failed_count,
        "failed": [{"date": d.isoformat(), "reason": reason} for d, reason in outcome.failed],
    }
    log_event("SLOT_CREATE_RECURRING", user_id=g.user.id, entity="tutor", entity_id=actor.tutor_id,
              metadata={"created": outcome.created_count, "failed": outcome.failed_count})

    if outcome.created_count == 0:
        body["error"] = "Failed to add any schedules"
        return jsonify(body), 400
    return jsonify(body), 201


@schedules_bp.put("/<int:slot_id>")
@require_tutor_profile
def update_slot(slot_id: int):
    actor = current_actor()
    if not _own_slot_or_404(slot_id, actor):
        return jsonify(error="Slot not found"), 404

    data = request.get_json(silent=True) or {}
    slot_date, start, end, bad = _parse_slot_fields(data)
    if bad:
        return bad

    result = schedules.update_slot(slot_id, slot_date, start, end)
    if not result.ok:
        return error_response(result.error)

    log_event("SLOT_UPDATE", user_id=g.user.id, entity="schedule", entity_id=slot_id)
    return jsonify(result.value.to_dict()), 200


@schedules_bp.delete("/<int:slot_id>")
@require_tutor_profile
def delete_slot(slot_id: int):
    actor = current_actor()
    if not _own_slot_or_404(slot_id, actor):
        return jsonify(error="Slot not found"), 404

    result = schedules.delete_slot(slot_id)
    if not result.ok:
        return error_response(result.error)

    log_event("SLOT_DELETE", user_id=g.user.id, entity="schedule", entity_id=slot_id)
    return jsonify(message="Schedule deleted"), 200


@schedules_bp.get("/me")
@require_tutor_profile
def my_schedule():
    from_str = request.args.get("from")
    from_date = None
    if from_str:
        try:
            from_date = _parse_date(from_str)
        except ValueError:
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    actor = current_actor()
    rows = schedules.get_by_tutor(actor.tutor_id, from_date=from_date)
    return jsonify([
        dict(slot.to_dict(), booking_id=booking_id)
        for slot, booking_id in rows
    ]), 200
