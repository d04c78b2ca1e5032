from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, g

from models import db
from models.tutor import TutorProfile
from security.rbac import require_roles
from services import schedules
from utils import clock
from utils.audit import log_event

tutors_bp = Blueprint("tutors", __name__, url_prefix="/tutors")

# largest value a Numeric(10, 2) column holds
MAX_HOURLY_RATE = Decimal("99999999.99")


def _profile_dict(profile: TutorProfile) -> dict:
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "name": profile.user.full_name,
        "subject": profile.subject,
        "bio": profile.bio,
        "hourly_rate": str(profile.hourly_rate),
    }


@tutors_bp.post("/me")
@require_roles("TUTOR")
def upsert_my_profile():
    data = request.get_json(silent=True) or {}
    subject = (data.get("subject") or "").strip()
    bio = (data.get("bio") or "").strip() or None

    if not subject or len(subject) > 120:
        return jsonify(error="subject is required (max 120 characters)"), 400
    try:
        rate = Decimal(str(data.get("hourly_rate")))
    except (InvalidOperation, ValueError):
        return jsonify(error="hourly_rate must be a number"), 400
    if not rate.is_finite() or rate < 0:
        return jsonify(error="hourly_rate must be zero or more"), 400
    if rate > MAX_HOURLY_RATE:
        return jsonify(error=f"hourly_rate must be at most {MAX_HOURLY_RATE}"), 400

    profile = g.user.tutor_profile
    created = profile is None
    if created:
        profile = TutorProfile(user_id=g.user.id)
        db.session.add(profile)

    profile.subject = subject
    profile.bio = bio
    profile.hourly_rate = rate.quantize(Decimal("0.01"))
    db.session.commit()

    log_event("TUTOR_PROFILE_CREATE" if created else "TUTOR_PROFILE_UPDATE",
              user_id=g.user.id, entity="tutor", entity_id=profile.id)
    return jsonify(_profile_dict(profile)), 201 if created else 200


@tutors_bp.get("/<int:tutor_id>")
def get_tutor(tutor_id: int):
    profile = db.session.get(TutorProfile, tutor_id)
    if not profile:
        return jsonify(error="Tutor not found"), 404

    slots = schedules.get_available(tutor_id, from_date=clock.today())
    out = _profile_dict(profile)
    out["available_slots"] = [s.to_dict() for s in slots]
    return jsonify(out), 200
