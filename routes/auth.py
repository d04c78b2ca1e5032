from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User, Role
from security.password import hash_password, verify_password, password_problems
from security.session import create_session, revoke_session, set_session_cookie, clear_session_cookie
from security.csrf import issue_csrf_token
from utils.audit import log_event
from utils.auth_context import login_required, current_actor
from utils.roles import SIGNUP_ROLES


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    full_name = (data.get("full_name") or "").strip()
    role = (data.get("role") or "student").strip().lower()

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    if not full_name or len(full_name) > 120:
        return jsonify(error="full_name is required (max 120 characters)"), 400
    if role not in SIGNUP_ROLES:
        return jsonify(error="role must be one of: " + ", ".join(sorted(SIGNUP_ROLES))), 400
    problems = password_problems(password)
    if problems:
        return jsonify(error="Password does not meet policy", details=problems), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(email=email, password_hash=hash_password(password), full_name=full_name)
    db.session.add(user)
    db.session.flush()

    role_row = Role.query.filter_by(name=SIGNUP_ROLES[role]).first()
    if role_row:
        user.roles.append(role_row)

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"role": role})

    return jsonify(id=user.id, message="Registered successfully"), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    raw_token = create_session(user.id)

    resp = jsonify(message="Login OK")
    set_session_cookie(resp, raw_token)
    issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    actor = current_actor()
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        full_name=g.user.full_name,
        role=actor.role,
        roles=[r.name for r in g.user.roles],
        tutor_id=actor.tutor_id,
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "tutorslot_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    clear_session_cookie(resp)
    return resp, 200
