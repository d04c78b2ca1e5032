from functools import wraps
from flask import g, jsonify

def has_role(role_name: str) -> bool:
    user = getattr(g, "user", None)
    if not user:
        return False
    return user.has_role(role_name)

def require_roles(*role_names: str):
    """
    Usage: @require_roles("TUTOR")
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            user_roles = {r.name for r in user.roles}
            if not user_roles.intersection(role_names):
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator

def require_tutor_profile(fn):
    """TUTOR role plus a tutor profile (slots hang off the profile, not the user)."""
    @wraps(fn)
    @require_roles("TUTOR")
    def wrapper(*args, **kwargs):
        if g.user.tutor_profile is None:
            return jsonify(error="Tutor profile not found. Create it first via POST /tutors/me"), 409
        return fn(*args, **kwargs)
    return wrapper
