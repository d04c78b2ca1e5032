from functools import wraps
from flask import g, jsonify
from security.session import get_session_from_request
from models import db
from models.user import User
from services.actor import Actor
from utils.roles import actor_role

def load_current_user():
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.session = None
        return
    g.session = sess
    g.user = db.session.get(User, sess.user_id)

def current_actor():
    """Identity context handed to the core services."""
    user = getattr(g, "user", None)
    if user is None:
        return None
    profile = user.tutor_profile
    return Actor(
        user_id=user.id,
        role=actor_role(user),
        tutor_id=profile.id if profile else None,
    )

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper

def can_access_booking(actor, details, student_only: bool = False) -> bool:
    """Booking ownership: its student, or (unless student_only) the tutor whose slot it is."""
    if actor is None or details is None:
        return False
    if details.student_id == actor.user_id:
        return True
    if student_only:
        return False
    return actor.tutor_id is not None and details.tutor_id == actor.tutor_id
