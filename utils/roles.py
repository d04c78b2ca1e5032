from services.actor import ROLE_STUDENT, ROLE_TUTOR

STUDENT = "STUDENT"
TUTOR = "TUTOR"

DEFAULT_ROLES = [STUDENT, TUTOR]

# registration form value -> role row name
SIGNUP_ROLES = {
    ROLE_STUDENT: STUDENT,
    ROLE_TUTOR: TUTOR,
}


def actor_role(user) -> str:
    """Tutor wins if a user somehow holds both roles."""
    return ROLE_TUTOR if user.has_role(TUTOR) else ROLE_STUDENT
