from .health import health_bp
from .auth import auth_bp
from .tutors import tutors_bp
from .schedules import schedules_bp
from .booking import booking_bp
from .reviews import reviews_bp
from .payments import payments_bp
