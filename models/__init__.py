from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .tutor import TutorProfile
from .slot import TimeSlot
from .booking import Booking
from .review import Review
from .payment import Payment
