import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as tutorslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "tutorslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Schema normally comes from `flask db upgrade`; tests create it directly
    AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true"

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "tutorslot_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Registration
    PASSWORD_MIN_LEN = int(os.getenv("PASSWORD_MIN_LEN", "8"))
    BCRYPT_ROUNDS = 12

    # Scheduling policy
    MIN_SLOT_MINUTES = 30

    # Reviews can be edited for 24 hours after they are posted
    REVIEW_EDIT_WINDOW_HOURS = 24
    REVIEW_COMMENT_MAX_LEN = 1000

    # Payments
    PAYMENT_METHODS = ("gopay", "dana", "bank_transfer")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "IDR")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
