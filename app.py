import logging
from decimal import Decimal

import click
from flask import Flask, jsonify

from config import Config
from routes import (
    health_bp,
    auth_bp,
    tutors_bp,
    schedules_bp,
    booking_bp,
    reviews_bp,
    payments_bp,
)

from models import db
from models.db import configure_sqlite
from models.user import User, Role
from models.tutor import TutorProfile
from flask_migrate import Migrate
from services.results import StorageFailure
from utils.seed import seed_roles
from utils.auth_context import load_current_user
from utils.roles import TUTOR
from security.csrf import csrf_protect

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(tutors_bp)
    app.register_blueprint(schedules_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(reviews_bp)
    app.register_blueprint(payments_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            configure_sqlite(db.engine)
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        # Seed default roles at startup (safe & idempotent)
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        return csrf_protect()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    @app.errorhandler(StorageFailure)
    def _storage_failure(exc):
        logger.error("Storage failure: %s", exc)
        return jsonify(error="Something went wrong, please try again"), 500

    register_cli(app)

    return app


def register_cli(app):
    @app.cli.command("seed-roles")
    def seed_roles_command():
        """Create the STUDENT and TUTOR roles if missing."""
        seed_roles()
        click.echo("Roles seeded")

    @app.cli.command("make-tutor")
    @click.argument("email")
    @click.option("--subject", default="General", show_default=True)
    @click.option("--rate", "hourly_rate", default="0.00", show_default=True)
    def make_tutor(email, subject, hourly_rate):
        """Grant TUTOR to a user by email and give them a tutor profile."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        tutor_role = Role.query.filter_by(name=TUTOR).first()
        if not tutor_role:
            tutor_role = Role(name=TUTOR)
            db.session.add(tutor_role)

        if tutor_role not in user.roles:
            user.roles.append(tutor_role)
        if user.tutor_profile is None:
            db.session.add(TutorProfile(user_id=user.id, subject=subject, hourly_rate=Decimal(hourly_rate)))
        db.session.commit()

        click.echo(f"{user.email} is now a tutor")


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
