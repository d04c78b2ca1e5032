from datetime import timedelta
from decimal import Decimal

import pytest

from app import create_app
from models import db
from models.user import User, Role
from models.tutor import TutorProfile
from security.password import hash_password
from services.actor import Actor, ROLE_STUDENT, ROLE_TUTOR
from utils import clock
from utils.roles import STUDENT, TUTOR

PASSWORD = "password123"


@pytest.fixture
def app(tmp_path):
    # file-backed so worker threads get their own connections
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///" + str(tmp_path / "tutorslot-test.db"),
        "AUTO_CREATE_TABLES": True,
        "LOG_LEVEL": "WARNING",
        "BCRYPT_ROUNDS": 4,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app
        db.session.remove()


def future(days: int = 7):
    return clock.today() + timedelta(days=days)


def _add_user(email, full_name, role_name):
    user = User(email=email, password_hash=hash_password(PASSWORD), full_name=full_name)
    user.roles.append(Role.query.filter_by(name=role_name).one())
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def make_student(ctx):
    def _make(email="student@example.com", full_name="Sam Student"):
        user = _add_user(email, full_name, STUDENT)
        return Actor(user_id=user.id, role=ROLE_STUDENT)
    return _make


@pytest.fixture
def make_tutor(ctx):
    def _make(email="tutor@example.com", full_name="Tia Tutor", subject="Math", hourly_rate="10.00"):
        user = _add_user(email, full_name, TUTOR)
        profile = TutorProfile(user_id=user.id, subject=subject, hourly_rate=Decimal(hourly_rate))
        db.session.add(profile)
        db.session.commit()
        return Actor(user_id=user.id, role=ROLE_TUTOR, tutor_id=profile.id)
    return _make


@pytest.fixture
def student(make_student):
    return make_student()


@pytest.fixture
def tutor(make_tutor):
    return make_tutor()


# ---------- HTTP helpers ----------

def register(client, email, role, full_name="Test User"):
    resp = client.post("/auth/register", json={
        "email": email,
        "password": PASSWORD,
        "full_name": full_name,
        "role": role,
    })
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["id"]


def login(client, email):
    resp = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    # double-submit: echo the CSRF cookie back as a header on every request
    client.environ_base["HTTP_X_CSRF_TOKEN"] = client.get_cookie("csrf_token").value
    return client


@pytest.fixture
def tutor_client(app):
    client = app.test_client()
    register(client, "tutor@example.com", "tutor", full_name="Tia Tutor")
    login(client, "tutor@example.com")
    resp = client.post("/tutors/me", json={"subject": "Math", "bio": "Algebra", "hourly_rate": "8.00"})
    assert resp.status_code == 201
    return client


@pytest.fixture
def student_client(app):
    client = app.test_client()
    register(client, "student@example.com", "student", full_name="Sam Student")
    return login(client, "student@example.com")
