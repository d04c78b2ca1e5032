from datetime import timedelta

import pytest

from conftest import future, login, register
from models import db
from models.audit_log import AuditLog
from models.review import Review


def _new_slot(client, days=7, start="09:00", end="10:30"):
    resp = client.post("/schedules", json={
        "date": future(days).isoformat(),
        "start_time": start,
        "end_time": end,
    })
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def _second_student(app):
    client = app.test_client()
    register(client, "other@example.com", "student", full_name="Olga Other")
    return login(client, "other@example.com")


def _booked(tutor_client, student_client, confirm=True):
    slot = _new_slot(tutor_client)
    resp = student_client.post("/bookings", json={"schedule_id": slot["id"]})
    assert resp.status_code == 201
    booking_id = resp.get_json()["id"]
    if confirm:
        resp = tutor_client.post(f"/bookings/{booking_id}/status", json={"status": "confirmed"})
        assert resp.status_code == 200
    return booking_id


def test_health(app):
    assert app.test_client().get("/health").status_code == 200


def test_register_validation(app):
    client = app.test_client()

    assert client.post("/auth/register", json={
        "email": "a@example.com", "password": "short", "full_name": "A", "role": "student",
    }).status_code == 400
    assert client.post("/auth/register", json={
        "email": "a@example.com", "password": "password123", "full_name": "A", "role": "admin",
    }).status_code == 400

    register(client, "a@example.com", "student")
    assert client.post("/auth/register", json={
        "email": "a@example.com", "password": "password123", "full_name": "A", "role": "student",
    }).status_code == 409


def test_login_and_me(app):
    client = app.test_client()
    register(client, "s@example.com", "student", full_name="Sid")

    assert client.post("/auth/login", json={"email": "s@example.com", "password": "wrong-pass"}).status_code == 401
    login(client, "s@example.com")

    me = client.get("/auth/me").get_json()
    assert me["role"] == "student"
    assert me["full_name"] == "Sid"
    assert me["tutor_id"] is None


def test_logout_ends_session(student_client):
    assert student_client.post("/auth/logout").status_code == 200
    assert student_client.get("/auth/me").status_code == 401


def test_csrf_header_required(student_client):
    del student_client.environ_base["HTTP_X_CSRF_TOKEN"]

    resp = student_client.post("/bookings", json={"schedule_id": 1})

    assert resp.status_code == 403


def test_anonymous_is_rejected(app):
    client = app.test_client()

    assert client.post("/bookings", json={"schedule_id": 1}).status_code == 401
    assert client.get("/bookings/me").status_code == 401


def test_student_cannot_publish_slots(student_client):
    resp = student_client.post("/schedules", json={
        "date": future().isoformat(), "start_time": "09:00", "end_time": "10:00",
    })

    assert resp.status_code == 403


def test_tutor_needs_profile_for_slots(app):
    client = app.test_client()
    register(client, "t@example.com", "tutor")
    login(client, "t@example.com")

    resp = client.post("/schedules", json={
        "date": future().isoformat(), "start_time": "09:00", "end_time": "10:00",
    })

    assert resp.status_code == 409


def test_slot_validation_errors(tutor_client):
    bad_format = tutor_client.post("/schedules", json={"date": "10/06/2030", "start_time": "09:00", "end_time": "10:00"})
    past = tutor_client.post("/schedules", json={
        "date": (future(0) - timedelta(days=1)).isoformat(), "start_time": "09:00", "end_time": "10:00",
    })
    short = tutor_client.post("/schedules", json={
        "date": future().isoformat(), "start_time": "09:00", "end_time": "09:15",
    })

    assert bad_format.status_code == 400
    assert past.status_code == 400
    assert past.get_json()["code"] == "validation_error"
    assert short.status_code == 400


def test_recurring_slots(tutor_client):
    start = future(1)
    resp = tutor_client.post("/schedules/recurring", json={
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=6)).isoformat(),
        "days_of_week": [0, 1, 2, 3, 4, 5, 6],
        "start_time": "16:00",
        "end_time": "17:00",
    })

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["created_count"] == 7
    assert body["failed_count"] == 0

    again = tutor_client.post("/schedules/recurring", json={
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=6)).isoformat(),
        "days_of_week": [0, 1, 2, 3, 4, 5, 6],
        "start_time": "16:00",
        "end_time": "17:00",
    })
    assert again.status_code == 400
    assert again.get_json()["failed_count"] == 7


def test_tutor_profile_lists_open_slots(app, tutor_client):
    tutor_id = tutor_client.get("/auth/me").get_json()["tutor_id"]
    _new_slot(tutor_client, days=3)

    profile = app.test_client().get(f"/tutors/{tutor_id}").get_json()

    assert profile["subject"] == "Math"
    assert profile["hourly_rate"] == "8.00"
    assert len(profile["available_slots"]) == 1


@pytest.mark.parametrize("rate", ["1e40", "100000000", "-1", "NaN", "ten"])
def test_tutor_profile_rejects_bad_rates(app, tutor_client, rate):
    tutor_id = tutor_client.get("/auth/me").get_json()["tutor_id"]

    resp = tutor_client.post("/tutors/me", json={"subject": "Math", "hourly_rate": rate})

    assert resp.status_code == 400
    assert app.test_client().get(f"/tutors/{tutor_id}").get_json()["hourly_rate"] == "8.00"


def test_tutor_profile_accepts_largest_rate(tutor_client):
    resp = tutor_client.post("/tutors/me", json={"subject": "Math", "hourly_rate": "99999999.99"})

    assert resp.status_code == 200
    assert resp.get_json()["hourly_rate"] == "99999999.99"


def test_slot_edit_and_delete(tutor_client, student_client):
    slot = _new_slot(tutor_client)
    other = _new_slot(tutor_client, start="13:00", end="14:00")

    moved = tutor_client.put(f"/schedules/{slot['id']}", json={
        "date": future(8).isoformat(), "start_time": "10:00", "end_time": "11:00",
    })
    assert moved.status_code == 200
    assert moved.get_json()["start_time"] == "10:00"

    student_client.post("/bookings", json={"schedule_id": other["id"]})
    assert tutor_client.delete(f"/schedules/{other['id']}").status_code == 409
    assert tutor_client.delete(f"/schedules/{slot['id']}").status_code == 200

    rows = tutor_client.get("/schedules/me").get_json()
    assert [(r["id"], r["is_booked"]) for r in rows] == [(other["id"], True)]
    assert rows[0]["booking_id"] is not None


def test_booking_race_and_release(app, tutor_client, student_client):
    # one slot, two students: second gets 409, then a cancel frees it again
    other_client = _second_student(app)
    slot = _new_slot(tutor_client)

    first = student_client.post("/bookings", json={"schedule_id": slot["id"]})
    second = other_client.post("/bookings", json={"schedule_id": slot["id"]})

    assert first.status_code == 201
    assert first.get_json()["status"] == "pending"
    assert second.status_code == 409
    assert second.get_json()["code"] == "slot_unavailable"

    booking_id = first.get_json()["id"]
    cancel = student_client.post(f"/bookings/{booking_id}/status", json={"status": "cancelled", "reason": "Clash"})
    assert cancel.status_code == 200

    retry = other_client.post("/bookings", json={"schedule_id": slot["id"]})
    assert retry.status_code == 201

    with app.app_context():
        actions = [a.action for a in AuditLog.query.order_by(AuditLog.id).all()]
    assert "BOOKING_FAIL_SLOT_UNAVAILABLE" in actions
    assert "BOOKING_STATUS_CHANGE" in actions


def test_booking_status_rules(tutor_client, student_client):
    booking_id = _booked(tutor_client, student_client, confirm=False)

    own_confirm = student_client.post(f"/bookings/{booking_id}/status", json={"status": "confirmed"})
    assert own_confirm.status_code == 409
    assert own_confirm.get_json()["code"] == "illegal_transition"

    assert tutor_client.post(f"/bookings/{booking_id}/status", json={"status": "cancelled"}).status_code == 200
    revive = tutor_client.post(f"/bookings/{booking_id}/status", json={"status": "confirmed"})
    assert revive.status_code == 409

    bad = tutor_client.post(f"/bookings/{booking_id}/status", json={"status": "finished"})
    assert bad.status_code == 400


def test_bookings_are_private(app, tutor_client, student_client):
    booking_id = _booked(tutor_client, student_client, confirm=False)
    other_client = _second_student(app)

    assert other_client.get(f"/bookings/{booking_id}").status_code == 404
    assert other_client.post(f"/bookings/{booking_id}/status", json={"status": "cancelled"}).status_code == 404
    assert student_client.get(f"/bookings/{booking_id}").status_code == 200
    assert tutor_client.get(f"/bookings/{booking_id}").status_code == 200


def test_my_bookings_and_dashboard(tutor_client, student_client):
    _booked(tutor_client, student_client)
    slot = _new_slot(tutor_client, days=9)
    student_client.post("/bookings", json={"schedule_id": slot["id"]})

    mine = student_client.get("/bookings/me").get_json()
    assert len(mine) == 2
    assert [b["status"] for b in student_client.get("/bookings/me?status=pending").get_json()] == ["pending"]
    assert len(tutor_client.get("/bookings/me").get_json()) == 2

    dash = tutor_client.get("/dashboard").get_json()
    assert dash["role"] == "tutor"
    assert dash["bookings"] == {"pending": 1, "confirmed": 1, "cancelled": 0, "total": 2}
    assert student_client.get("/dashboard").get_json()["bookings"]["total"] == 2


def test_review_flow(app, tutor_client, student_client):
    booking_id = _booked(tutor_client, student_client)

    created = student_client.post(f"/bookings/{booking_id}/review", json={"rating": 5, "comment": "Great"})
    assert created.status_code == 201
    review = created.get_json()
    assert review["editable"] is True
    assert review["remaining_edit_hours"] == 24

    dup = student_client.post(f"/bookings/{booking_id}/review", json={"rating": 4})
    assert dup.status_code == 409
    assert dup.get_json()["code"] == "duplicate"

    edited = student_client.put(f"/reviews/{review['id']}", json={"rating": 4, "comment": "Good"})
    assert edited.status_code == 200
    assert edited.get_json()["rating"] == 4

    # push the review out of its edit window
    with app.app_context():
        row = db.session.get(Review, review["id"])
        row.created_at = row.created_at - timedelta(hours=25)
        db.session.commit()

    frozen = student_client.put(f"/reviews/{review['id']}", json={"rating": 1})
    assert frozen.status_code == 409
    assert frozen.get_json()["code"] == "not_eligible"

    detail = student_client.get(f"/bookings/{booking_id}").get_json()
    assert detail["review"]["rating"] == 4
    assert detail["review"]["editable"] is False
    assert detail["review"]["remaining_edit_hours"] == 0


def test_review_needs_confirmed_own_booking(app, tutor_client, student_client):
    booking_id = _booked(tutor_client, student_client, confirm=False)
    other_client = _second_student(app)

    assert student_client.post(f"/bookings/{booking_id}/review", json={"rating": 5}).status_code == 409
    assert other_client.post(f"/bookings/{booking_id}/review", json={"rating": 5}).status_code == 404
    assert tutor_client.post(f"/bookings/{booking_id}/review", json={"rating": 5}).status_code == 403


def test_payment_flow(tutor_client, student_client):
    booking_id = _booked(tutor_client, student_client)

    quote = student_client.get(f"/payments/quote?booking_id={booking_id}").get_json()
    # 90 minutes at 8.00/hour
    assert quote["amount"] == "12.00"
    assert quote["payment"] is None

    bad = student_client.post("/payments", json={"booking_id": booking_id, "payment_method": "cash"})
    assert bad.status_code == 400

    paid = student_client.post("/payments", json={"booking_id": booking_id, "payment_method": "dana"})
    assert paid.status_code == 200
    payment = paid.get_json()["payment"]
    assert payment["status"] == "completed"
    assert payment["amount"] == "12.00"
    assert payment["transaction_ref"].startswith("DA")

    again = student_client.post("/payments", json={"booking_id": booking_id, "payment_method": "gopay"})
    assert again.status_code == 409

    history = student_client.get("/payments/me").get_json()
    assert [p["id"] for p in history] == [payment["id"]]
    assert tutor_client.get("/payments/me").get_json()[0]["slot"]["start_time"] == "09:00"


def test_payment_requires_confirmed_booking(tutor_client, student_client):
    booking_id = _booked(tutor_client, student_client, confirm=False)

    resp = student_client.post("/payments", json={"booking_id": booking_id, "payment_method": "gopay"})

    assert resp.status_code == 409
    assert resp.get_json()["code"] == "not_eligible"
