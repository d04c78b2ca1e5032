import threading
from datetime import datetime, time

import pytest

from conftest import future
from models import db
from services import bookings, schedules
from services.bookings import BookingStatus
from services.results import ErrorKind
from utils import clock


@pytest.fixture
def slot(tutor):
    return schedules.create_slot(tutor, future(), time(9, 0), time(10, 0)).value


def test_create_booking_reserves_slot(student, slot):
    result = bookings.create_booking(student, slot.id)

    assert result.ok
    booking = result.value
    assert booking.status == BookingStatus.PENDING.value
    assert booking.student_id == student.user_id
    assert schedules.get_slot(slot.id).is_booked is True
    assert not schedules.is_available(slot.id)


def test_second_booking_is_rejected(make_student, student, slot):
    other = make_student("other@example.com", "Olga Other")
    assert bookings.create_booking(student, slot.id).ok

    result = bookings.create_booking(other, slot.id)

    assert result.error.kind is ErrorKind.SLOT_UNAVAILABLE
    assert len(bookings.get_bookings_for_student(other.user_id)) == 0


def test_booking_unknown_slot(student):
    assert bookings.create_booking(student, 12345).error.kind is ErrorKind.NOT_FOUND


def test_booking_started_slot(tutor, student):
    slot = schedules.create_slot(tutor, clock.today(), time(0, 0), time(0, 30)).value

    result = bookings.create_booking(student, slot.id, now=datetime.combine(slot.date, time(0, 15)))

    assert result.error.kind is ErrorKind.VALIDATION
    assert schedules.is_available(slot.id)


def test_concurrent_reservations_have_one_winner(app, make_student, slot):
    students = [make_student(f"racer{i}@example.com", f"Racer {i}") for i in range(6)]
    slot_id = slot.id
    # release the main thread's transaction before the workers start
    db.session.remove()

    barrier = threading.Barrier(len(students))
    outcomes = []
    lock = threading.Lock()

    def attempt(actor):
        with app.app_context():
            barrier.wait(timeout=30)
            result = bookings.create_booking(actor, slot_id)
            with lock:
                outcomes.append(result.error.kind if result.error else "ok")
            db.session.remove()

    threads = [threading.Thread(target=attempt, args=(s,)) for s in students]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count(ErrorKind.SLOT_UNAVAILABLE) == len(students) - 1
    tutor_bookings = bookings.get_bookings_for_tutor(schedules.get_slot(slot_id).tutor_id)
    assert len(tutor_bookings) == 1


def test_tutor_confirms(tutor, student, slot):
    booking = bookings.create_booking(student, slot.id).value

    result = bookings.update_status(tutor, booking.id, "confirmed")

    assert result.ok
    assert result.value.status == "confirmed"
    assert result.value.updated_at is not None
    assert schedules.get_slot(slot.id).is_booked is True


@pytest.mark.parametrize("who", ["student", "tutor"])
def test_cancel_releases_slot(request, who, student, slot):
    actor = request.getfixturevalue(who)
    booking = bookings.create_booking(student, slot.id).value

    result = bookings.update_status(actor, booking.id, "cancelled", reason="  Sick today  ")

    assert result.ok
    assert result.value.status == "cancelled"
    assert result.value.cancel_reason == "Sick today"
    assert result.value.cancelled_at is not None
    assert schedules.get_slot(slot.id).is_booked is False


def test_cancelled_slot_can_be_booked_again(make_student, student, tutor, slot):
    first = bookings.create_booking(student, slot.id).value
    bookings.update_status(tutor, first.id, "confirmed")
    bookings.update_status(student, first.id, "cancelled")
    other = make_student("other@example.com", "Olga Other")

    result = bookings.create_booking(other, slot.id)

    assert result.ok
    assert schedules.get_slot(slot.id).is_booked is True
    # the cancelled booking stays as history
    assert bookings.get_booking(first.id).status == "cancelled"


def test_student_cannot_confirm(student, slot):
    booking = bookings.create_booking(student, slot.id).value

    result = bookings.update_status(student, booking.id, "confirmed")

    assert result.error.kind is ErrorKind.ILLEGAL_TRANSITION
    assert bookings.get_booking(booking.id).status == "pending"


@pytest.mark.parametrize("path,target", [
    (["cancelled"], "confirmed"),
    (["cancelled"], "pending"),
    (["cancelled"], "cancelled"),
    (["confirmed"], "pending"),
    (["confirmed"], "confirmed"),
    ([], "pending"),
])
def test_illegal_transitions(tutor, student, slot, path, target):
    booking = bookings.create_booking(student, slot.id).value
    for status in path:
        assert bookings.update_status(tutor, booking.id, status).ok
    before = bookings.get_booking(booking.id).status
    booked_before = schedules.get_slot(slot.id).is_booked

    result = bookings.update_status(tutor, booking.id, target)

    assert result.error.kind is ErrorKind.ILLEGAL_TRANSITION
    assert bookings.get_booking(booking.id).status == before
    assert schedules.get_slot(slot.id).is_booked is booked_before


def test_unknown_status(tutor, student, slot):
    booking = bookings.create_booking(student, slot.id).value

    assert bookings.update_status(tutor, booking.id, "done").error.kind is ErrorKind.VALIDATION
    assert bookings.update_status(tutor, 999, "confirmed").error.kind is ErrorKind.NOT_FOUND


def test_booking_details(tutor, student, slot):
    booking = bookings.create_booking(student, slot.id).value

    details = bookings.get_booking(booking.id)

    assert details.tutor_id == tutor.tutor_id
    assert details.tutor_name == "Tia Tutor"
    assert details.tutor_subject == "Math"
    assert details.student_name == "Sam Student"
    assert details.date == slot.date
    assert details.review_id is None
    assert details.payment_status is None
    out = details.to_dict()
    assert out["slot"]["start_time"] == "09:00"
    assert out["tutor"]["hourly_rate"] == "10.00"


def test_lists_are_newest_first(tutor, student):
    early = schedules.create_slot(tutor, future(3), time(9, 0), time(10, 0)).value
    late = schedules.create_slot(tutor, future(5), time(9, 0), time(10, 0)).value
    later_same_day = schedules.create_slot(tutor, future(5), time(13, 0), time(14, 0)).value
    ids = [bookings.create_booking(student, s.id).value.id for s in (early, late, later_same_day)]

    for_student = [b.id for b in bookings.get_bookings_for_student(student.user_id)]
    for_tutor = [b.id for b in bookings.get_bookings_for_tutor(tutor.tutor_id)]

    assert for_student == [ids[2], ids[1], ids[0]]
    assert for_tutor == for_student


def test_booking_counts(tutor, student):
    a = schedules.create_slot(tutor, future(3), time(9, 0), time(10, 0)).value
    b = schedules.create_slot(tutor, future(4), time(9, 0), time(10, 0)).value
    c = schedules.create_slot(tutor, future(5), time(9, 0), time(10, 0)).value
    first = bookings.create_booking(student, a.id).value
    second = bookings.create_booking(student, b.id).value
    bookings.create_booking(student, c.id)
    bookings.update_status(tutor, first.id, "confirmed")
    bookings.update_status(student, second.id, "cancelled")

    counts = bookings.booking_counts(tutor_id=tutor.tutor_id)

    assert counts == {"pending": 1, "confirmed": 1, "cancelled": 1, "total": 3}
    assert bookings.booking_counts(student_id=student.user_id) == counts
    assert bookings.booking_counts(student_id=999) == bookings.empty_counts()
