import asyncio
from datetime import date

import pytest
from pymongo.errors import DuplicateKeyError

from core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from core.models import Appointment
from tests.helpers import insert_appointment


async def active_count(db, doctor_id, day, time):
    return await db.count_appointments(
        {"doctor_id": doctor_id, "date": day, "time": time, "status": {"$in": ["PENDING", "CONFIRMED"]}}
    )


async def test_patient_books_pending_appointment(booking, patient, doctor):
    created = await booking.create(patient, doctor.user_id, "2025-06-10", "09:00 AM", notes="Headache")

    assert created["status"] == "PENDING"
    assert created["date"] == "2025-06-10"
    assert created["time"] == "09:00 AM"
    assert created["notes"] == "Headache"
    assert created["doctor"]["name"] == "Dr Strange"
    assert created["doctor"]["specialty"] == "NEUROLOGIST"
    assert created["patient"]["id"] == patient.user_id
    assert created["patient"]["gender"] == "FEMALE"
    assert "slot_key" not in created


async def test_only_patients_can_book(booking, doctor, other_doctor, admin):
    for actor in (other_doctor, admin):
        with pytest.raises(AuthorizationError):
            await booking.create(actor, doctor.user_id, "2025-06-10", "09:00 AM")


async def test_booking_requires_a_doctor(booking, patient, other_patient):
    with pytest.raises(NotFoundError):
        await booking.create(patient, other_patient.user_id, "2025-06-10", "09:00 AM")
    with pytest.raises(NotFoundError):
        await booking.create(patient, "not-an-object-id", "2025-06-10", "09:00 AM")


async def test_booking_rejects_unknown_slot_and_missing_date(booking, patient, doctor):
    with pytest.raises(ValidationError):
        await booking.create(patient, doctor.user_id, "2025-06-10", "09:15 AM")
    with pytest.raises(ValidationError):
        await booking.create(patient, doctor.user_id, "", "09:00 AM")


async def test_double_booking_is_a_conflict(db, booking, patient, other_patient, doctor):
    await booking.create(patient, doctor.user_id, "2025-06-10", "09:00 AM")

    with pytest.raises(ConflictError):
        await booking.create(other_patient, doctor.user_id, "2025-06-10", "09:00 AM")

    assert await active_count(db, doctor.user_id, "2025-06-10", "09:00 AM") == 1


async def test_concurrent_bookings_single_winner(db, booking, patient, other_patient, doctor):
    results = await asyncio.gather(
        booking.create(patient, doctor.user_id, "2025-06-10", "09:00 AM"),
        booking.create(other_patient, doctor.user_id, "2025-06-10", "09:00 AM"),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, dict)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert await active_count(db, doctor.user_id, "2025-06-10", "09:00 AM") == 1


async def test_store_rejects_second_active_row(db, patient, other_patient, doctor):
    await db.create_appointment(Appointment(patient.user_id, doctor.user_id, "2025-06-10", "09:00 AM").to_dict())

    with pytest.raises(DuplicateKeyError):
        await db.create_appointment(
            Appointment(other_patient.user_id, doctor.user_id, "2025-06-10", "09:00 AM").to_dict()
        )


async def test_writer_that_passed_the_check_still_conflicts(db, booking, patient, other_patient, doctor, monkeypatch):
    await booking.create(patient, doctor.user_id, "2025-06-10", "09:00 AM")

    async def no_conflict(*args):
        return None

    # Simulate a racing request whose pre-check ran before the first insert
    monkeypatch.setattr(db, "find_active_appointment", no_conflict)

    with pytest.raises(ConflictError):
        await booking.create(other_patient, doctor.user_id, "2025-06-10", "09:00 AM")
    assert await active_count(db, doctor.user_id, "2025-06-10", "09:00 AM") == 1


async def test_cancelled_slot_can_be_rebooked(db, booking, patient, other_patient, doctor):
    first = await booking.create(patient, doctor.user_id, "2025-06-10", "09:00 AM")
    await booking.cancel(patient, str(first["_id"]))

    second = await booking.create(other_patient, doctor.user_id, "2025-06-10", "09:00 AM")

    assert second["status"] == "PENDING"
    assert await db.count_appointments({"doctor_id": doctor.user_id}) == 2


async def test_appointment_lifecycle_scenario(booking, patient, doctor, today):
    created = await booking.create(patient, doctor.user_id, "2025-06-10", "09:00 AM")
    appointment_id = str(created["_id"])
    assert created["status"] == "PENDING"

    confirmed = await booking.transition(doctor, appointment_id, "CONFIRMED")
    assert confirmed["status"] == "CONFIRMED"

    today.value = date(2025, 6, 9)
    with pytest.raises(ValidationError, match="future"):
        await booking.transition(doctor, appointment_id, "COMPLETED")

    today.value = date(2025, 6, 10)
    completed = await booking.transition(doctor, appointment_id, "COMPLETED")
    assert completed["status"] == "COMPLETED"


async def test_completing_after_the_date_is_allowed(db, booking, patient, doctor, today):
    appointment_id = await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-01", "10:00 AM", "CONFIRMED")

    completed = await booking.transition(doctor, appointment_id, "COMPLETED")

    assert completed["status"] == "COMPLETED"


async def test_only_confirmed_can_complete(db, booking, patient, doctor):
    appointment_id = await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-01", "10:00 AM", "PENDING")

    with pytest.raises(ValidationError, match="confirmed"):
        await booking.transition(doctor, appointment_id, "COMPLETED")


async def test_doctor_may_cancel_from_pending_and_confirmed(db, booking, patient, doctor):
    pending = await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-20", "09:00 AM", "PENDING")
    confirmed = await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-20", "09:30 AM", "CONFIRMED")

    assert (await booking.transition(doctor, pending, "CANCELLED"))["status"] == "CANCELLED"
    assert (await booking.transition(doctor, confirmed, "CANCELLED"))["status"] == "CANCELLED"


async def test_same_status_is_a_noop(db, booking, patient, doctor):
    appointment_id = await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-20", "09:00 AM", "PENDING")

    assert (await booking.transition(doctor, appointment_id, "PENDING"))["status"] == "PENDING"


async def test_status_changes_need_the_assigned_doctor_or_admin(db, booking, patient, doctor, other_doctor, admin):
    appointment_id = await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-20", "09:00 AM")

    for actor in (patient, other_doctor):
        with pytest.raises(AuthorizationError):
            await booking.transition(actor, appointment_id, "CONFIRMED")

    assert (await booking.transition(admin, appointment_id, "CONFIRMED"))["status"] == "CONFIRMED"


async def test_invalid_status_and_missing_appointment(db, booking, patient, doctor):
    appointment_id = await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-20", "09:00 AM")

    with pytest.raises(ValidationError):
        await booking.transition(doctor, appointment_id, "ARCHIVED")
    with pytest.raises(NotFoundError):
        await booking.transition(doctor, "665f1c2e8a1b2c3d4e5f6a7b", "CONFIRMED")


async def test_reactivating_into_a_taken_slot_conflicts(db, booking, patient, other_patient, doctor):
    first = await booking.create(patient, doctor.user_id, "2025-06-20", "09:00 AM")
    await booking.cancel(patient, str(first["_id"]))
    await booking.create(other_patient, doctor.user_id, "2025-06-20", "09:00 AM")

    with pytest.raises(ConflictError):
        await booking.transition(doctor, str(first["_id"]), "CONFIRMED")
    assert await active_count(db, doctor.user_id, "2025-06-20", "09:00 AM") == 1


async def test_cancel_is_idempotent(booking, patient, doctor):
    created = await booking.create(patient, doctor.user_id, "2025-06-10", "09:00 AM")
    appointment_id = str(created["_id"])

    assert (await booking.cancel(patient, appointment_id))["status"] == "CANCELLED"
    assert (await booking.cancel(patient, appointment_id))["status"] == "CANCELLED"


async def test_cancel_permissions(db, booking, patient, other_patient, doctor, other_doctor, admin):
    appointment_id = await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-20", "09:00 AM", "COMPLETED")

    for outsider in (other_patient, other_doctor):
        with pytest.raises(AuthorizationError):
            await booking.cancel(outsider, appointment_id)

    for allowed in (doctor, admin):
        assert (await booking.cancel(allowed, appointment_id))["status"] == "CANCELLED"

    with pytest.raises(NotFoundError):
        await booking.cancel(patient, "665f1c2e8a1b2c3d4e5f6a7b")


async def test_reads_are_scoped_by_role(db, booking, patient, other_patient, doctor, other_doctor, admin):
    mine = await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-20", "09:00 AM")
    await insert_appointment(db, other_doctor.user_id, other_patient.user_id, "2025-06-21", "09:00 AM")

    assert [str(a["_id"]) for a in await booking.list_for(patient)] == [mine]
    assert [str(a["_id"]) for a in await booking.list_for(doctor)] == [mine]
    assert len(await booking.list_for(admin)) == 2

    assert (await booking.get(patient, mine))["doctor"]["name"] == "Dr Strange"
    with pytest.raises(AuthorizationError):
        await booking.get(other_patient, mine)
    with pytest.raises(AuthorizationError):
        await booking.get(other_doctor, mine)


async def test_list_ordering(db, booking, patient, doctor):
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-12", "09:00 AM")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-10", "09:00 AM")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-15", "09:00 AM")

    assert [a["date"] for a in await booking.list_for(patient)] == ["2025-06-15", "2025-06-12", "2025-06-10"]
    assert [a["date"] for a in await booking.list_for(patient, ascending=True)] == [
        "2025-06-10",
        "2025-06-12",
        "2025-06-15",
    ]


async def test_patient_stats(db, booking, patient, doctor):
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-20", "09:00 AM", "PENDING")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-20", "09:30 AM", "CONFIRMED")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-01", "09:00 AM", "COMPLETED")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-02", "09:00 AM", "CANCELLED")

    assert await booking.patient_stats(patient) == {
        "total_appointments": 4,
        "upcoming_appointments": 2,
        "completed_appointments": 1,
        "cancelled_appointments": 1,
    }
    with pytest.raises(AuthorizationError):
        await booking.patient_stats(doctor)


async def test_upcoming_is_next_five_active_from_today(db, booking, patient, doctor):
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-09", "09:00 AM")  # past
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-11", "09:00 AM", "CANCELLED")
    for day, time in [
        ("2025-06-14", "09:00 AM"),
        ("2025-06-10", "02:00 PM"),
        ("2025-06-10", "11:00 AM"),
        ("2025-06-12", "09:00 AM"),
        ("2025-06-13", "09:00 AM"),
        ("2025-06-15", "09:00 AM"),
    ]:
        await insert_appointment(db, doctor.user_id, patient.user_id, day, time, "CONFIRMED", notes="checkup")

    upcoming = await booking.upcoming(patient)

    assert [(a["date"], a["time"]) for a in upcoming] == [
        ("2025-06-10", "11:00 AM"),
        ("2025-06-10", "02:00 PM"),
        ("2025-06-12", "09:00 AM"),
        ("2025-06-13", "09:00 AM"),
        ("2025-06-14", "09:00 AM"),
    ]
    assert upcoming[0]["doctor_name"] == "Dr Strange"
    assert upcoming[0]["reason"] == "checkup"


async def test_doctor_stats(db, booking, patient, other_patient, doctor):
    # 2025-06-10 is a Tuesday, its week starts on Sunday 2025-06-08
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-10", "09:00 AM", "PENDING")
    await insert_appointment(db, doctor.user_id, other_patient.user_id, "2025-06-10", "09:30 AM", "CONFIRMED")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-10", "10:00 AM", "CANCELLED")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-08", "09:00 AM", "COMPLETED")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-14", "09:00 AM", "PENDING")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-07", "09:00 AM", "COMPLETED")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-15", "09:00 AM", "PENDING")

    assert await booking.doctor_stats(doctor) == {
        "total_patients": 2,
        "today_appointments": 2,
        "today_pending": 1,
        "week_appointments": 4,
        "total_pending": 3,
        "total_completed": 2,
    }


async def test_weekly_schedule(db, booking, patient, doctor):
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-11", "02:00 PM")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-11", "09:00 AM")
    await insert_appointment(db, doctor.user_id, patient.user_id, "2025-06-17", "09:00 AM")

    schedule = await booking.weekly_schedule(doctor, "2025-06-10")

    assert schedule["start_date"] == "2025-06-10"
    assert schedule["end_date"] == "2025-06-17"
    assert len(schedule["days"]) == 7
    assert [d["total_appointments"] for d in schedule["days"]] == [0, 2, 0, 0, 0, 0, 0]
    assert [a["time"] for a in schedule["days"][1]["appointments"]] == ["09:00 AM", "02:00 PM"]
    assert schedule["days"][1]["appointments"][0]["patient"]["name"] == "Pat Patient"
