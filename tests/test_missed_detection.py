from datetime import date, datetime

from tests.conftest import DOCTOR_ID, OTHER_PATIENT_ID, PATIENT_ID


async def test_elapsed_upcoming_appointment_is_marked_missed(appointments, clock):
    booked = await appointments.create(PATIENT_ID, DOCTOR_ID, date(2025, 6, 1), "09:00")

    missed = await appointments.detect_and_mark_missed()

    assert [a.id for a in missed] == [booked.id]
    assert missed[0].status == "missed"
    assert (await appointments.get_by_id(booked.id)).status == "missed"
    assert (await appointments.get_by_id(booked.id)).updated_at == clock.now


async def test_second_sweep_finds_nothing(appointments):
    await appointments.create(PATIENT_ID, DOCTOR_ID, date(2025, 6, 1), "09:00")
    await appointments.create(OTHER_PATIENT_ID, DOCTOR_ID, date(2025, 5, 28), "16:45")

    assert len(await appointments.detect_and_mark_missed()) == 2
    assert await appointments.detect_and_mark_missed() == []


async def test_terminal_appointments_are_left_alone(appointments):
    completed = await appointments.create(PATIENT_ID, DOCTOR_ID, date(2025, 6, 1), "09:00")
    cancelled = await appointments.create(PATIENT_ID, DOCTOR_ID, date(2025, 6, 1), "10:00")
    await appointments.complete(completed.id)
    await appointments.cancel(cancelled.id)

    assert await appointments.detect_and_mark_missed() == []
    assert (await appointments.get_by_id(completed.id)).status == "completed"
    assert (await appointments.get_by_id(cancelled.id)).status == "cancelled"


async def test_same_day_compares_time_of_day(appointments):
    earlier = await appointments.create(PATIENT_ID, DOCTOR_ID, date(2025, 6, 2), "09:59")
    now_slot = await appointments.create(PATIENT_ID, DOCTOR_ID, date(2025, 6, 2), "10:00")
    later = await appointments.create(PATIENT_ID, DOCTOR_ID, date(2025, 6, 2), "18:30")

    missed = await appointments.detect_and_mark_missed(now=datetime(2025, 6, 2, 10, 0))

    assert [a.id for a in missed] == [earlier.id]
    assert (await appointments.get_by_id(now_slot.id)).status == "upcoming"
    assert (await appointments.get_by_id(later.id)).status == "upcoming"


async def test_future_dates_are_not_touched(appointments):
    tomorrow = await appointments.create(PATIENT_ID, DOCTOR_ID, date(2025, 6, 3), "00:00")

    assert await appointments.detect_and_mark_missed() == []
    assert (await appointments.get_by_id(tomorrow.id)).status == "upcoming"


async def test_sweep_follows_the_clock(appointments, clock):
    booked = await appointments.create(PATIENT_ID, DOCTOR_ID, date(2025, 6, 2), "08:00")
    assert await appointments.detect_and_mark_missed() == []

    clock.advance(hours=8, minutes=1)

    assert [a.id for a in await appointments.detect_and_mark_missed()] == [booked.id]
