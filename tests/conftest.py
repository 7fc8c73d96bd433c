from datetime import date, datetime, timedelta

import pytest

from telecare.core.errors import ConnectivityError
from telecare.db.models import Appointment, Doctor, Patient, User, UserRole
from telecare.db.session import build_engine, build_session_factory, create_tables
from telecare.repositories.appointment import AppointmentRepository
from telecare.repositories.consultation import ConsultationRepository
from telecare.storage.durable import DurableBackend
from telecare.storage.memory import MemoryBackend

ADMIN_USER_ID = 1
DOCTOR_USER_ID = 2
PATIENT_USER_ID = 3
OTHER_DOCTOR_USER_ID = 4
OTHER_PATIENT_USER_ID = 5

DOCTOR_ID = 1
OTHER_DOCTOR_ID = 2
PATIENT_ID = 1
OTHER_PATIENT_ID = 2


class FixedClock:
    """Injectable clock that only moves when a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class UnreachableBackend:
    """Every storage call fails the way a refused connection does."""

    name = "unreachable"

    def __init__(self):
        self.calls = []

    def __getattr__(self, operation):
        async def fail(*args, **kwargs):
            self.calls.append(operation)
            raise ConnectivityError(f"connection refused during {operation}")

        return fail


def profile_rows():
    return [
        User(id=ADMIN_USER_ID, email="admin@telecare.test", first_name="Ada", last_name="Admin", role=UserRole.ADMIN.value),
        User(id=DOCTOR_USER_ID, email="dana@telecare.test", first_name="Dana", last_name="Heart", role=UserRole.DOCTOR.value),
        User(id=PATIENT_USER_ID, email="pat@telecare.test", first_name="Pat", last_name="Lee", role=UserRole.PATIENT.value),
        User(id=OTHER_DOCTOR_USER_ID, email="sam@telecare.test", first_name="Sam", last_name="Skin", role=UserRole.DOCTOR.value),
        User(id=OTHER_PATIENT_USER_ID, email="kim@telecare.test", first_name="Kim", last_name="Park", role=UserRole.PATIENT.value),
        Doctor(id=DOCTOR_ID, user_id=DOCTOR_USER_ID, specialization="Cardiology", years_of_experience=12),
        Doctor(id=OTHER_DOCTOR_ID, user_id=OTHER_DOCTOR_USER_ID, specialization="Dermatology", years_of_experience=4),
        Patient(id=PATIENT_ID, user_id=PATIENT_USER_ID, gender="Female", date_of_birth=date(1990, 4, 2)),
        Patient(id=OTHER_PATIENT_ID, user_id=OTHER_PATIENT_USER_ID, gender="Male", date_of_birth=date(1985, 9, 17)),
    ]


def seeded_memory_backend() -> MemoryBackend:
    backend = MemoryBackend()
    for row in profile_rows():
        backend.add(row)
    return backend


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 6, 2, 0, 0))


@pytest.fixture
def memory_backend():
    return seeded_memory_backend()


@pytest.fixture
async def durable_backend(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'telecare.db'}")
    await create_tables(engine)
    session_factory = build_session_factory(engine)
    async with session_factory() as session:
        async with session.begin():
            for row in profile_rows():
                session.add(row)
                await session.flush()
    yield DurableBackend(session_factory)
    await engine.dispose()


@pytest.fixture(params=["memory", "durable"])
def backend(request, memory_backend, durable_backend):
    """The same behaviour is expected from both stores."""
    if request.param == "memory":
        return memory_backend
    return durable_backend


@pytest.fixture
def unreachable():
    return UnreachableBackend()


@pytest.fixture
def appointments(backend, unreachable, clock):
    return AppointmentRepository(backend, unreachable, clock=clock)


@pytest.fixture
def consultations(backend, unreachable, clock):
    return ConsultationRepository(backend, unreachable, clock=clock)


async def remove_appointment(backend, appointment_id: int):
    """Delete an appointment row behind the repositories' back."""
    if isinstance(backend, MemoryBackend):
        backend._tables[Appointment].pop(appointment_id)
        return
    async with backend.session_factory() as session:
        async with session.begin():
            await session.delete(await session.get(Appointment, appointment_id))
