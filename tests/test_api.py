import jwt
import pytest
from httpx import AsyncClient, ASGITransport

from telecare.core.config import settings
from telecare.core.errors import ConflictError
from telecare.main import create_app
from telecare.storage.memory import MemoryBackend
from tests.conftest import (
    ADMIN_USER_ID,
    DOCTOR_ID,
    DOCTOR_USER_ID,
    OTHER_DOCTOR_USER_ID,
    OTHER_PATIENT_ID,
    PATIENT_ID,
    PATIENT_USER_ID,
    UnreachableBackend,
    seeded_memory_backend,
)

API = settings.API_V1_STR


def auth(user_id: int, role: str) -> dict:
    token = jwt.encode({"sub": str(user_id), "role": role}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


ADMIN = auth(ADMIN_USER_ID, "admin")
DOCTOR = auth(DOCTOR_USER_ID, "doctor")
OTHER_DOCTOR = auth(OTHER_DOCTOR_USER_ID, "doctor")
PATIENT = auth(PATIENT_USER_ID, "patient")


def make_client(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
async def app(clock):
    app = create_app(durable=seeded_memory_backend(), fallback=MemoryBackend(), clock=clock, scheduler_enabled=False)
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
async def client(app):
    async with make_client(app) as ac:
        yield ac


async def book(client, **overrides):
    payload = {
        "patient_id": PATIENT_ID,
        "doctor_id": DOCTOR_ID,
        "appointment_date": "2025-06-10",
        "appointment_time": "09:30",
        "notes": "follow up on blood work",
    }
    payload.update(overrides)
    return await client.post(f"{API}/appointments", json=payload, headers=PATIENT)


async def test_patient_books_an_appointment(client):
    response = await book(client)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "upcoming"
    assert data["patient"]["name"] == "Pat Lee"
    assert data["doctor"]["specialization"] == "Cardiology"


async def test_patient_cannot_book_for_someone_else(client):
    response = await book(client, patient_id=OTHER_PATIENT_ID)

    assert response.status_code == 403


async def test_missing_token_is_rejected(client):
    response = await client.get(f"{API}/appointments/1")

    assert response.status_code == 401


async def test_unknown_appointment_is_404(client):
    response = await client.get(f"{API}/appointments/999", headers=ADMIN)

    assert response.status_code == 404
    assert response.json() == {"detail": "Appointment with ID 999 not found", "error": "not_found"}


async def test_invalid_time_is_400(client):
    created = (await book(client)).json()

    response = await client.patch(
        f"{API}/appointments/{created['id']}", json={"appointment_time": "31:00"}, headers=ADMIN
    )

    assert response.status_code == 400
    assert response.json()["error"] == "validation"


async def test_patch_keeps_untouched_fields(client):
    created = (await book(client)).json()

    response = await client.patch(f"{API}/appointments/{created['id']}", json={"location": "Video"}, headers=DOCTOR)

    assert response.status_code == 200
    assert response.json()["location"] == "Video"
    assert response.json()["notes"] == "follow up on blood work"


async def test_patient_may_only_cancel(client):
    created = (await book(client)).json()
    url = f"{API}/appointments/{created['id']}"

    assert (await client.patch(url, json={"status": "completed"}, headers=PATIENT)).status_code == 403
    response = await client.patch(url, json={"status": "cancelled"}, headers=PATIENT)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


async def test_other_doctor_cannot_view(client):
    created = (await book(client)).json()

    response = await client.get(f"{API}/appointments/{created['id']}", headers=OTHER_DOCTOR)

    assert response.status_code == 403


async def test_consultation_lifecycle(client):
    created = (await book(client)).json()

    started = await client.post(f"{API}/consultations/appointment/{created['id']}", headers=DOCTOR)
    assert started.status_code == 201
    consultation = started.json()
    assert consultation["status"] == "in_progress"
    assert consultation["appointment"]["id"] == created["id"]

    again = await client.post(f"{API}/consultations/appointment/{created['id']}", headers=DOCTOR)
    assert again.status_code == 200
    assert again.json()["id"] == consultation["id"]

    patient_close = await client.post(f"{API}/consultations/{consultation['id']}/complete", headers=PATIENT)
    assert patient_close.status_code == 403

    completed = await client.post(f"{API}/consultations/{consultation['id']}/complete", headers=DOCTOR)
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["appointment"]["status"] == "completed"

    mine = await client.get(f"{API}/consultations/patient/{PATIENT_ID}", headers=PATIENT)
    assert [c["id"] for c in mine.json()] == [consultation["id"]]


async def test_only_the_assigned_doctor_starts_a_consultation(client):
    created = (await book(client)).json()

    response = await client.post(f"{API}/consultations/appointment/{created['id']}", headers=OTHER_DOCTOR)

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


async def test_conflict_is_409(app, client):
    @app.get("/conflict")
    async def conflict():
        raise ConflictError("A consultation already exists for appointment ID 1")

    response = await client.get("/conflict")

    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


async def test_manual_sweep_requires_admin(client):
    await book(client, appointment_date="2025-06-01", appointment_time="09:00")

    assert (await client.post(f"{API}/admin/missed-appointments/check", headers=DOCTOR)).status_code == 403

    response = await client.post(f"{API}/admin/missed-appointments/check", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["missed_count"] == 1
    assert response.json()["appointments"][0]["status"] == "missed"

    status = (await client.get(f"{API}/admin/scheduler", headers=ADMIN)).json()
    assert status["running"] is False
    assert status["last_missed_count"] == 1


async def test_requests_are_served_from_the_fallback(clock):
    app = create_app(durable=UnreachableBackend(), fallback=seeded_memory_backend(), clock=clock, scheduler_enabled=False)
    async with app.router.lifespan_context(app):
        async with make_client(app) as client:
            response = await book(client)

    assert response.status_code == 201
    assert response.json()["id"] == 1


async def test_storage_outage_is_503_and_degraded(clock):
    app = create_app(durable=UnreachableBackend(), fallback=UnreachableBackend(), clock=clock, scheduler_enabled=False)
    async with app.router.lifespan_context(app):
        async with make_client(app) as client:
            response = await client.get(f"{API}/appointments/1", headers=ADMIN)

    assert response.status_code == 503
    assert response.json()["degraded"] is True
    assert response.json()["error"] == "storage_failure"
    assert response.headers["Retry-After"] == "30"


async def test_scheduler_runs_with_the_app(clock):
    app = create_app(durable=seeded_memory_backend(), fallback=MemoryBackend(), clock=clock, scheduler_enabled=True)
    async with app.router.lifespan_context(app):
        assert app.state.scheduler.is_running
        assert app.state.scheduler.last_missed_count == 0
    assert not app.state.scheduler.is_running
