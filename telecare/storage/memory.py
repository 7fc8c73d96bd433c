"""
In-process fallback store used while the durable backend is unreachable.

Nothing here is persisted: ids restart at 1 per entity type when the process
restarts. Every public operation runs under one global ``asyncio.Lock`` so a
read-modify-write (status transitions, the missed sweep, the consultation
pair write) is a critical section. Callers always receive copies, never the
stored instances.
"""
import asyncio
import itertools
from datetime import date, datetime
from typing import Optional

from sqlmodel import SQLModel

from telecare.core.errors import ConflictError, NotFoundError
from telecare.core.logger import get_logger
from telecare.db.models import (
    Appointment,
    AppointmentStatus,
    Consultation,
    Doctor,
    MedicalRecord,
    Patient,
    Prescription,
    User,
    UserRole,
)
from telecare.schemas.profile import PersonSummary
from telecare.storage.base import StorageBackend

logger = get_logger("storage.memory")


def _copy(model):
    return type(model)(**model.model_dump())


class MemoryBackend(StorageBackend):
    name = "fallback"

    def __init__(self, seed_demo_profiles: bool = False):
        self._lock = asyncio.Lock()
        self._tables: dict[type, dict[int, SQLModel]] = {
            User: {},
            Patient: {},
            Doctor: {},
            Appointment: {},
            Consultation: {},
            MedicalRecord: {},
            Prescription: {},
        }
        self._ids = {model: itertools.count(1) for model in self._tables}
        if seed_demo_profiles:
            self._seed_demo_profiles()

    def _seed_demo_profiles(self):
        admin = self.add(User(email="admin@example.com", first_name="Admin", last_name="User", role=UserRole.ADMIN.value))
        doctor_user = self.add(User(email="doctor@example.com", first_name="Doctor", last_name="User", role=UserRole.DOCTOR.value))
        patient_user = self.add(User(email="patient@example.com", first_name="Patient", last_name="User", role=UserRole.PATIENT.value))
        self.add(Doctor(user_id=doctor_user.id, specialization="Cardiology", license_number="DOC-12345", years_of_experience=5))
        self.add(Patient(user_id=patient_user.id, gender="Male", blood_group="O+", date_of_birth=date(1990, 1, 1)))
        logger.info(f"Seeded fallback store with demo profiles (admin user {admin.id})")

    def add(self, record: SQLModel) -> SQLModel:
        """Store ``record`` under the next id for its type and return a copy.

        Used for collaborator data (users, profiles, records) that the core
        only reads. Not locked, call before serving traffic or from tests.
        """
        return _copy(self._insert(record))

    def _insert(self, record: SQLModel) -> SQLModel:
        model = type(record)
        stored = _copy(record)
        stored.id = next(self._ids[model])
        self._tables[model][stored.id] = stored
        return stored

    def _rows(self, model) -> list:
        return list(self._tables[model].values())

    # Profiles

    async def get_patient(self, patient_id: int) -> Optional[Patient]:
        async with self._lock:
            patient = self._tables[Patient].get(patient_id)
            return _copy(patient) if patient else None

    async def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        async with self._lock:
            doctor = self._tables[Doctor].get(doctor_id)
            return _copy(doctor) if doctor else None

    async def get_patient_by_user_id(self, user_id: int) -> Optional[Patient]:
        async with self._lock:
            for patient in self._rows(Patient):
                if patient.user_id == user_id:
                    return _copy(patient)
            return None

    async def get_doctor_by_user_id(self, user_id: int) -> Optional[Doctor]:
        async with self._lock:
            for doctor in self._rows(Doctor):
                if doctor.user_id == user_id:
                    return _copy(doctor)
            return None

    async def patient_summaries(self, patient_ids: set[int]) -> dict[int, PersonSummary]:
        async with self._lock:
            summaries = {}
            for patient_id in patient_ids:
                patient = self._tables[Patient].get(patient_id)
                if patient:
                    user = self._tables[User].get(patient.user_id)
                    summaries[patient_id] = PersonSummary.from_profile(patient, user)
            return summaries

    async def doctor_summaries(self, doctor_ids: set[int]) -> dict[int, PersonSummary]:
        async with self._lock:
            summaries = {}
            for doctor_id in doctor_ids:
                doctor = self._tables[Doctor].get(doctor_id)
                if doctor:
                    user = self._tables[User].get(doctor.user_id)
                    summaries[doctor_id] = PersonSummary.from_profile(doctor, user, doctor.specialization)
            return summaries

    async def find_doctors_by_speciality(self, speciality: str, limit: int) -> list[PersonSummary]:
        needle = speciality.lower()
        async with self._lock:
            matches = [d for d in self._rows(Doctor) if needle in (d.specialization or "").lower()]
            return [
                PersonSummary.from_profile(d, self._tables[User].get(d.user_id), d.specialization)
                for d in sorted(matches, key=lambda d: d.id)[:limit]
            ]

    # Appointments

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        async with self._lock:
            return _copy(self._insert(appointment))

    async def get_appointment(self, appointment_id: int) -> Optional[Appointment]:
        async with self._lock:
            appointment = self._tables[Appointment].get(appointment_id)
            return _copy(appointment) if appointment else None

    async def get_appointments(self, appointment_ids: set[int]) -> dict[int, Appointment]:
        async with self._lock:
            table = self._tables[Appointment]
            return {i: _copy(table[i]) for i in appointment_ids if i in table}

    async def list_appointments(
        self,
        *,
        patient_id: Optional[int] = None,
        doctor_id: Optional[int] = None,
        status: Optional[str] = None,
        on_date: Optional[date] = None,
        descending: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Appointment]:
        async with self._lock:
            rows = [
                a for a in self._rows(Appointment)
                if (patient_id is None or a.patient_id == patient_id)
                and (doctor_id is None or a.doctor_id == doctor_id)
                and (not status or a.status == status)
                and (not on_date or a.appointment_date == on_date)
            ]
            rows.sort(key=lambda a: (a.appointment_date, a.appointment_time), reverse=descending)
            return [_copy(a) for a in rows[offset:offset + limit]]

    async def update_appointment(self, appointment_id: int, values: dict) -> Appointment:
        async with self._lock:
            appointment = self._tables[Appointment].get(appointment_id)
            if not appointment:
                raise NotFoundError("appointment", appointment_id)
            for key, value in values.items():
                if key != "id":
                    setattr(appointment, key, value)
            return _copy(appointment)

    async def mark_overdue_missed(self, today: date, now_time: str, stamp: datetime) -> list[Appointment]:
        async with self._lock:
            overdue = [
                a for a in self._rows(Appointment)
                if a.status == AppointmentStatus.UPCOMING.value
                and (
                    a.appointment_date < today
                    or (a.appointment_date == today and a.appointment_time < now_time)
                )
            ]
            overdue.sort(key=lambda a: (a.appointment_date, a.appointment_time))
            for appointment in overdue:
                appointment.status = AppointmentStatus.MISSED.value
                appointment.updated_at = stamp
            return [_copy(a) for a in overdue]

    # Consultations

    async def insert_consultation(self, consultation: Consultation) -> Consultation:
        async with self._lock:
            for existing in self._rows(Consultation):
                if existing.appointment_id == consultation.appointment_id:
                    raise ConflictError(
                        f"A consultation already exists for appointment ID {consultation.appointment_id}"
                    )
            return _copy(self._insert(consultation))

    async def get_consultation(self, consultation_id: int) -> Optional[Consultation]:
        async with self._lock:
            consultation = self._tables[Consultation].get(consultation_id)
            return _copy(consultation) if consultation else None

    async def get_consultation_by_appointment(self, appointment_id: int) -> Optional[Consultation]:
        async with self._lock:
            for consultation in self._rows(Consultation):
                if consultation.appointment_id == appointment_id:
                    return _copy(consultation)
            return None

    async def list_consultations(
        self,
        *,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
        on_date: Optional[date] = None,
    ) -> list[Consultation]:
        async with self._lock:
            rows = [
                c for c in self._rows(Consultation)
                if (doctor_id is None or c.doctor_id == doctor_id)
                and (patient_id is None or c.patient_id == patient_id)
                and (not status or c.status == status)
                and (not on_date or c.actual_start_time.date() == on_date)
            ]
            rows.sort(key=lambda c: c.actual_start_time, reverse=True)
            return [_copy(c) for c in rows]

    async def close_consultation(
        self,
        consultation_id: int,
        status: str,
        stamp: datetime,
        end_time: Optional[datetime] = None,
    ) -> Consultation:
        async with self._lock:
            consultation = self._tables[Consultation].get(consultation_id)
            if not consultation:
                raise NotFoundError("consultation", consultation_id)
            appointment = self._tables[Appointment].get(consultation.appointment_id)
            if not appointment:
                raise NotFoundError("appointment", consultation.appointment_id)

            # Both rows were found, nothing below can fail half way
            consultation.status = status
            consultation.updated_at = stamp
            if end_time is not None:
                consultation.actual_end_time = end_time
            appointment.status = status
            appointment.updated_at = stamp
            return _copy(consultation)

    # Records

    async def list_medical_records(self, consultation_ids: set[int]) -> list[MedicalRecord]:
        async with self._lock:
            return [_copy(r) for r in self._rows(MedicalRecord) if r.consultation_id in consultation_ids]

    async def list_prescriptions(self, consultation_ids: set[int]) -> list[Prescription]:
        async with self._lock:
            return [_copy(p) for p in self._rows(Prescription) if p.consultation_id in consultation_ids]
