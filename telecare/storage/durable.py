import asyncio
import socket
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta
from typing import AsyncIterator, Optional

import asyncpg
from sqlalchemy import exc as sa_exc, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import and_, or_, select

from telecare.core.errors import ConflictError, ConnectivityError, NotFoundError, StorageFailure, TeleCareError
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
)
from telecare.schemas.profile import PersonSummary
from telecare.storage.base import StorageBackend

logger = get_logger("storage.durable")

# OSError covers refused, unreachable host/network, DNS failures and the
# "Multiple exceptions" raised when every resolved address fails
CONNECTIVITY_ERRORS = (
    OSError,
    TimeoutError,
    asyncio.TimeoutError,
    socket.gaierror,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.CannotConnectNowError,
)


def is_connectivity_error(error: BaseException) -> bool:
    """True when ``error`` (or anything in its cause chain) means the store is unreachable."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, sa_exc.DBAPIError) and current.connection_invalidated:
            return True
        if isinstance(current, CONNECTIVITY_ERRORS):
            return True
        if isinstance(current, sa_exc.DBAPIError) and current.orig is not None:
            current = current.orig
            continue
        current = current.__cause__ or current.__context__
    return False


def _day_bounds(on_date: date) -> tuple[datetime, datetime]:
    start = datetime.combine(on_date, time.min)
    return start, start + timedelta(days=1)


class DurableBackend(StorageBackend):
    """Relational store reached through an async SQLAlchemy session factory."""

    name = "durable"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        # One transaction per backend operation; driver failures become typed errors here
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except TeleCareError:
            raise
        except Exception as e:
            if is_connectivity_error(e):
                raise ConnectivityError(f"Durable backend unreachable: {e}") from e
            logger.exception("Durable backend error")
            raise StorageFailure(f"Durable backend error: {e}") from e

    # Profiles

    async def get_patient(self, patient_id: int) -> Optional[Patient]:
        async with self._session() as session:
            return await session.get(Patient, patient_id)

    async def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        async with self._session() as session:
            return await session.get(Doctor, doctor_id)

    async def get_patient_by_user_id(self, user_id: int) -> Optional[Patient]:
        async with self._session() as session:
            result = await session.execute(select(Patient).where(Patient.user_id == user_id))
            return result.scalars().first()

    async def get_doctor_by_user_id(self, user_id: int) -> Optional[Doctor]:
        async with self._session() as session:
            result = await session.execute(select(Doctor).where(Doctor.user_id == user_id))
            return result.scalars().first()

    async def patient_summaries(self, patient_ids: set[int]) -> dict[int, PersonSummary]:
        if not patient_ids:
            return {}
        async with self._session() as session:
            stmt = (
                select(Patient, User)
                .join(User, Patient.user_id == User.id, isouter=True)
                .where(Patient.id.in_(sorted(patient_ids)))
            )
            result = await session.execute(stmt)
            return {patient.id: PersonSummary.from_profile(patient, user) for patient, user in result.all()}

    async def doctor_summaries(self, doctor_ids: set[int]) -> dict[int, PersonSummary]:
        if not doctor_ids:
            return {}
        async with self._session() as session:
            stmt = (
                select(Doctor, User)
                .join(User, Doctor.user_id == User.id, isouter=True)
                .where(Doctor.id.in_(sorted(doctor_ids)))
            )
            result = await session.execute(stmt)
            return {
                doctor.id: PersonSummary.from_profile(doctor, user, doctor.specialization)
                for doctor, user in result.all()
            }

    async def find_doctors_by_speciality(self, speciality: str, limit: int) -> list[PersonSummary]:
        async with self._session() as session:
            stmt = (
                select(Doctor, User)
                .join(User, Doctor.user_id == User.id, isouter=True)
                .where(Doctor.specialization.ilike(f"%{speciality}%"))
                .order_by(Doctor.id)
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [PersonSummary.from_profile(doctor, user, doctor.specialization) for doctor, user in result.all()]

    # Appointments

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        async with self._session() as session:
            session.add(appointment)
            await session.flush()
            await session.refresh(appointment)
            return appointment

    async def get_appointment(self, appointment_id: int) -> Optional[Appointment]:
        async with self._session() as session:
            return await session.get(Appointment, appointment_id)

    async def get_appointments(self, appointment_ids: set[int]) -> dict[int, Appointment]:
        if not appointment_ids:
            return {}
        async with self._session() as session:
            result = await session.execute(select(Appointment).where(Appointment.id.in_(sorted(appointment_ids))))
            return {a.id: a for a in result.scalars().all()}

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
        stmt = select(Appointment)
        if patient_id is not None:
            stmt = stmt.where(Appointment.patient_id == patient_id)
        if doctor_id is not None:
            stmt = stmt.where(Appointment.doctor_id == doctor_id)
        if status:
            stmt = stmt.where(Appointment.status == status)
        if on_date:
            stmt = stmt.where(Appointment.appointment_date == on_date)

        if descending:
            stmt = stmt.order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc())
        else:
            stmt = stmt.order_by(Appointment.appointment_date, Appointment.appointment_time)
        stmt = stmt.limit(limit).offset(offset)

        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_appointment(self, appointment_id: int, values: dict) -> Appointment:
        async with self._session() as session:
            stmt = select(Appointment).where(Appointment.id == appointment_id).with_for_update()
            appointment = (await session.execute(stmt)).scalars().first()
            if not appointment:
                raise NotFoundError("appointment", appointment_id)
            for key, value in values.items():
                setattr(appointment, key, value)
            session.add(appointment)
            await session.flush()
            return appointment

    async def mark_overdue_missed(self, today: date, now_time: str, stamp: datetime) -> list[Appointment]:
        # A single conditional UPDATE: rows closed concurrently are no longer upcoming and stay as they are
        stmt = (
            update(Appointment)
            .where(
                Appointment.status == AppointmentStatus.UPCOMING.value,
                or_(
                    Appointment.appointment_date < today,
                    and_(Appointment.appointment_date == today, Appointment.appointment_time < now_time),
                ),
            )
            .values(status=AppointmentStatus.MISSED.value, updated_at=stamp)
            .returning(Appointment)
        )
        async with self._session() as session:
            overdue = list((await session.execute(stmt)).scalars().all())
            return sorted(overdue, key=lambda a: (a.appointment_date, a.appointment_time))

    # Consultations

    async def insert_consultation(self, consultation: Consultation) -> Consultation:
        async with self._session() as session:
            existing = await session.execute(
                select(Consultation.id).where(Consultation.appointment_id == consultation.appointment_id)
            )
            if existing.first() is not None:
                raise ConflictError(
                    f"A consultation already exists for appointment ID {consultation.appointment_id}"
                )
            session.add(consultation)
            try:
                await session.flush()
            except sa_exc.IntegrityError as e:
                # Lost a race with a concurrent start for the same appointment
                raise ConflictError(
                    f"A consultation already exists for appointment ID {consultation.appointment_id}"
                ) from e
            await session.refresh(consultation)
            return consultation

    async def get_consultation(self, consultation_id: int) -> Optional[Consultation]:
        async with self._session() as session:
            return await session.get(Consultation, consultation_id)

    async def get_consultation_by_appointment(self, appointment_id: int) -> Optional[Consultation]:
        async with self._session() as session:
            result = await session.execute(
                select(Consultation).where(Consultation.appointment_id == appointment_id)
            )
            return result.scalars().first()

    async def list_consultations(
        self,
        *,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
        on_date: Optional[date] = None,
    ) -> list[Consultation]:
        stmt = select(Consultation)
        if doctor_id is not None:
            stmt = stmt.where(Consultation.doctor_id == doctor_id)
        if patient_id is not None:
            stmt = stmt.where(Consultation.patient_id == patient_id)
        if status:
            stmt = stmt.where(Consultation.status == status)
        if on_date:
            start, end = _day_bounds(on_date)
            stmt = stmt.where(Consultation.actual_start_time >= start, Consultation.actual_start_time < end)
        stmt = stmt.order_by(Consultation.actual_start_time.desc())

        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def close_consultation(
        self,
        consultation_id: int,
        status: str,
        stamp: datetime,
        end_time: Optional[datetime] = None,
    ) -> Consultation:
        async with self._session() as session:
            stmt = select(Consultation).where(Consultation.id == consultation_id).with_for_update()
            consultation = (await session.execute(stmt)).scalars().first()
            if not consultation:
                raise NotFoundError("consultation", consultation_id)

            consultation.status = status
            consultation.updated_at = stamp
            if end_time is not None:
                consultation.actual_end_time = end_time
            session.add(consultation)

            appointment_stmt = (
                select(Appointment).where(Appointment.id == consultation.appointment_id).with_for_update()
            )
            appointment = (await session.execute(appointment_stmt)).scalars().first()
            if not appointment:
                raise NotFoundError("appointment", consultation.appointment_id)
            appointment.status = status
            appointment.updated_at = stamp
            session.add(appointment)

            await session.flush()
            return consultation

    # Records

    async def list_medical_records(self, consultation_ids: set[int]) -> list[MedicalRecord]:
        if not consultation_ids:
            return []
        async with self._session() as session:
            result = await session.execute(
                select(MedicalRecord)
                .where(MedicalRecord.consultation_id.in_(sorted(consultation_ids)))
                .order_by(MedicalRecord.id)
            )
            return list(result.scalars().all())

    async def list_prescriptions(self, consultation_ids: set[int]) -> list[Prescription]:
        if not consultation_ids:
            return []
        async with self._session() as session:
            result = await session.execute(
                select(Prescription)
                .where(Prescription.consultation_id.in_(sorted(consultation_ids)))
                .order_by(Prescription.id)
            )
            return list(result.scalars().all())
