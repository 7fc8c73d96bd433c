from datetime import date, datetime
from typing import Optional, List

from telecare.core.errors import NotFoundError, ValidationError
from telecare.core.logger import get_logger
from telecare.core.utils import normalize_time_of_day, split_now
from telecare.db.models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    Doctor,
    Patient,
)
from telecare.repositories.base import FallbackRepository
from telecare.schemas.appointment import AppointmentDetail, AppointmentUpdate, SymptomAnalysis
from telecare.schemas.profile import PersonSummary
from telecare.storage.base import StorageBackend

logger = get_logger("repositories.appointment")

async def populate_appointments(backend: StorageBackend, appointments: List[Appointment]) -> List[AppointmentDetail]:
    """Embed patient and doctor summaries, two lookups for the whole batch."""
    if not appointments:
        return []
    patients = await backend.patient_summaries({a.patient_id for a in appointments})
    doctors = await backend.doctor_summaries({a.doctor_id for a in appointments})
    return [
        AppointmentDetail.model_validate(a).model_copy(
            update={"patient": patients.get(a.patient_id), "doctor": doctors.get(a.doctor_id)}
        )
        for a in appointments
    ]

class AppointmentRepository(FallbackRepository):

    async def create(
        self,
        patient_id: int,
        doctor_id: int,
        appointment_date: date,
        appointment_time: str,
        appointment_type: str = AppointmentType.GENERAL.value,
        notes: str = "",
        location: str = "",
        *,
        parent_appointment_id: Optional[int] = None,
        symptom_analysis: Optional[SymptomAnalysis] = None,
    ) -> Appointment:
        if not patient_id or not doctor_id or not appointment_date:
            raise ValidationError("patient_id, doctor_id, appointment_date and appointment_time are required")
        appointment_time = normalize_time_of_day(appointment_time)
        appointment_type = appointment_type or AppointmentType.GENERAL.value
        if appointment_type not in {t.value for t in AppointmentType}:
            raise ValidationError(f"Invalid appointment type '{appointment_type}'")

        async def action(backend: StorageBackend) -> Appointment:
            if not await backend.get_patient(patient_id):
                raise NotFoundError("patient", patient_id)
            if not await backend.get_doctor(doctor_id):
                raise NotFoundError("doctor", doctor_id)

            now = self.clock()
            appointment = Appointment(
                patient_id=patient_id,
                doctor_id=doctor_id,
                parent_appointment_id=parent_appointment_id,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                status=AppointmentStatus.UPCOMING.value,
                appointment_type=appointment_type,
                notes=notes or "",
                location=location or "",
                created_at=now,
                updated_at=now,
                **(symptom_analysis.model_dump() if symptom_analysis else {}),
            )
            return await backend.insert_appointment(appointment)

        logger.info(f"Creating appointment: patient {patient_id}, doctor {doctor_id}")
        return await self._run("create_appointment", action)

    async def get_by_id(self, appointment_id: int) -> Optional[AppointmentDetail]:
        async def action(backend: StorageBackend) -> Optional[AppointmentDetail]:
            appointment = await backend.get_appointment(appointment_id)
            if not appointment:
                return None
            return (await populate_appointments(backend, [appointment]))[0]

        return await self._run("get_appointment", action)

    async def list_for_patient(
        self,
        patient_id: int,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AppointmentDetail]:
        async def action(backend: StorageBackend) -> List[AppointmentDetail]:
            rows = await backend.list_appointments(
                patient_id=patient_id, status=status, descending=True, limit=limit, offset=offset
            )
            return await populate_appointments(backend, rows)

        return await self._run("list_patient_appointments", action)

    async def list_for_doctor(
        self,
        doctor_id: int,
        status: Optional[str] = None,
        on_date: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AppointmentDetail]:
        async def action(backend: StorageBackend) -> List[AppointmentDetail]:
            rows = await backend.list_appointments(
                doctor_id=doctor_id, status=status, on_date=on_date, limit=limit, offset=offset
            )
            return await populate_appointments(backend, rows)

        return await self._run("list_doctor_appointments", action)

    async def update(self, appointment_id: int, fields: dict | AppointmentUpdate) -> Appointment:
        """Merge-patch: only the fields present in ``fields`` change."""
        if isinstance(fields, AppointmentUpdate):
            patch = fields
        else:
            patch = AppointmentUpdate(**fields)
        values = patch.model_dump(exclude_unset=True)
        # Explicit nulls never erase a stored value
        values = {key: value for key, value in values.items() if value is not None}
        return await self._set(appointment_id, values, "update_appointment")

    async def attach_symptom_analysis(self, appointment_id: int, analysis: SymptomAnalysis) -> Appointment:
        values = {key: value for key, value in analysis.model_dump().items() if value is not None}
        return await self._set(appointment_id, values, "attach_symptom_analysis")

    async def cancel(self, appointment_id: int) -> Appointment:
        return await self._set_status(appointment_id, AppointmentStatus.CANCELLED)

    async def complete(self, appointment_id: int) -> Appointment:
        return await self._set_status(appointment_id, AppointmentStatus.COMPLETED)

    async def mark_missed(self, appointment_id: int) -> Appointment:
        return await self._set_status(appointment_id, AppointmentStatus.MISSED)

    async def _set_status(self, appointment_id: int, status: AppointmentStatus) -> Appointment:
        # Unconditional: the prior status is not checked
        return await self._set(appointment_id, {"status": status.value}, f"mark_appointment_{status.value}")

    async def _set(self, appointment_id: int, values: dict, operation: str) -> Appointment:
        values = dict(values, updated_at=self.clock())
        return await self._run(operation, lambda backend: backend.update_appointment(appointment_id, values))

    async def detect_and_mark_missed(self, now: Optional[datetime] = None) -> List[Appointment]:
        """
        Mark every upcoming appointment whose (date, time) is before ``now`` as missed.

        ``now`` defaults to the repository clock (naive local wall clock, the
        same basis appointment times are booked in). Appointments in any other
        status are never touched, so a second call without time passing
        returns an empty list.
        """
        now = now or self.clock()
        today, now_time = split_now(now)
        logger.info(f"Checking for missed appointments. Current date: {today}, time: {now_time}")

        return await self._run(
            "detect_and_mark_missed",
            lambda backend: backend.mark_overdue_missed(today, now_time, self.clock()),
        )

    async def find_doctors_by_speciality(self, speciality: str, limit: int = 5) -> List[PersonSummary]:
        if not speciality:
            return []
        return await self._run(
            "find_doctors_by_speciality",
            lambda backend: backend.find_doctors_by_speciality(speciality, limit),
        )

    async def get_patient_profile(self, patient_id: int) -> Optional[Patient]:
        return await self._run("get_patient", lambda backend: backend.get_patient(patient_id))

    async def get_doctor_profile(self, doctor_id: int) -> Optional[Doctor]:
        return await self._run("get_doctor", lambda backend: backend.get_doctor(doctor_id))

    async def get_patient_by_user_id(self, user_id: int) -> Optional[Patient]:
        return await self._run("get_patient_by_user", lambda backend: backend.get_patient_by_user_id(user_id))

    async def get_doctor_by_user_id(self, user_id: int) -> Optional[Doctor]:
        return await self._run("get_doctor_by_user", lambda backend: backend.get_doctor_by_user_id(user_id))

