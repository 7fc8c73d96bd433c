from collections import defaultdict
from datetime import date
from typing import Optional, List

from telecare.core.errors import NotFoundError, PermissionDenied, ValidationError
from telecare.core.logger import get_logger
from telecare.db.models import Consultation, ConsultationStatus, UserRole
from telecare.repositories.appointment import populate_appointments
from telecare.repositories.base import FallbackRepository
from telecare.schemas.consultation import ConsultationDetail, MedicalRecordRead, PrescriptionRead
from telecare.services.access import Actor
from telecare.storage.base import StorageBackend

logger = get_logger("repositories.consultation")

async def populate_consultations(
    backend: StorageBackend, consultations: List[Consultation]
) -> List[ConsultationDetail]:
    """Attach doctor, patient, appointment and owned records, one lookup per kind for the whole batch."""
    if not consultations:
        return []
    consultation_ids = {c.id for c in consultations}
    doctors = await backend.doctor_summaries({c.doctor_id for c in consultations})
    patients = await backend.patient_summaries({c.patient_id for c in consultations})
    appointments = await backend.get_appointments({c.appointment_id for c in consultations})
    appointment_details = {a.id: a for a in await populate_appointments(backend, list(appointments.values()))}

    records = defaultdict(list)
    for record in await backend.list_medical_records(consultation_ids):
        records[record.consultation_id].append(MedicalRecordRead.model_validate(record))
    prescriptions = defaultdict(list)
    for prescription in await backend.list_prescriptions(consultation_ids):
        prescriptions[prescription.consultation_id].append(PrescriptionRead.model_validate(prescription))

    return [
        ConsultationDetail.model_validate(c).model_copy(
            update={
                "doctor": doctors.get(c.doctor_id),
                "patient": patients.get(c.patient_id),
                "appointment": appointment_details.get(c.appointment_id),
                "medical_records": records[c.id],
                "prescriptions": prescriptions[c.id],
            }
        )
        for c in consultations
    ]

async def populate_consultation(backend: StorageBackend, consultation: Consultation) -> ConsultationDetail:
    return (await populate_consultations(backend, [consultation]))[0]

class ConsultationRepository(FallbackRepository):

    async def _insert(self, backend: StorageBackend, appointment_id: int, doctor_id: int, patient_id: int) -> Consultation:
        if not await backend.get_appointment(appointment_id):
            raise NotFoundError("appointment", appointment_id)
        if not await backend.get_doctor(doctor_id):
            raise NotFoundError("doctor", doctor_id)
        if not await backend.get_patient(patient_id):
            raise NotFoundError("patient", patient_id)

        now = self.clock()
        consultation = Consultation(
            appointment_id=appointment_id,
            doctor_id=doctor_id,
            patient_id=patient_id,
            status=ConsultationStatus.IN_PROGRESS.value,
            actual_start_time=now,
            created_at=now,
            updated_at=now,
        )
        # Uniqueness per appointment is checked by the backend inside the insert
        return await backend.insert_consultation(consultation)

    async def create(self, appointment_id: int, doctor_id: int, patient_id: int) -> Consultation:
        logger.info(f"Creating consultation for appointment ID: {appointment_id}")
        return await self._run(
            "create_consultation",
            lambda backend: self._insert(backend, appointment_id, doctor_id, patient_id),
        )

    async def start_for_appointment(self, appointment_id: int, actor: Actor) -> tuple[Consultation, bool]:
        """
        Doctor-initiated start of the consultation for ``appointment_id``.

        Returns ``(consultation, created)``; starting twice hands back the
        consultation that already exists instead of failing.
        """
        async def action(backend: StorageBackend) -> tuple[Consultation, bool]:
            appointment = await backend.get_appointment(appointment_id)
            if not appointment:
                raise NotFoundError("appointment", appointment_id)
            if actor.role != UserRole.DOCTOR.value:
                raise PermissionDenied("Only doctors can start consultations")
            if actor.doctor_id != appointment.doctor_id:
                raise PermissionDenied("You are not authorized to start this consultation")

            existing = await backend.get_consultation_by_appointment(appointment_id)
            if existing:
                return existing, False
            if not appointment.is_upcoming:
                raise ValidationError(
                    f"Cannot start a consultation for an appointment with status {appointment.status}"
                )
            consultation = await self._insert(backend, appointment_id, appointment.doctor_id, appointment.patient_id)
            return consultation, True

        return await self._run("start_consultation", action)

    async def get_by_id(self, consultation_id: int) -> Optional[ConsultationDetail]:
        async def action(backend: StorageBackend) -> Optional[ConsultationDetail]:
            consultation = await backend.get_consultation(consultation_id)
            if not consultation:
                return None
            return await populate_consultation(backend, consultation)

        return await self._run("get_consultation", action)

    async def get_by_appointment_id(self, appointment_id: int) -> Optional[ConsultationDetail]:
        async def action(backend: StorageBackend) -> Optional[ConsultationDetail]:
            consultation = await backend.get_consultation_by_appointment(appointment_id)
            if not consultation:
                return None
            return await populate_consultation(backend, consultation)

        return await self._run("get_consultation_by_appointment", action)

    async def complete_consultation(self, consultation_id: int) -> Consultation:
        """Complete the consultation and its appointment in one transaction."""
        now = self.clock()
        consultation = await self._run(
            "complete_consultation",
            lambda backend: backend.close_consultation(
                consultation_id, ConsultationStatus.COMPLETED.value, stamp=now, end_time=now
            ),
        )
        logger.info(f"Consultation {consultation_id} completed with appointment {consultation.appointment_id}")
        return consultation

    async def mark_consultation_as_missed(self, consultation_id: int) -> Consultation:
        """Mark the consultation and its appointment missed in one transaction."""
        now = self.clock()
        consultation = await self._run(
            "mark_consultation_missed",
            lambda backend: backend.close_consultation(
                consultation_id, ConsultationStatus.MISSED.value, stamp=now
            ),
        )
        logger.info(f"Consultation {consultation_id} marked missed with appointment {consultation.appointment_id}")
        return consultation

    async def list_for_doctor(
        self,
        doctor_id: int,
        status: Optional[str] = None,
        on_date: Optional[date] = None,
    ) -> List[ConsultationDetail]:
        async def action(backend: StorageBackend) -> List[ConsultationDetail]:
            rows = await backend.list_consultations(doctor_id=doctor_id, status=status, on_date=on_date)
            return await populate_consultations(backend, rows)

        return await self._run("list_doctor_consultations", action)

    async def list_for_patient(self, patient_id: int, status: Optional[str] = None) -> List[ConsultationDetail]:
        async def action(backend: StorageBackend) -> List[ConsultationDetail]:
            rows = await backend.list_consultations(patient_id=patient_id, status=status)
            return await populate_consultations(backend, rows)

        return await self._run("list_patient_consultations", action)
