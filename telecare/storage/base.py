"""
Storage backend contract shared by the durable (relational) store and the
in-process fallback store.

Both implementations must behave identically for every operation below; the
repositories pick one per call and never mix them inside one operation.
Implementations raise ``NotFoundError``/``ConflictError`` for business rule
failures and ``ConnectivityError`` only when the store cannot be reached.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from telecare.db.models import (
    Appointment,
    Consultation,
    Doctor,
    MedicalRecord,
    Patient,
    Prescription,
)
from telecare.schemas.profile import PersonSummary


class StorageBackend(ABC):
    name = "storage"

    # Profiles (read only collaborators)

    @abstractmethod
    async def get_patient(self, patient_id: int) -> Optional[Patient]: ...

    @abstractmethod
    async def get_doctor(self, doctor_id: int) -> Optional[Doctor]: ...

    @abstractmethod
    async def get_patient_by_user_id(self, user_id: int) -> Optional[Patient]: ...

    @abstractmethod
    async def get_doctor_by_user_id(self, user_id: int) -> Optional[Doctor]: ...

    @abstractmethod
    async def patient_summaries(self, patient_ids: set[int]) -> dict[int, PersonSummary]: ...

    @abstractmethod
    async def doctor_summaries(self, doctor_ids: set[int]) -> dict[int, PersonSummary]: ...

    @abstractmethod
    async def find_doctors_by_speciality(self, speciality: str, limit: int) -> list[PersonSummary]: ...

    # Appointments

    @abstractmethod
    async def insert_appointment(self, appointment: Appointment) -> Appointment: ...

    @abstractmethod
    async def get_appointment(self, appointment_id: int) -> Optional[Appointment]: ...

    @abstractmethod
    async def get_appointments(self, appointment_ids: set[int]) -> dict[int, Appointment]: ...

    @abstractmethod
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
    ) -> list[Appointment]: ...

    @abstractmethod
    async def update_appointment(self, appointment_id: int, values: dict) -> Appointment:
        """Apply ``values`` to one appointment as a single critical section.

        Raises ``NotFoundError`` when the appointment does not exist.
        """

    @abstractmethod
    async def mark_overdue_missed(self, today: date, now_time: str, stamp: datetime) -> list[Appointment]:
        """Mark every upcoming appointment scheduled before (today, now_time) as missed.

        Returns the appointments that were transitioned by this call only.
        """

    # Consultations

    @abstractmethod
    async def insert_consultation(self, consultation: Consultation) -> Consultation:
        """Insert unless the appointment already has one (``ConflictError``)."""

    @abstractmethod
    async def get_consultation(self, consultation_id: int) -> Optional[Consultation]: ...

    @abstractmethod
    async def get_consultation_by_appointment(self, appointment_id: int) -> Optional[Consultation]: ...

    @abstractmethod
    async def list_consultations(
        self,
        *,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
        on_date: Optional[date] = None,
    ) -> list[Consultation]: ...

    @abstractmethod
    async def close_consultation(
        self,
        consultation_id: int,
        status: str,
        stamp: datetime,
        end_time: Optional[datetime] = None,
    ) -> Consultation:
        """Move a consultation and its appointment to ``status`` atomically.

        Both rows change or neither does. ``end_time`` is only written when
        given. Raises ``NotFoundError`` for an unknown consultation.
        """

    # Records owned by a consultation

    @abstractmethod
    async def list_medical_records(self, consultation_ids: set[int]) -> list[MedicalRecord]: ...

    @abstractmethod
    async def list_prescriptions(self, consultation_ids: set[int]) -> list[Prescription]: ...
