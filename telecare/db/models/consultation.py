from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

class ConsultationStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"

class Consultation(SQLModel, table=True):
    __tablename__ = "consultations"
    id: Optional[int] = Field(default=None, primary_key=True)
    appointment_id: int = Field(foreign_key="appointments.id", unique=True, index=True)
    # Denormalised from the appointment for access checks
    doctor_id: int = Field(foreign_key="doctor_profiles.id", index=True)
    patient_id: int = Field(foreign_key="patient_profiles.id", index=True)
    status: str = Field(default=ConsultationStatus.IN_PROGRESS.value)
    actual_start_time: datetime = Field(default_factory=datetime.now)
    actual_end_time: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def is_valid(self) -> bool:
        return bool(
            self.appointment_id
            and self.doctor_id
            and self.patient_id
            and self.status in {s.value for s in ConsultationStatus}
        )
