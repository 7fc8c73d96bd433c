from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import date, datetime
from enum import Enum

class AppointmentStatus(str, Enum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    MISSED = "missed"

class AppointmentType(str, Enum):
    GENERAL = "general"
    FOLLOW_UP = "follow-up"
    CHECK_UP = "check-up"
    CONSULTATION = "consultation"
    EMERGENCY = "emergency"

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patient_profiles.id", index=True)
    doctor_id: int = Field(foreign_key="doctor_profiles.id", index=True)
    parent_appointment_id: Optional[int] = Field(default=None, foreign_key="appointments.id")
    appointment_date: date = Field(index=True)
    appointment_time: str # "HH:MM", local wall clock
    status: str = Field(default=AppointmentStatus.UPCOMING.value, index=True)
    appointment_type: str = Field(default=AppointmentType.GENERAL.value)
    notes: str = ""
    location: str = ""

    # Symptom analysis payload, never touches status
    symptoms: Optional[str] = None
    possible_illness_1: Optional[str] = None
    possible_illness_2: Optional[str] = None
    recommended_doctor_speciality_1: Optional[str] = None
    recommended_doctor_speciality_2: Optional[str] = None
    criticality: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def is_valid(self) -> bool:
        return bool(
            self.patient_id
            and self.doctor_id
            and self.appointment_date
            and self.appointment_time
            and self.status in {s.value for s in AppointmentStatus}
        )

    @property
    def is_upcoming(self) -> bool:
        return self.status == AppointmentStatus.UPCOMING.value
