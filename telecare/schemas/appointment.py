from pydantic import BaseModel, field_validator
from datetime import date, datetime
from typing import Optional, List

from telecare.core.errors import ValidationError
from telecare.core.utils import normalize_time_of_day
from telecare.db.models import AppointmentStatus, AppointmentType
from telecare.schemas.profile import PersonSummary

def _check_time(value: Optional[str]) -> Optional[str]:
    return normalize_time_of_day(value) if value is not None else None

def _check_choice(value: Optional[str], choices, label: str) -> Optional[str]:
    if value is None:
        return None
    allowed = [c.value for c in choices]
    if value not in allowed:
        raise ValidationError(f"Invalid {label} '{value}'. Expected one of: {', '.join(allowed)}")
    return value

class SymptomAnalysis(BaseModel):
    symptoms: Optional[str] = None
    possible_illness_1: Optional[str] = None
    possible_illness_2: Optional[str] = None
    recommended_doctor_speciality_1: Optional[str] = None
    recommended_doctor_speciality_2: Optional[str] = None
    criticality: Optional[str] = None

class AppointmentCreate(BaseModel):
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str
    appointment_type: str = AppointmentType.GENERAL.value
    notes: str = ""
    location: str = ""
    parent_appointment_id: Optional[int] = None
    symptom_analysis: Optional[SymptomAnalysis] = None

class AppointmentUpdate(BaseModel):
    appointment_date: Optional[date] = None
    appointment_time: Optional[str] = None
    status: Optional[str] = None
    appointment_type: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, value):
        return _check_time(value)

    @field_validator("status")
    @classmethod
    def validate_status(cls, value):
        return _check_choice(value, AppointmentStatus, "status")

    @field_validator("appointment_type")
    @classmethod
    def validate_type(cls, value):
        return _check_choice(value, AppointmentType, "appointment type")

class AppointmentDetail(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    parent_appointment_id: Optional[int] = None
    appointment_date: date
    appointment_time: str
    status: str
    appointment_type: str
    notes: str = ""
    location: str = ""
    symptoms: Optional[str] = None
    possible_illness_1: Optional[str] = None
    possible_illness_2: Optional[str] = None
    recommended_doctor_speciality_1: Optional[str] = None
    recommended_doctor_speciality_2: Optional[str] = None
    criticality: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    patient: Optional[PersonSummary] = None
    doctor: Optional[PersonSummary] = None

    class Config:
        from_attributes = True

class MissedSweepResponse(BaseModel):
    missed_count: int
    appointments: List[AppointmentDetail]

class SchedulerStatusResponse(BaseModel):
    running: bool
    interval_minutes: Optional[float] = None
    last_run_at: Optional[datetime] = None
    last_missed_count: Optional[int] = None
    last_error: Optional[str] = None
