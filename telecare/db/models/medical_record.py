from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import date, datetime

class MedicalRecord(SQLModel, table=True):
    __tablename__ = "medical_records"
    id: Optional[int] = Field(default=None, primary_key=True)
    consultation_id: Optional[int] = Field(default=None, foreign_key="consultations.id", index=True)
    patient_id: int = Field(foreign_key="patient_profiles.id")
    doctor_id: int = Field(foreign_key="doctor_profiles.id")
    record_date: date = Field(default_factory=date.today)
    diagnosis: Optional[str] = None
    diagnosis_image_url: Optional[str] = None
    treatment_plan: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
