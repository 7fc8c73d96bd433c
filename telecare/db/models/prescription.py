from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import date, datetime

class Prescription(SQLModel, table=True):
    __tablename__ = "prescriptions"
    id: Optional[int] = Field(default=None, primary_key=True)
    consultation_id: Optional[int] = Field(default=None, foreign_key="consultations.id", index=True)
    patient_id: int = Field(foreign_key="patient_profiles.id")
    doctor_id: int = Field(foreign_key="doctor_profiles.id")
    prescription_date: date = Field(default_factory=date.today)
    prescription_text: Optional[str] = None
    prescription_image_url: Optional[str] = None
    status: str = Field(default="active") # active, completed, cancelled
    duration_days: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
