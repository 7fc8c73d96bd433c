from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional, List

from telecare.schemas.appointment import AppointmentDetail
from telecare.schemas.profile import PersonSummary

class MedicalRecordRead(BaseModel):
    id: int
    consultation_id: Optional[int] = None
    patient_id: int
    doctor_id: int
    record_date: date
    diagnosis: Optional[str] = None
    diagnosis_image_url: Optional[str] = None
    treatment_plan: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class PrescriptionRead(BaseModel):
    id: int
    consultation_id: Optional[int] = None
    patient_id: int
    doctor_id: int
    prescription_date: date
    prescription_text: Optional[str] = None
    prescription_image_url: Optional[str] = None
    status: str
    duration_days: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class ConsultationDetail(BaseModel):
    id: int
    appointment_id: int
    doctor_id: int
    patient_id: int
    status: str
    actual_start_time: datetime
    actual_end_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    doctor: Optional[PersonSummary] = None
    patient: Optional[PersonSummary] = None
    appointment: Optional[AppointmentDetail] = None
    medical_records: List[MedicalRecordRead] = []
    prescriptions: List[PrescriptionRead] = []

    class Config:
        from_attributes = True
