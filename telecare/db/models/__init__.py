from sqlmodel import SQLModel
from .user import User, UserRole
from .patient import Patient
from .doctor import Doctor
from .appointment import Appointment, AppointmentStatus, AppointmentType
from .consultation import Consultation, ConsultationStatus
from .medical_record import MedicalRecord
from .prescription import Prescription

__all__ = [
    "SQLModel",
    "User",
    "UserRole",
    "Patient",
    "Doctor",
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "Consultation",
    "ConsultationStatus",
    "MedicalRecord",
    "Prescription",
]
