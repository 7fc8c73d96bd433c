from dataclasses import dataclass
from typing import Optional

from telecare.db.models import UserRole

@dataclass(frozen=True)
class Actor:
    """The authenticated caller, with the profile ids it owns."""

    user_id: int
    role: str
    doctor_id: Optional[int] = None
    patient_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

def _owns(actor: Optional[Actor], record) -> bool:
    # Works for appointments and consultations alike: both carry doctor_id and patient_id
    if actor is None or record is None:
        return False
    if actor.is_admin:
        return True
    if actor.role == UserRole.DOCTOR.value:
        return actor.doctor_id is not None and actor.doctor_id == record.doctor_id
    if actor.role == UserRole.PATIENT.value:
        return actor.patient_id is not None and actor.patient_id == record.patient_id
    return False

def can_view(actor: Optional[Actor], record) -> bool:
    return _owns(actor, record)

def can_mutate(actor: Optional[Actor], record) -> bool:
    return _owns(actor, record)
