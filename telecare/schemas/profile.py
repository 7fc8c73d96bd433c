from pydantic import BaseModel
from typing import Optional

from telecare.core.utils import full_name

class PersonSummary(BaseModel):
    """Display summary of a patient or doctor profile embedded in reads."""

    id: int
    user_id: Optional[int] = None
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    specialization: Optional[str] = None

    @classmethod
    def from_profile(cls, profile, user, specialization: Optional[str] = None) -> "PersonSummary":
        return cls(
            id=profile.id,
            user_id=profile.user_id,
            name=full_name(user.first_name, user.last_name) if user else "",
            email=user.email if user else None,
            phone=user.phone if user else None,
            specialization=specialization,
        )
