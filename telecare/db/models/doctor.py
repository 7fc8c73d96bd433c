from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

class Doctor(SQLModel, table=True):
    __tablename__ = "doctor_profiles"
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    specialization: str = Field(default="", index=True)
    license_number: Optional[str] = None
    years_of_experience: int = Field(default=0)
    consultation_fee: float = Field(default=0)
    bio: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
