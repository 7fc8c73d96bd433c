from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt.exceptions import PyJWTError

from telecare.core.config import settings
from telecare.db.models import UserRole
from telecare.repositories.appointment import AppointmentRepository
from telecare.repositories.consultation import ConsultationRepository
from telecare.services.access import Actor
from telecare.services.scheduler import MissedAppointmentScheduler

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")

def get_appointment_repository(request: Request) -> AppointmentRepository:
    return request.app.state.appointment_repository

def get_consultation_repository(request: Request) -> ConsultationRepository:
    return request.app.state.consultation_repository

def get_scheduler(request: Request) -> MissedAppointmentScheduler:
    return request.app.state.scheduler

async def get_current_actor(
    token: str = Depends(oauth2_scheme),
    appointments: AppointmentRepository = Depends(get_appointment_repository),
) -> Actor:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = int(payload.get("sub"))
        role = payload.get("role")
    except (PyJWTError, TypeError, ValueError):
        raise credentials_exception
    if role not in {r.value for r in UserRole}:
        raise credentials_exception

    # Profile ids are resolved through the owning user id
    doctor_id = patient_id = None
    if role == UserRole.DOCTOR.value:
        doctor = await appointments.get_doctor_by_user_id(user_id)
        doctor_id = doctor.id if doctor else None
    elif role == UserRole.PATIENT.value:
        patient = await appointments.get_patient_by_user_id(user_id)
        patient_id = patient.id if patient else None

    return Actor(user_id=user_id, role=role, doctor_id=doctor_id, patient_id=patient_id)

async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return actor
