from fastapi import APIRouter, Depends, HTTPException
from datetime import date
from typing import List, Optional

from telecare.api.deps import get_appointment_repository, get_current_actor
from telecare.core.errors import NotFoundError, ValidationError
from telecare.db.models import AppointmentStatus, UserRole
from telecare.repositories.appointment import AppointmentRepository
from telecare.schemas.appointment import AppointmentCreate, AppointmentDetail, AppointmentUpdate, SymptomAnalysis
from telecare.schemas.profile import PersonSummary
from telecare.services.access import Actor, can_mutate, can_view

router = APIRouter()

async def load_appointment(appointment_id: int, repository: AppointmentRepository) -> AppointmentDetail:
    appointment = await repository.get_by_id(appointment_id)
    if not appointment:
        raise NotFoundError("appointment", appointment_id)
    return appointment

def forbid(detail: str = "You are not authorized to access this appointment"):
    raise HTTPException(status_code=403, detail=detail)

@router.post("", response_model=AppointmentDetail, status_code=201)
async def create_appointment(
    request: AppointmentCreate,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    if actor.role == UserRole.PATIENT.value and actor.patient_id is None:
        raise NotFoundError("patient profile")
    if not can_mutate(actor, request):
        forbid("You can only book appointments for your own profile")

    appointment = await repository.create(
        request.patient_id,
        request.doctor_id,
        request.appointment_date,
        request.appointment_time,
        request.appointment_type,
        request.notes,
        request.location,
        parent_appointment_id=request.parent_appointment_id,
        symptom_analysis=request.symptom_analysis,
    )
    return await load_appointment(appointment.id, repository)

@router.get("/patient/{patient_id}", response_model=List[AppointmentDetail])
async def list_patient_appointments(
    patient_id: int,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    if not (actor.is_admin or actor.patient_id == patient_id):
        forbid()
    return await repository.list_for_patient(patient_id, status=status, limit=limit, offset=offset)

@router.get("/doctor/{doctor_id}", response_model=List[AppointmentDetail])
async def list_doctor_appointments(
    doctor_id: int,
    status: Optional[str] = None,
    on_date: Optional[date] = None,
    limit: int = 100,
    offset: int = 0,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    if not (actor.is_admin or actor.doctor_id == doctor_id):
        forbid()
    return await repository.list_for_doctor(doctor_id, status=status, on_date=on_date, limit=limit, offset=offset)

@router.get("/recommendations/doctors", response_model=List[PersonSummary])
async def recommend_doctors(
    speciality: str,
    limit: int = 5,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    return await repository.find_doctors_by_speciality(speciality, limit=limit)

@router.get("/{appointment_id}", response_model=AppointmentDetail)
async def read_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    appointment = await load_appointment(appointment_id, repository)
    if not can_view(actor, appointment):
        forbid()
    return appointment

@router.patch("/{appointment_id}", response_model=AppointmentDetail)
async def update_appointment(
    appointment_id: int,
    request: AppointmentUpdate,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    appointment = await load_appointment(appointment_id, repository)
    if not can_mutate(actor, appointment):
        forbid()
    if actor.role == UserRole.PATIENT.value and request.status not in (None, AppointmentStatus.CANCELLED.value):
        forbid("Patients can only cancel appointments")

    await repository.update(appointment_id, request)
    return await load_appointment(appointment_id, repository)

@router.put("/{appointment_id}/symptom-analysis", response_model=AppointmentDetail)
async def attach_symptom_analysis(
    appointment_id: int,
    request: SymptomAnalysis,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    appointment = await load_appointment(appointment_id, repository)
    if not can_mutate(actor, appointment):
        forbid()
    await repository.attach_symptom_analysis(appointment_id, request)
    return await load_appointment(appointment_id, repository)

@router.post("/{appointment_id}/cancel", response_model=AppointmentDetail)
async def cancel_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    appointment = await load_appointment(appointment_id, repository)
    if not can_mutate(actor, appointment):
        forbid()
    await repository.cancel(appointment_id)
    return await load_appointment(appointment_id, repository)

@router.post("/{appointment_id}/complete", response_model=AppointmentDetail)
async def complete_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    appointment = await load_appointment(appointment_id, repository)
    if actor.role == UserRole.PATIENT.value or not can_mutate(actor, appointment):
        forbid("Only the assigned doctor or an admin can complete an appointment")
    await repository.complete(appointment_id)
    return await load_appointment(appointment_id, repository)

@router.post("/{appointment_id}/missed", response_model=AppointmentDetail)
async def mark_appointment_missed(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    repository: AppointmentRepository = Depends(get_appointment_repository),
):
    appointment = await load_appointment(appointment_id, repository)
    if actor.role == UserRole.PATIENT.value or not can_mutate(actor, appointment):
        forbid("Only the assigned doctor or an admin can mark an appointment as missed")
    if appointment.status != AppointmentStatus.UPCOMING.value:
        raise ValidationError(f"Cannot mark appointment as missed. Current status is {appointment.status}")
    await repository.mark_missed(appointment_id)
    return await load_appointment(appointment_id, repository)
