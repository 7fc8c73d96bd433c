from fastapi import APIRouter, Depends, HTTPException, Response
from datetime import date
from typing import List, Optional

from telecare.api.deps import get_consultation_repository, get_current_actor
from telecare.core.errors import NotFoundError
from telecare.db.models import UserRole
from telecare.repositories.consultation import ConsultationRepository
from telecare.schemas.consultation import ConsultationDetail
from telecare.services.access import Actor, can_mutate, can_view

router = APIRouter()

async def load_consultation(consultation_id: int, repository: ConsultationRepository) -> ConsultationDetail:
    consultation = await repository.get_by_id(consultation_id)
    if not consultation:
        raise NotFoundError("consultation", consultation_id)
    return consultation

@router.post("/appointment/{appointment_id}", response_model=ConsultationDetail)
async def start_consultation(
    appointment_id: int,
    response: Response,
    actor: Actor = Depends(get_current_actor),
    repository: ConsultationRepository = Depends(get_consultation_repository),
):
    consultation, created = await repository.start_for_appointment(appointment_id, actor)
    response.status_code = 201 if created else 200
    return await load_consultation(consultation.id, repository)

@router.get("/appointment/{appointment_id}", response_model=ConsultationDetail)
async def read_consultation_for_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    repository: ConsultationRepository = Depends(get_consultation_repository),
):
    consultation = await repository.get_by_appointment_id(appointment_id)
    if not consultation:
        raise NotFoundError("consultation")
    if not can_view(actor, consultation):
        raise HTTPException(status_code=403, detail="You are not authorized to view this consultation")
    return consultation

@router.get("/doctor/{doctor_id}", response_model=List[ConsultationDetail])
async def list_doctor_consultations(
    doctor_id: int,
    status: Optional[str] = None,
    on_date: Optional[date] = None,
    actor: Actor = Depends(get_current_actor),
    repository: ConsultationRepository = Depends(get_consultation_repository),
):
    if not (actor.is_admin or actor.doctor_id == doctor_id):
        raise HTTPException(status_code=403, detail="Doctor access required")
    return await repository.list_for_doctor(doctor_id, status=status, on_date=on_date)

@router.get("/patient/{patient_id}", response_model=List[ConsultationDetail])
async def list_patient_consultations(
    patient_id: int,
    status: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    repository: ConsultationRepository = Depends(get_consultation_repository),
):
    if not (actor.is_admin or actor.patient_id == patient_id):
        raise HTTPException(status_code=403, detail="Patient access required")
    return await repository.list_for_patient(patient_id, status=status)

@router.get("/{consultation_id}", response_model=ConsultationDetail)
async def read_consultation(
    consultation_id: int,
    actor: Actor = Depends(get_current_actor),
    repository: ConsultationRepository = Depends(get_consultation_repository),
):
    consultation = await load_consultation(consultation_id, repository)
    if not can_view(actor, consultation):
        raise HTTPException(status_code=403, detail="You are not authorized to view this consultation")
    return consultation

async def _load_for_doctor(consultation_id: int, actor: Actor, repository: ConsultationRepository) -> ConsultationDetail:
    consultation = await load_consultation(consultation_id, repository)
    if actor.role == UserRole.PATIENT.value or not can_mutate(actor, consultation):
        raise HTTPException(status_code=403, detail="Only the assigned doctor can close this consultation")
    return consultation

@router.post("/{consultation_id}/complete", response_model=ConsultationDetail)
async def complete_consultation(
    consultation_id: int,
    actor: Actor = Depends(get_current_actor),
    repository: ConsultationRepository = Depends(get_consultation_repository),
):
    await _load_for_doctor(consultation_id, actor, repository)
    await repository.complete_consultation(consultation_id)
    return await load_consultation(consultation_id, repository)

@router.post("/{consultation_id}/missed", response_model=ConsultationDetail)
async def mark_consultation_missed(
    consultation_id: int,
    actor: Actor = Depends(get_current_actor),
    repository: ConsultationRepository = Depends(get_consultation_repository),
):
    await _load_for_doctor(consultation_id, actor, repository)
    await repository.mark_consultation_as_missed(consultation_id)
    return await load_consultation(consultation_id, repository)
