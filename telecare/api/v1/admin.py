from fastapi import APIRouter, Depends

from telecare.api.deps import get_scheduler, require_admin
from telecare.core.errors import StorageFailure
from telecare.schemas.appointment import AppointmentDetail, MissedSweepResponse, SchedulerStatusResponse
from telecare.services.access import Actor
from telecare.services.scheduler import MissedAppointmentScheduler

router = APIRouter()

@router.post("/missed-appointments/check", response_model=MissedSweepResponse)
async def check_missed_appointments(
    actor: Actor = Depends(require_admin),
    scheduler: MissedAppointmentScheduler = Depends(get_scheduler),
):
    missed = await scheduler.run_once()
    if scheduler.last_error:
        raise StorageFailure(f"Missed appointment check failed: {scheduler.last_error}")
    return MissedSweepResponse(
        missed_count=len(missed),
        appointments=[AppointmentDetail.model_validate(a) for a in missed],
    )

@router.get("/scheduler", response_model=SchedulerStatusResponse)
async def scheduler_status(
    actor: Actor = Depends(require_admin),
    scheduler: MissedAppointmentScheduler = Depends(get_scheduler),
):
    return SchedulerStatusResponse(
        running=scheduler.is_running,
        interval_minutes=scheduler.interval_minutes,
        last_run_at=scheduler.last_run_at,
        last_missed_count=scheduler.last_missed_count,
        last_error=scheduler.last_error,
    )
