from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from telecare.core.config import settings
from telecare.core.errors import StorageFailure, TeleCareError
from telecare.core.logger import logger
from telecare.core.utils import Clock, local_now
from telecare.db.session import build_engine, build_session_factory
from telecare.middleware.log_middleware import DEGRADED_HEADER, LogMiddleware
from telecare.repositories.appointment import AppointmentRepository
from telecare.repositories.consultation import ConsultationRepository
from telecare.services.scheduler import MissedAppointmentScheduler
from telecare.storage.base import StorageBackend
from telecare.storage.durable import DurableBackend
from telecare.storage.memory import MemoryBackend

RETRY_AFTER_SECONDS = 30

async def telecare_error_handler(request: Request, exc: TeleCareError) -> JSONResponse:
    content = {"detail": exc.message, "error": exc.kind}
    headers = {}
    if isinstance(exc, StorageFailure):
        content["degraded"] = True
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS), DEGRADED_HEADER: "true"}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

def create_app(
    durable: Optional[StorageBackend] = None,
    fallback: Optional[StorageBackend] = None,
    clock: Clock = local_now,
    scheduler_enabled: Optional[bool] = None,
) -> FastAPI:
    """
    Build the API application.

    Backends left as ``None`` are built from settings when the app starts:
    a durable backend over ``DATABASE_URL`` and a fresh in-memory fallback.
    The missed-appointment scheduler is constructed here once and lives on
    ``app.state``; the lifespan starts and stops it.
    """
    if scheduler_enabled is None:
        scheduler_enabled = settings.SCHEDULER_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        durable_backend = durable
        if durable_backend is None:
            engine = build_engine()
            durable_backend = DurableBackend(build_session_factory(engine))
        fallback_backend = fallback
        if fallback_backend is None:
            fallback_backend = MemoryBackend(seed_demo_profiles=settings.FALLBACK_SEED_DEMO_PROFILES)

        appointments = AppointmentRepository(durable_backend, fallback_backend, clock=clock)
        app.state.appointment_repository = appointments
        app.state.consultation_repository = ConsultationRepository(durable_backend, fallback_backend, clock=clock)
        app.state.scheduler = MissedAppointmentScheduler(appointments)

        if scheduler_enabled:
            await app.state.scheduler.start(settings.MISSED_APPOINTMENT_CHECK_INTERVAL_MINUTES)
        logger.info(f"{settings.PROJECT_NAME} started (scheduler {'on' if scheduler_enabled else 'off'})")
        try:
            yield
        finally:
            await app.state.scheduler.stop()
            if engine is not None:
                await engine.dispose()
            logger.info(f"{settings.PROJECT_NAME} stopped")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(LogMiddleware)
    app.add_exception_handler(TeleCareError, telecare_error_handler)

    @app.get("/")
    async def root():
        return {"message": "Welcome to TeleCare API"}

    from telecare.api.api import api_router
    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app

app = create_app()
