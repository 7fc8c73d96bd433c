import asyncio
from contextlib import suppress
from datetime import datetime
from typing import Optional, List

from telecare.core.errors import ValidationError
from telecare.core.logger import get_logger
from telecare.db.models import Appointment
from telecare.repositories.appointment import AppointmentRepository

logger = get_logger("scheduler")

DEFAULT_INTERVAL_MINUTES = 30

class MissedAppointmentScheduler:
    """
    Periodically marks elapsed ``upcoming`` appointments as missed.

    Built once by the process entry point and injected wherever a manual
    sweep is needed. ``run_once`` is the only detection path: the timer and
    administrative triggers both go through it. A failed sweep is logged and
    the timer keeps going; the next tick retries.
    """

    def __init__(self, repository: AppointmentRepository):
        self.repository = repository
        self.interval_minutes: Optional[float] = None
        self.last_run_at: Optional[datetime] = None
        self.last_missed_count: Optional[int] = None
        self.last_error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, interval_minutes: float = DEFAULT_INTERVAL_MINUTES) -> None:
        if interval_minutes <= 0:
            raise ValidationError("Scheduler interval must be a positive number of minutes")

        # Restart rather than stack timers
        if self._task is not None:
            await self._cancel_timer()

        self._generation += 1
        generation = self._generation
        self.interval_minutes = interval_minutes
        logger.info(
            f"Starting appointment scheduler. Checking for missed appointments every {interval_minutes} minutes."
        )

        await self.run_once()
        # A stop or another start during the initial sweep owns the timer now
        if generation != self._generation:
            logger.info("Appointment scheduler start superseded during the initial sweep")
            return
        self._task = asyncio.create_task(self._tick(interval_minutes * 60), name="missed-appointment-sweep")

    async def stop(self) -> None:
        self._generation += 1
        if self._task is None:
            return
        await self._cancel_timer()
        logger.info("Appointment scheduler stopped")

    async def run_once(self) -> List[Appointment]:
        logger.info("Running check for missed appointments...")
        self.last_run_at = datetime.now()
        try:
            missed = await self.repository.detect_and_mark_missed()
        except Exception as e:
            self.last_error = str(e)
            logger.exception(f"Error checking for missed appointments: {e}")
            return []

        self.last_error = None
        self.last_missed_count = len(missed)
        if missed:
            logger.info(f"Marked {len(missed)} appointments as missed: {', '.join(str(a.id) for a in missed)}")
        else:
            logger.info("No missed appointments found")
        return missed

    async def _tick(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            await self.run_once()

    async def _cancel_timer(self) -> None:
        task, self._task = self._task, None
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
