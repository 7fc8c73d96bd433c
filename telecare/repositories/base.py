from typing import Awaitable, Callable, TypeVar

from telecare.core.errors import ConnectivityError, StorageFailure, TeleCareError
from telecare.core.logger import get_logger
from telecare.core.utils import Clock, local_now
from telecare.storage.base import StorageBackend

T = TypeVar("T")

logger = get_logger("repositories")

class FallbackRepository:
    """
    Runs every repository operation against the durable backend first and,
    only on a ``ConnectivityError``, once more against the in-memory fallback.

    An operation is a whole unit of work bound to one backend: it is never
    split across the two stores. Business errors (not found, conflict,
    validation) propagate as raised and are never retried. There is no
    write-back to the durable store once it recovers.
    """

    def __init__(self, durable: StorageBackend, fallback: StorageBackend, clock: Clock = local_now):
        self.durable = durable
        self.fallback = fallback
        self.clock = clock

    async def _run(self, operation: str, action: Callable[[StorageBackend], Awaitable[T]]) -> T:
        try:
            return await action(self.durable)
        except ConnectivityError as e:
            logger.warning(f"{operation}: durable backend unreachable ({e}); using fallback storage")

        try:
            return await action(self.fallback)
        except (ConnectivityError, StorageFailure) as e:
            raise StorageFailure(f"{operation} failed: durable and fallback storage unavailable") from e
        except TeleCareError:
            raise
        except Exception as e:
            logger.exception(f"{operation}: fallback storage error")
            raise StorageFailure(f"{operation} failed on fallback storage: {e}") from e
