import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from telecare.core.logger import get_logger

logger = get_logger("http")

DEGRADED_HEADER = "X-Storage-Degraded"

def logging_level(status_code: int, degraded: bool = False) -> int:
    if status_code >= 500 or degraded:
        return logging.WARNING
    return logging.INFO

class LogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        degraded = response.headers.get(DEGRADED_HEADER) == "true"
        logger.log(
            logging_level(response.status_code, degraded),
            f"Method: {request.method} | "
            f"Path: {request.url.path} | "
            f"Status: {response.status_code} | "
            f"Duration: {process_time:.4f}s"
            + (" | Storage: degraded" if degraded else ""),
        )

        return response
