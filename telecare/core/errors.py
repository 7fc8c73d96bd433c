"""
Domain errors raised by the storage backends and repositories.

Only ``ConnectivityError`` is ever caught inside the repositories (it triggers
the fallback to the in-memory store); every other kind reaches the caller
unchanged. ``status_code`` is the HTTP equivalent used by the API layer.
"""


class TeleCareError(Exception):
    status_code = 500
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TeleCareError):
    status_code = 404
    kind = "not_found"

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            message = f"{entity.capitalize()} not found"
        else:
            message = f"{entity.capitalize()} with ID {entity_id} not found"
        super().__init__(message)


class ConflictError(TeleCareError):
    status_code = 409
    kind = "conflict"


class ValidationError(TeleCareError):
    status_code = 400
    kind = "validation"


class PermissionDenied(TeleCareError):
    status_code = 403
    kind = "forbidden"


class ConnectivityError(TeleCareError):
    """The durable backend could not be reached (refused, timed out, dropped)."""

    status_code = 503
    kind = "connectivity"


class StorageFailure(TeleCareError):
    """Storage is unusable: the fallback failed too, or the backend broke."""

    status_code = 503
    kind = "storage_failure"
