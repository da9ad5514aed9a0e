# trainhub/backend/exceptions.py
from typing import Any, Dict, List, Optional


class ServiceError(Exception):
    """General exception class for the service layer."""
    code = "service_error"

    def __init__(self, message: str = "", **extra: Any):
        super().__init__(message)
        self.extra = extra

    def to_detail(self) -> Dict[str, Any]:
        detail = {"code": self.code, "message": str(self)}
        detail.update(self.extra)
        return detail


class ValidationFailedError(ServiceError):
    """Input passed schema validation but breaks a business rule (e.g. end_time before start_time)."""
    code = "validation_error"

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, errors=errors or [])

    @classmethod
    def for_field(cls, field: str, msg: str) -> "ValidationFailedError":
        return cls(msg, errors=[{"loc": ["body", field], "msg": msg, "type": "value_error"}])


class NotFoundError(ServiceError):
    code = "not_found"


class ConflictError(ServiceError):
    """Duplicate unique key or a state that forbids the requested change."""
    code = "conflict"


class AlreadyEnrolledError(ConflictError):
    code = "already_enrolled"


class CapacityExceededError(ConflictError):
    code = "capacity_exceeded"


class AuthenticationError(ServiceError):
    code = "unauthorized"


class AuthorizationError(ServiceError):
    """Exception class for authorization-related errors."""
    code = "forbidden"
