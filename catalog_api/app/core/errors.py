"""
Error taxonomy shared by the service layer.

Every service operation either returns a payload or raises one of the
``ServiceError`` subclasses defined here.  Each class carries the HTTP
status it maps to and a default message; the exception handlers
registered in ``main.py`` render them as JSON envelopes of the form
``{"success": false, "message": ..., "errors": [...]}``.
"""

from typing import Any, Dict, List, Optional


class ServiceError(Exception):
    """Base class for expected, labelled failures."""

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationFailed(ServiceError):
    default_message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(message, errors=[{"field": field, "message": message}])


class InvalidId(ServiceError):
    default_message = "Invalid ID"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found"


class Unauthenticated(ServiceError):
    status_code = 401
    default_message = "Not authenticated"


class InvalidToken(Unauthenticated):
    default_message = "Invalid or expired token"


class Forbidden(ServiceError):
    status_code = 403
    default_message = "Insufficient permissions"


class Conflict(ServiceError):
    default_message = "Resource already exists"


class MissingImages(ServiceError):
    default_message = "At least one image is required"


class AlreadyCancelled(ServiceError):
    default_message = "Booking is already cancelled"


class CannotCancelCompleted(ServiceError):
    default_message = "Cannot cancel a completed booking"


class AlreadyCompleted(ServiceError):
    default_message = "Booking is already marked as completed"


class CannotCompleteCancelled(ServiceError):
    default_message = "Cannot complete a cancelled booking"


class SelfDeleteForbidden(ServiceError):
    default_message = "Cannot delete your own account"


class SelfDemotionForbidden(ServiceError):
    default_message = "Cannot demote yourself from admin role"


class StorageError(ServiceError):
    """Failure reported by the image storage backend."""

    status_code = 502
    default_message = "Image storage request failed"


class InternalError(ServiceError):
    status_code = 500
    default_message = "Internal server error"
