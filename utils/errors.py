"""
Error taxonomy for the scheduling core.

Every error carries a human-readable message, a machine-usable ``code`` and
the HTTP status the API layer answers with. ``app.py`` renders them as
``{"error": message, "kind": code}``.
"""


class SchedulingError(Exception):
    code = "ERROR"
    http_status = 500

    def __init__(self, message: str, *, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    def to_dict(self):
        body = {"error": self.message, "kind": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(SchedulingError):
    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(SchedulingError):
    code = "NOT_FOUND"
    http_status = 404


class ConflictError(SchedulingError):
    code = "CONFLICT"
    http_status = 409


class UpstreamError(SchedulingError):
    code = "UPSTREAM_ERROR"
    http_status = 500


class InvalidDuration(ValidationError):
    code = "INVALID_DURATION"


class InvalidRange(ValidationError):
    code = "INVALID_RANGE"


class MissingRequiredField(ValidationError):
    code = "MISSING_REQUIRED_FIELD"

    def __init__(self, field: str):
        super().__init__(f"{field} is required", details={"field": field})
        self.field = field


class AppointmentNotFound(NotFoundError):
    code = "APPOINTMENT_NOT_FOUND"

    def __init__(self, message: str = "Appointment not found"):
        super().__init__(message)


class PhoneMismatch(NotFoundError):
    # same wording as AppointmentNotFound so the webhook does not leak existence
    code = "APPOINTMENT_NOT_FOUND"

    def __init__(self, message: str = "Appointment not found"):
        super().__init__(message)


class SlotAlreadyBooked(ConflictError):
    code = "SLOT_ALREADY_BOOKED"

    def __init__(self, message: str = "Slot already booked"):
        super().__init__(message)
