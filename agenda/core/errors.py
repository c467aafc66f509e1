"""Error kinds raised by the availability and booking engine.

Every kind carries a stable ``code`` and the HTTP status the API layer maps it
to. ``context`` holds extra diagnostic fields rendered next to the message.
"""
from typing import Any


class AgendaError(Exception):
    code = "agenda_error"
    status_code = 400

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message()
        self.context = context
        super().__init__(self.message)

    def default_message(self) -> str:
        return self.code.replace("_", " ").capitalize()

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.context}


class InvalidService(AgendaError):
    code = "invalid_service"


class PausedService(AgendaError):
    code = "paused_service"


class InvalidProvider(AgendaError):
    code = "invalid_provider"


class PausedProvider(AgendaError):
    code = "paused_provider"


class NoLocationConfigured(AgendaError):
    code = "no_location_configured"

    def default_message(self) -> str:
        return "Create a location before booking appointments"


class LocationNotFound(AgendaError):
    code = "location_not_found"
    status_code = 404


class OutsideBusinessHours(AgendaError):
    code = "outside_business_hours"


class SlotTaken(AgendaError):
    code = "slot_taken"
    status_code = 409

    def default_message(self) -> str:
        return "The selected time is already taken"


class SlotBlocked(SlotTaken):
    code = "slot_blocked"

    def default_message(self) -> str:
        return "The selected time is blocked"


class InvalidDate(AgendaError):
    code = "invalid_date"


class InvalidWindow(AgendaError):
    code = "invalid_window"


class InvalidPatient(AgendaError):
    code = "invalid_patient"


class InvalidTimezone(AgendaError):
    code = "invalid_timezone"


class AppointmentNotFound(AgendaError):
    code = "appointment_not_found"
    status_code = 404


class BlockNotFound(AgendaError):
    code = "block_not_found"
    status_code = 404


class InvalidTransition(AgendaError):
    code = "invalid_transition"
    status_code = 409


class ConstraintViolation(AgendaError):
    code = "constraint_violation"
    status_code = 409

    def default_message(self) -> str:
        return "The record conflicts with stored data"


class StorageUnavailable(AgendaError):
    code = "storage_unavailable"
    status_code = 503

    def default_message(self) -> str:
        return "Database unavailable"


class OverlapViolation(Exception):
    """Raised by storage when the appointments_no_overlap constraint rejects an insert."""
