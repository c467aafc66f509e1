from agenda.models.tenant import Tenant
from agenda.models.location import Location, LocationPublic
from agenda.models.provider import Provider
from agenda.models.service import Service
from agenda.models.patient import Patient
from agenda.models.appointment import (
    Appointment,
    AppointmentPublic,
    AppointmentStatus,
    HELD_STATUSES,
    TRANSITIONS,
)
from agenda.models.block import AvailabilityBlock, AvailabilityBlockCreate, AvailabilityBlockPublic

__all__ = [
    "Tenant",
    "Location",
    "LocationPublic",
    "Provider",
    "Service",
    "Patient",
    "Appointment",
    "AppointmentPublic",
    "AppointmentStatus",
    "HELD_STATUSES",
    "TRANSITIONS",
    "AvailabilityBlock",
    "AvailabilityBlockCreate",
    "AvailabilityBlockPublic",
]
