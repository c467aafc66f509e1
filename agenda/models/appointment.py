from datetime import datetime
from enum import StrEnum

from sqlalchemy import DDL, CheckConstraint, Column, String, event
from sqlmodel import Field, SQLModel

from agenda.core.clock import to_naive_utc, utc_now

OVERLAP_CONSTRAINT = "appointments_no_overlap"


class AppointmentStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    RESCHEDULE_REQUESTED = "reschedule_requested"


# Statuses that hold their window. Terminal statuses never conflict.
HELD_STATUSES: tuple[str, ...] = (
    AppointmentStatus.PENDING.value,
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.RESCHEDULE_REQUESTED.value,
)

TERMINAL_STATUSES: frozenset[str] = frozenset(
    {AppointmentStatus.CANCELED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW}
)

# action -> (allowed source statuses, target status)
TRANSITIONS: dict[str, tuple[frozenset[str], AppointmentStatus]] = {
    "confirm": (frozenset({AppointmentStatus.PENDING}), AppointmentStatus.CONFIRMED),
    "cancel": (
        frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}),
        AppointmentStatus.CANCELED,
    ),
    "complete": (frozenset({AppointmentStatus.CONFIRMED}), AppointmentStatus.COMPLETED),
    "mark_no_show": (frozenset({AppointmentStatus.CONFIRMED}), AppointmentStatus.NO_SHOW),
    "request_reschedule": (
        frozenset({AppointmentStatus.CONFIRMED}),
        AppointmentStatus.RESCHEDULE_REQUESTED,
    ),
    "resolve_reschedule_confirm": (
        frozenset({AppointmentStatus.RESCHEDULE_REQUESTED}),
        AppointmentStatus.CONFIRMED,
    ),
    "resolve_reschedule_cancel": (
        frozenset({AppointmentStatus.RESCHEDULE_REQUESTED}),
        AppointmentStatus.CANCELED,
    ),
}


def _utc_naive_now() -> datetime:
    return to_naive_utc(utc_now())


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (CheckConstraint("start_at < end_at", name="ck_appointments_window"),)
    id: int | None = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenants.id", index=True)
    location_id: int = Field(foreign_key="locations.id", index=True)
    provider_id: int | None = Field(default=None, foreign_key="providers.id", index=True)
    patient_id: int = Field(foreign_key="patients.id", index=True)
    service_id: int | None = Field(default=None, foreign_key="services.id")
    service_name: str | None = None
    start_at: datetime = Field(index=True)  # naive UTC
    end_at: datetime = Field(index=True)  # naive UTC
    status: str = Field(
        default=AppointmentStatus.PENDING.value,
        sa_column=Column(String(32), nullable=False, index=True),
    )
    notes: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)


class AppointmentPublic(SQLModel):
    id: int
    location_id: int
    provider_id: int | None = None
    patient_id: int
    service_id: int | None = None
    service_name: str | None = None
    start_at: datetime
    end_at: datetime
    status: str
    notes: str | None = None
    created_at: datetime


_held_list = ", ".join(f"'{s}'" for s in HELD_STATUSES)

# Authoritative no-overlap guard. Postgres gets a real exclusion constraint; SQLite
# (dev/tests) gets a trigger that fails the insert with the same name.
event.listen(
    Appointment.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE appointments ADD CONSTRAINT {OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (location_id WITH =, tsrange(start_at, end_at, '[)') WITH &&) "
        f"WHERE (status IN ({_held_list}))"
    ).execute_if(dialect="postgresql"),
)
event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        f"CREATE TRIGGER IF NOT EXISTS {OVERLAP_CONSTRAINT} "
        "BEFORE INSERT ON appointments "
        f"WHEN NEW.status IN ({_held_list}) "
        "BEGIN "
        f"SELECT RAISE(ABORT, '{OVERLAP_CONSTRAINT}') WHERE EXISTS ("
        "SELECT 1 FROM appointments "
        "WHERE location_id = NEW.location_id "
        f"AND status IN ({_held_list}) "
        "AND start_at < NEW.end_at AND end_at > NEW.start_at); "
        "END"
    ).execute_if(dialect="sqlite"),
)
