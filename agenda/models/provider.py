from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class Provider(SQLModel, table=True):
    __tablename__ = "providers"
    id: int | None = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenants.id", index=True)
    full_name: str
    active: bool = True
    default_location_id: int | None = Field(default=None, foreign_key="locations.id")
    # Same shape as Location.business_hours; non-empty replaces the location's days
    schedule_override: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    calendar_id: str | None = None  # external calendar to mirror bookings into
