from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class Location(SQLModel, table=True):
    __tablename__ = "locations"
    id: int | None = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenants.id", index=True)
    name: str
    timezone: str | None = None  # IANA name
    # {"mon": [["09:00", "18:00"]], ...}; empty means "use the default week"
    business_hours: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    buffer_minutes: int = 0


class LocationPublic(SQLModel):
    id: int
    name: str
    timezone: str | None = None
    buffer_minutes: int
