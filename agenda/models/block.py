from datetime import datetime

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel


class AvailabilityBlock(SQLModel, table=True):
    """Administrative closure. Null location/provider widens the block to all of them."""

    __tablename__ = "availability_blocks"
    __table_args__ = (CheckConstraint("start_at < end_at", name="ck_availability_blocks_window"),)
    id: int | None = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenants.id", index=True)
    location_id: int | None = Field(default=None, foreign_key="locations.id", index=True)
    provider_id: int | None = Field(default=None, foreign_key="providers.id", index=True)
    start_at: datetime = Field(index=True)
    end_at: datetime = Field(index=True)
    reason: str | None = None


class AvailabilityBlockCreate(SQLModel):
    location_id: int | None = None
    provider_id: int | None = None
    start_at: datetime
    end_at: datetime
    reason: str | None = None


class AvailabilityBlockPublic(SQLModel):
    id: int
    location_id: int | None = None
    provider_id: int | None = None
    start_at: datetime
    end_at: datetime
    reason: str | None = None
