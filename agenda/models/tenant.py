from datetime import datetime

from sqlmodel import Field, SQLModel

from agenda.core.clock import utc_now, to_naive_utc


def _utc_naive_now() -> datetime:
    return to_naive_utc(utc_now())


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    created_at: datetime = Field(default_factory=_utc_naive_now)
