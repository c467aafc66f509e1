from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class Patient(SQLModel, table=True):
    __tablename__ = "patients"
    __table_args__ = (UniqueConstraint("tenant_id", "phone_e164", name="uq_patients_tenant_phone"),)
    id: int | None = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenants.id", index=True)
    full_name: str
    phone_e164: str = Field(index=True)
    email: str | None = None
