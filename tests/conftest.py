import os
from datetime import UTC, datetime

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("WHATSAPP_TOKEN", "")
os.environ.setdefault("GOOGLE_CALENDAR_TOKEN", "")

from agenda.core.db import create_engine_for, create_session_maker, init_db  # noqa: E402
from agenda.models import (  # noqa: E402
    Appointment,
    Location,
    Patient,
    Provider,
    Service,
    Tenant,
)
from tests.helpers import BUENOS_AIRES, WEEKDAYS_9_TO_18, Seed  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    eng = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'agenda.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s
        await s.rollback()


@pytest.fixture
async def seed(session_maker) -> Seed:
    async with session_maker() as s:
        tenant = Tenant(name="Clinica Norte")
        other = Tenant(name="Clinica Sur")
        s.add_all([tenant, other])
        await s.flush()

        location = Location(
            tenant_id=tenant.id,
            name="Centro",
            timezone=BUENOS_AIRES,
            business_hours=WEEKDAYS_9_TO_18,
            buffer_minutes=0,
        )
        s.add(location)
        await s.flush()

        provider = Provider(tenant_id=tenant.id, full_name="Ana Perez", default_location_id=location.id)
        override = Provider(
            tenant_id=tenant.id,
            full_name="Bruno Diaz",
            default_location_id=location.id,
            schedule_override={"tue": [["10:00", "12:00"]]},
        )
        paused = Provider(tenant_id=tenant.id, full_name="Carla Ruiz", active=False)
        service = Service(tenant_id=tenant.id, name="Limpieza", duration_minutes=45)
        paused_service = Service(tenant_id=tenant.id, name="Blanqueamiento", duration_minutes=60, active=False)
        patient = Patient(tenant_id=tenant.id, full_name="Existing Patient", phone_e164="+5491100000000")
        s.add_all([provider, override, paused, service, paused_service, patient])
        await s.flush()

        result = Seed(
            tenant_id=tenant.id,
            other_tenant_id=other.id,
            location_id=location.id,
            provider_id=provider.id,
            override_provider_id=override.id,
            paused_provider_id=paused.id,
            service_id=service.id,
            paused_service_id=paused_service.id,
            patient_id=patient.id,
        )
        await s.commit()
    return result


@pytest.fixture
def add_appointment(session_maker, seed):
    """Insert an appointment directly, bypassing the booking checks."""

    async def _add(
        start: datetime,
        end: datetime,
        status: str = "confirmed",
        location_id: int | None = None,
        provider_id: int | None = None,
    ) -> Appointment:
        async with session_maker() as s:
            appt = Appointment(
                tenant_id=seed.tenant_id,
                location_id=location_id or seed.location_id,
                provider_id=provider_id,
                patient_id=seed.patient_id,
                start_at=start.astimezone(UTC).replace(tzinfo=None),
                end_at=end.astimezone(UTC).replace(tzinfo=None),
                status=status,
            )
            s.add(appt)
            await s.commit()
            await s.refresh(appt)
        return appt

    return _add


@pytest.fixture
def add_location(session_maker, seed):
    async def _add(name: str, timezone: str, business_hours: dict, buffer_minutes: int = 0) -> Location:
        async with session_maker() as s:
            location = Location(
                tenant_id=seed.tenant_id,
                name=name,
                timezone=timezone,
                business_hours=business_hours,
                buffer_minutes=buffer_minutes,
            )
            s.add(location)
            await s.commit()
            await s.refresh(location)
        return location

    return _add
