"""Storage collaborator: every query the engine issues goes through here.

Instants cross this boundary as aware datetimes and are stored as naive UTC.
"""
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.clock import to_naive_utc
from agenda.core.errors import ConstraintViolation, OverlapViolation, StorageUnavailable
from agenda.models.appointment import HELD_STATUSES, OVERLAP_CONSTRAINT, Appointment
from agenda.models.block import AvailabilityBlock
from agenda.models.location import Location
from agenda.models.patient import Patient
from agenda.models.provider import Provider
from agenda.models.service import Service

logger = logging.getLogger(__name__)

_EXCLUSION_VIOLATION = "23P01"


@contextmanager
def _storage_errors() -> Iterator[None]:
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.warning("Storage unavailable: %s", exc)
        raise StorageUnavailable() from exc


def is_overlap_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == _EXCLUSION_VIOLATION or OVERLAP_CONSTRAINT in str(exc)


async def get_location_by_id(session: AsyncSession, tenant_id: int, location_id: int) -> Location | None:
    with _storage_errors():
        result = await session.execute(
            select(Location).where(Location.tenant_id == tenant_id, Location.id == location_id)
        )
    return result.scalar_one_or_none()


async def first_location_by_name(session: AsyncSession, tenant_id: int) -> Location | None:
    with _storage_errors():
        result = await session.execute(
            select(Location).where(Location.tenant_id == tenant_id).order_by(Location.name, Location.id).limit(1)
        )
    return result.scalar_one_or_none()


async def get_provider_by_id(session: AsyncSession, tenant_id: int, provider_id: int) -> Provider | None:
    with _storage_errors():
        result = await session.execute(
            select(Provider).where(Provider.tenant_id == tenant_id, Provider.id == provider_id)
        )
    return result.scalar_one_or_none()


async def first_active_provider(session: AsyncSession, tenant_id: int) -> Provider | None:
    with _storage_errors():
        result = await session.execute(
            select(Provider)
            .where(Provider.tenant_id == tenant_id, Provider.active == True)  # noqa: E712
            .order_by(Provider.id)
            .limit(1)
        )
    return result.scalar_one_or_none()


async def get_service_by_id(session: AsyncSession, tenant_id: int, service_id: int) -> Service | None:
    with _storage_errors():
        result = await session.execute(
            select(Service).where(Service.tenant_id == tenant_id, Service.id == service_id)
        )
    return result.scalar_one_or_none()


async def find_patient_by_phone(session: AsyncSession, tenant_id: int, phone_e164: str) -> Patient | None:
    with _storage_errors():
        result = await session.execute(
            select(Patient).where(Patient.tenant_id == tenant_id, Patient.phone_e164 == phone_e164)
        )
    return result.scalar_one_or_none()


async def upsert_patient(
    session: AsyncSession,
    tenant_id: int,
    phone_e164: str,
    full_name: str,
    email: str | None = None,
) -> Patient:
    """Find-or-create by (tenant, phone). Existing rows get name/email overwritten."""
    patient = await find_patient_by_phone(session, tenant_id, phone_e164)
    if patient is None:
        patient = Patient(tenant_id=tenant_id, phone_e164=phone_e164, full_name=full_name, email=email or None)
        try:
            with _storage_errors():
                async with session.begin_nested():
                    session.add(patient)
        except IntegrityError as exc:
            # lost a create race on the unique key; fall through to update
            patient = await find_patient_by_phone(session, tenant_id, phone_e164)
            if patient is None:
                raise ConstraintViolation("Patient could not be stored") from exc
        else:
            await session.refresh(patient)
            return patient
    patient.full_name = full_name
    if email:
        patient.email = email
    session.add(patient)
    with _storage_errors():
        await session.flush()
    return patient


async def query_appointments(
    session: AsyncSession,
    tenant_id: int,
    start: datetime,
    end: datetime,
    location_id: int | None = None,
    provider_id: int | None = None,
    exclude_canceled: bool = True,
) -> list[Appointment]:
    """Appointments whose ``[start_at, end_at)`` intersects ``[start, end)``."""
    q = select(Appointment).where(
        Appointment.tenant_id == tenant_id,
        Appointment.start_at < to_naive_utc(end),
        Appointment.end_at > to_naive_utc(start),
    )
    if location_id is not None:
        q = q.where(Appointment.location_id == location_id)
    if provider_id is not None:
        q = q.where(or_(Appointment.provider_id == provider_id, Appointment.provider_id.is_(None)))
    if exclude_canceled:
        q = q.where(Appointment.status.in_(HELD_STATUSES))
    with _storage_errors():
        result = await session.execute(q.order_by(Appointment.start_at))
    return list(result.scalars().all())


async def query_blocks(
    session: AsyncSession,
    tenant_id: int,
    start: datetime,
    end: datetime,
    location_id: int | None = None,
    provider_id: int | None = None,
) -> list[AvailabilityBlock]:
    """Blocks intersecting ``[start, end)``; null location/provider rows always match."""
    q = select(AvailabilityBlock).where(
        AvailabilityBlock.tenant_id == tenant_id,
        AvailabilityBlock.start_at < to_naive_utc(end),
        AvailabilityBlock.end_at > to_naive_utc(start),
    )
    if location_id is not None:
        q = q.where(or_(AvailabilityBlock.location_id.is_(None), AvailabilityBlock.location_id == location_id))
    if provider_id is not None:
        q = q.where(or_(AvailabilityBlock.provider_id.is_(None), AvailabilityBlock.provider_id == provider_id))
    with _storage_errors():
        result = await session.execute(q.order_by(AvailabilityBlock.start_at))
    return list(result.scalars().all())


async def find_conflicting_appointment(
    session: AsyncSession,
    tenant_id: int,
    location_id: int,
    start: datetime,
    end: datetime,
) -> Appointment | None:
    with _storage_errors():
        result = await session.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.tenant_id == tenant_id,
                    Appointment.location_id == location_id,
                    Appointment.status.in_(HELD_STATUSES),
                    Appointment.start_at < to_naive_utc(end),
                    Appointment.end_at > to_naive_utc(start),
                )
            )
            .limit(1)
        )
    return result.scalars().first()


async def insert_appointment(session: AsyncSession, appointment: Appointment) -> Appointment:
    """Insert inside a savepoint; raises OverlapViolation when the exclusion guard fires."""
    try:
        with _storage_errors():
            async with session.begin_nested():
                session.add(appointment)
    except IntegrityError as exc:
        if is_overlap_violation(exc):
            raise OverlapViolation(str(exc.orig)) from exc
        logger.warning("Appointment rejected by storage: %s", exc.orig)
        raise ConstraintViolation("Appointment references missing or invalid data") from exc
    await session.refresh(appointment)
    return appointment
