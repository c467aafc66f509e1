"""Booking transaction.

A booking runs through an ordered list of steps, each filling in part of a
:class:`BookingContext`. Keeping the fallbacks as separate steps makes the lookup
order (service, provider, location, patient) explicit and testable on its own.

The check-then-insert sequence is optimistic: the application probe can pass for two
concurrent requests, and the storage exclusion constraint decides the winner. The
loser gets ``SlotTaken``. Nothing is retried here.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.clock import to_naive_utc
from agenda.core.errors import (
    InvalidPatient,
    InvalidProvider,
    InvalidService,
    InvalidWindow,
    LocationNotFound,
    NoLocationConfigured,
    OutsideBusinessHours,
    OverlapViolation,
    PausedProvider,
    PausedService,
    SlotBlocked,
    SlotTaken,
)
from agenda.models.appointment import Appointment, AppointmentStatus
from agenda.models.location import Location
from agenda.models.patient import Patient
from agenda.models.provider import Provider
from agenda.models.service import Service
from agenda.services import repository
from agenda.services.business_hours import is_within_business_hours
from agenda.services.calendar_service import sync_external_calendar
from agenda.services.conflict_service import block_applies
from agenda.services.notification_service import notify_appointment_created
from agenda.services.phone import normalize_phone
from agenda.services.schedule_resolver import ResolvedSchedule, resolve_schedule
from agenda.services.slot_service import normalize_duration

logger = logging.getLogger(__name__)


@dataclass
class BookingRequest:
    patient_name: str
    phone: str
    start_at: datetime
    email: str | None = None
    duration_minutes: int | None = None
    service_id: int | None = None
    service_name: str | None = None
    provider_id: int | None = None
    location_id: int | None = None
    notes: str | None = None


@dataclass
class BookingContext:
    tenant_id: int
    request: BookingRequest
    phone: str = ""
    start_at: datetime | None = None
    end_at: datetime | None = None
    service: Service | None = None
    duration_minutes: int = 0
    provider: Provider | None = None
    location: Location | None = None
    patient: Patient | None = None
    resolved: ResolvedSchedule | None = None
    appointment: Appointment | None = None
    trail: list[str] = field(default_factory=list)  # which fallback each lookup used


@dataclass(frozen=True)
class BookingOutcome:
    appointment: Appointment
    patient: Patient
    location: Location
    provider: Provider | None
    timezone: str
    service_name: str | None = None


BookingStep = Callable[[AsyncSession, BookingContext], Awaitable[None]]


async def normalize_patient_input(session: AsyncSession, ctx: BookingContext) -> None:
    req = ctx.request
    if not req.patient_name or not req.patient_name.strip():
        raise InvalidPatient("Patient name is required")
    ctx.phone = normalize_phone(req.phone or "")
    if not ctx.phone:
        raise InvalidPatient("Patient phone is required")
    start = req.start_at
    if not isinstance(start, datetime):
        raise InvalidWindow(f"Invalid start: {start!r}")
    ctx.start_at = start.replace(tzinfo=UTC) if start.tzinfo is None else start.astimezone(UTC)


async def resolve_service(session: AsyncSession, ctx: BookingContext) -> None:
    req = ctx.request
    if req.service_id is not None:
        service = await repository.get_service_by_id(session, ctx.tenant_id, req.service_id)
        if service is None:
            raise InvalidService(f"Service {req.service_id} not found")
        if not service.active:
            raise PausedService(f"Service {service.name} is paused")
        ctx.service = service

    if req.duration_minutes is not None:
        ctx.trail.append("duration:explicit")
        duration = req.duration_minutes
    elif ctx.service is not None and ctx.service.duration_minutes:
        ctx.trail.append("duration:service")
        duration = ctx.service.duration_minutes
    else:
        ctx.trail.append("duration:default")
        duration = None
    ctx.duration_minutes = normalize_duration(duration)
    ctx.end_at = ctx.start_at + timedelta(minutes=ctx.duration_minutes)


async def resolve_provider(session: AsyncSession, ctx: BookingContext) -> None:
    req = ctx.request
    if req.provider_id is not None:
        provider = await repository.get_provider_by_id(session, ctx.tenant_id, req.provider_id)
        if provider is None:
            raise InvalidProvider(f"Provider {req.provider_id} not found")
        if not provider.active:
            raise PausedProvider(f"Provider {provider.full_name} is paused")
        ctx.provider = provider
        ctx.trail.append("provider:explicit")
        return
    # best-effort attribution, not a scheduler: first active provider by id
    ctx.provider = await repository.first_active_provider(session, ctx.tenant_id)
    ctx.trail.append("provider:first_active" if ctx.provider else "provider:none")


async def _explicit_location(session: AsyncSession, ctx: BookingContext) -> Location | None:
    location_id = ctx.request.location_id
    if location_id is None:
        return None
    location = await repository.get_location_by_id(session, ctx.tenant_id, location_id)
    if location is None:
        raise LocationNotFound(f"Location {location_id} not found")
    return location


async def _provider_default_location(session: AsyncSession, ctx: BookingContext) -> Location | None:
    if ctx.provider is None or ctx.provider.default_location_id is None:
        return None
    return await repository.get_location_by_id(session, ctx.tenant_id, ctx.provider.default_location_id)


async def _first_location(session: AsyncSession, ctx: BookingContext) -> Location | None:
    return await repository.first_location_by_name(session, ctx.tenant_id)


LOCATION_FALLBACKS: tuple[tuple[str, Callable[[AsyncSession, BookingContext], Awaitable[Location | None]]], ...] = (
    ("explicit", _explicit_location),
    ("provider_default", _provider_default_location),
    ("first_by_name", _first_location),
)


async def resolve_location(session: AsyncSession, ctx: BookingContext) -> None:
    for name, lookup in LOCATION_FALLBACKS:
        location = await lookup(session, ctx)
        if location is not None:
            ctx.location = location
            ctx.trail.append(f"location:{name}")
            return
    raise NoLocationConfigured()


async def upsert_patient(session: AsyncSession, ctx: BookingContext) -> None:
    req = ctx.request
    ctx.patient = await repository.upsert_patient(
        session,
        ctx.tenant_id,
        ctx.phone,
        req.patient_name.strip(),
        email=(req.email or "").strip() or None,
    )


def _requested_provider(ctx: BookingContext) -> Provider | None:
    # an auto-assigned provider is attribution only; hours and blocks follow the request
    return ctx.provider if ctx.request.provider_id is not None else None


async def check_business_hours(session: AsyncSession, ctx: BookingContext) -> None:
    ctx.resolved = resolve_schedule(ctx.location, _requested_provider(ctx))
    tz = ctx.resolved.timezone
    if not is_within_business_hours(ctx.start_at, ctx.end_at, ctx.resolved.schedule, tz):
        local = ctx.start_at.astimezone(tz)
        raise OutsideBusinessHours(
            "Outside business hours",
            timezone=tz.key,
            local_weekday=local.strftime("%a").lower(),
            local_hour=local.hour,
            start_at=ctx.start_at.isoformat(),
        )


async def check_conflicts(session: AsyncSession, ctx: BookingContext) -> None:
    pad = timedelta(minutes=ctx.resolved.buffer_minutes)
    window_start, window_end = ctx.start_at - pad, ctx.end_at + pad
    clash = await repository.find_conflicting_appointment(
        session, ctx.tenant_id, ctx.location.id, window_start, window_end
    )
    if clash is not None:
        raise SlotTaken()

    requested = _requested_provider(ctx)
    provider_id = requested.id if requested else None
    blocks = await repository.query_blocks(
        session, ctx.tenant_id, ctx.start_at, ctx.end_at, location_id=ctx.location.id, provider_id=provider_id
    )
    for block in blocks:
        if block_applies(block, ctx.location.id, provider_id):
            raise SlotBlocked(reason=block.reason)


async def insert_appointment(session: AsyncSession, ctx: BookingContext) -> None:
    req = ctx.request
    service_name = ctx.service.name if ctx.service else ((req.service_name or "").strip() or None)
    appointment = Appointment(
        tenant_id=ctx.tenant_id,
        location_id=ctx.location.id,
        provider_id=ctx.provider.id if ctx.provider else None,
        patient_id=ctx.patient.id,
        service_id=ctx.service.id if ctx.service else None,
        service_name=service_name,
        start_at=to_naive_utc(ctx.start_at),
        end_at=to_naive_utc(ctx.end_at),
        status=AppointmentStatus.PENDING.value,
        notes=req.notes,
    )
    try:
        ctx.appointment = await repository.insert_appointment(session, appointment)
    except OverlapViolation as exc:
        logger.warning(
            "Booking lost race for location=%s at %s: %s", ctx.location.id, ctx.start_at.isoformat(), exc
        )
        raise SlotTaken() from exc


BOOKING_PIPELINE: tuple[BookingStep, ...] = (
    normalize_patient_input,
    resolve_service,
    resolve_provider,
    resolve_location,
    upsert_patient,
    check_business_hours,
    check_conflicts,
    insert_appointment,
)


async def book_appointment(session: AsyncSession, tenant_id: int, request: BookingRequest) -> BookingOutcome:
    """Validate and insert one pending appointment.

    The appointment is flushed, not committed; the caller owns the transaction and
    runs :func:`run_booking_side_effects` after commit.
    """
    ctx = BookingContext(tenant_id=tenant_id, request=request)
    for step in BOOKING_PIPELINE:
        await step(session, ctx)

    logger.info(
        "Appointment %s booked: tenant=%s location=%s provider=%s start=%s (%s)",
        ctx.appointment.id,
        tenant_id,
        ctx.location.id,
        ctx.provider.id if ctx.provider else None,
        ctx.start_at.isoformat(),
        ", ".join(ctx.trail),
    )
    return BookingOutcome(
        appointment=ctx.appointment,
        patient=ctx.patient,
        location=ctx.location,
        provider=ctx.provider,
        timezone=ctx.resolved.timezone.key,
        service_name=ctx.appointment.service_name,
    )


async def run_booking_side_effects(outcome: BookingOutcome) -> None:
    """Notification and calendar sync. Failures are logged and never reach the caller."""
    appt = outcome.appointment
    provider = outcome.provider
    try:
        await notify_appointment_created(
            outcome.patient.phone_e164,
            outcome.patient.full_name,
            appt.start_at.replace(tzinfo=UTC),
            outcome.location.name,
            provider.full_name if provider else None,
            timezone=outcome.timezone,
        )
    except Exception as e:
        logger.exception("Appointment %s notification failed: %s", appt.id, e)
    try:
        await sync_external_calendar(
            appt,
            provider.id if provider else None,
            provider.calendar_id if provider else None,
            summary=f"{outcome.service_name or 'Appointment'} - {outcome.patient.full_name}",
            description=appt.notes,
        )
    except Exception as e:
        logger.exception("Appointment %s calendar sync failed: %s", appt.id, e)
