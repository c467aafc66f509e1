import logging
from datetime import UTC, date, datetime, time, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.clock import utc_now
from agenda.core.config import settings
from agenda.core.errors import InvalidDate, InvalidProvider, LocationNotFound, PausedProvider
from agenda.models.location import Location
from agenda.models.provider import Provider
from agenda.services import repository
from agenda.services.business_hours import is_within_business_hours
from agenda.services.conflict_service import ConflictData, fetch_conflict_data, has_conflict
from agenda.services.schedule_resolver import ResolvedSchedule, resolve_schedule

logger = logging.getLogger(__name__)

# UTC offsets in use span -12:00..+14:00, so local day D lives inside
# [D 00:00Z - 14h, D+1 00:00Z + 12h).
_EARLIEST_OFFSET = timedelta(hours=14)
_LATEST_OFFSET = timedelta(hours=12)


def parse_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip()[:10])
    except (AttributeError, ValueError) as exc:
        raise InvalidDate(f"Invalid date: {value!r}") from exc


def normalize_duration(duration_minutes: int | None) -> int:
    if duration_minutes is None:
        duration_minutes = settings.default_duration_minutes
    return max(settings.min_duration_minutes, int(duration_minutes))


def scan_window(target: date) -> tuple[datetime, datetime]:
    """Real-time range covering every instant whose local date is ``target`` in any zone."""
    midnight = datetime.combine(target, time.min, tzinfo=UTC)
    try:
        return midnight - _EARLIEST_OFFSET, midnight + timedelta(days=1) + _LATEST_OFFSET
    except OverflowError as exc:
        raise InvalidDate(f"Date out of range: {target.isoformat()}") from exc


def conflict_range(first: date, last: date, duration_minutes: int, buffer_minutes: int) -> tuple[datetime, datetime]:
    """Fetch range for conflict data serving every scan window from ``first`` to ``last``.

    Candidates run past their window by the duration and appointments reach in by the buffer.
    """
    pad = timedelta(minutes=buffer_minutes)
    start, _ = scan_window(first)
    _, end = scan_window(last)
    try:
        return start - pad, end + timedelta(minutes=duration_minutes) + pad
    except OverflowError as exc:
        raise InvalidDate(f"Date out of range: {last.isoformat()}") from exc


def enumerate_slots(
    target: date,
    resolved: ResolvedSchedule,
    duration_minutes: int,
    conflicts: ConflictData,
    now: datetime,
    location_id: int,
    provider_id: int | None = None,
    granularity_minutes: int | None = None,
) -> list[str]:
    """Bookable local ``HH:MM`` start times for ``target``, ascending."""
    step = timedelta(minutes=granularity_minutes or settings.slot_granularity_minutes)
    duration = timedelta(minutes=duration_minutes)
    tz = resolved.timezone
    start, end = scan_window(target)

    # A repeated wall time (clocks falling back) is judged by its first
    # occurrence only, the one datetime.combine resolves it to.
    seen: set[str] = set()
    found: list[str] = []
    candidate = start
    while candidate < end:
        local = candidate.astimezone(tz)
        label = local.strftime("%H:%M")
        candidate_end = candidate + duration
        if local.date() != target or label in seen:
            candidate += step
            continue
        seen.add(label)
        if (
            candidate > now
            and is_within_business_hours(candidate, candidate_end, resolved.schedule, tz)
            and not has_conflict(
                conflicts, candidate, candidate_end, location_id, provider_id, resolved.buffer_minutes
            )
        ):
            found.append(label)
        candidate += step
    return sorted(found)


async def resolve_listing_target(
    session: AsyncSession,
    tenant_id: int,
    location_id: int,
    provider_id: int | None,
) -> tuple[Location, Provider | None]:
    location = await repository.get_location_by_id(session, tenant_id, location_id)
    if location is None:
        raise LocationNotFound(f"Location {location_id} not found")
    provider = None
    if provider_id is not None:
        provider = await repository.get_provider_by_id(session, tenant_id, provider_id)
        if provider is None:
            raise InvalidProvider(f"Provider {provider_id} not found")
        if not provider.active:
            raise PausedProvider(f"Provider {provider_id} is paused")
    return location, provider


async def list_available_slots(
    session: AsyncSession,
    tenant_id: int,
    target_date: date | str,
    location_id: int,
    duration_minutes: int | None = None,
    provider_id: int | None = None,
    now: datetime | None = None,
) -> list[str]:
    target = parse_date(target_date)
    duration = normalize_duration(duration_minutes)
    now = now or utc_now()

    location, provider = await resolve_listing_target(session, tenant_id, location_id, provider_id)
    resolved = resolve_schedule(location, provider)

    start, end = conflict_range(target, target, duration, resolved.buffer_minutes)
    conflicts = await fetch_conflict_data(session, tenant_id, start, end, location.id)

    slots = enumerate_slots(target, resolved, duration, conflicts, now, location.id, provider_id)
    logger.debug(
        "Slots for tenant=%s location=%s provider=%s date=%s: %d found",
        tenant_id,
        location.id,
        provider_id,
        target.isoformat(),
        len(slots),
    )
    return slots