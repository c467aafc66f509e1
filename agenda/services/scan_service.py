import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.clock import utc_now
from agenda.core.config import settings
from agenda.core.errors import AgendaError, InvalidDate
from agenda.services.conflict_service import fetch_conflict_data
from agenda.services.schedule_resolver import resolve_schedule
from agenda.services.slot_service import (
    conflict_range,
    enumerate_slots,
    normalize_duration,
    parse_date,
    resolve_listing_target,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DaySuggestion:
    date: date
    slots: list[str]


async def find_next_available_dates(
    session: AsyncSession,
    tenant_id: int,
    from_date: date | str,
    location_id: int,
    duration_minutes: int | None = None,
    provider_id: int | None = None,
    horizon_days: int | None = None,
    limit: int | None = None,
    preview_slots: int | None = None,
    chunk_days: int | None = None,
    now: datetime | None = None,
) -> list[DaySuggestion]:
    """Scan forward from ``from_date`` and return the first open dates with a slot preview.

    Conflict data is fetched one chunk of days at a time. The schedule is resolved once
    for the whole scan. A chunk or day that fails is logged and skipped.
    """
    start_day = parse_date(from_date)
    duration = normalize_duration(duration_minutes)
    horizon = max(0, horizon_days if horizon_days is not None else settings.scan_horizon_days)
    target_count = limit if limit is not None else settings.scan_target_dates
    preview = preview_slots if preview_slots is not None else settings.scan_preview_slots
    chunk = max(1, chunk_days or settings.scan_chunk_days)
    now = now or utc_now()

    location, provider = await resolve_listing_target(session, tenant_id, location_id, provider_id)
    # ORM rows expire on rollback; only the resolved schedule and ids are used past this point
    resolved = resolve_schedule(location, provider)
    conflict_range(start_day, start_day, duration, resolved.buffer_minutes)

    found: list[DaySuggestion] = []
    for offset in range(0, horizon, chunk):
        if len(found) >= target_count:
            break
        try:
            days = [start_day + timedelta(days=i) for i in range(offset, min(offset + chunk, horizon))]
            fetch_start, fetch_end = conflict_range(days[0], days[-1], duration, resolved.buffer_minutes)
        except (OverflowError, InvalidDate):
            logger.warning("Scan from %s reached the end of the calendar", start_day)
            break
        try:
            conflicts = await fetch_conflict_data(session, tenant_id, fetch_start, fetch_end, location_id)
        except (AgendaError, SQLAlchemyError):
            logger.warning(
                "Skipping %s..%s: conflict fetch failed", days[0], days[-1], exc_info=True
            )
            await session.rollback()
            continue

        for day in days:
            if len(found) >= target_count:
                break
            try:
                slots = enumerate_slots(day, resolved, duration, conflicts, now, location_id, provider_id)
            except (AgendaError, ValueError, OverflowError):
                logger.warning("Skipping %s: slot enumeration failed", day, exc_info=True)
                continue
            if slots:
                found.append(DaySuggestion(date=day, slots=slots[:preview]))

    logger.debug(
        "Scan from %s over %d days for location=%s found %d open dates",
        start_day,
        horizon,
        location_id,
        len(found),
    )
    return found
