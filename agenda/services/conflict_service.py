"""Conflict data for a time range and the rules deciding what blocks a candidate.

Appointments are scoped to the whole location. The storage exclusion constraint is
location-wide, so a provider-narrowed view here would advertise slots that can never
be booked. Blocks are provider-aware: a block on provider X closes X's time, and when
no provider is pinned any provider-specific block still wins.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.clock import as_utc
from agenda.models.appointment import HELD_STATUSES, Appointment
from agenda.models.block import AvailabilityBlock
from agenda.services import repository


@dataclass(frozen=True)
class BusyWindow:
    start: datetime  # aware UTC
    end: datetime
    location_id: int | None
    provider_id: int | None
    status: str | None = None  # None for blocks


@dataclass
class ConflictData:
    appointments: list[BusyWindow] = field(default_factory=list)
    blocks: list[BusyWindow] = field(default_factory=list)


def _appointment_window(a: Appointment) -> BusyWindow:
    return BusyWindow(as_utc(a.start_at), as_utc(a.end_at), a.location_id, a.provider_id, a.status)


def _block_window(b: AvailabilityBlock) -> BusyWindow:
    return BusyWindow(as_utc(b.start_at), as_utc(b.end_at), b.location_id, b.provider_id)


async def fetch_conflict_data(
    session: AsyncSession,
    tenant_id: int,
    start: datetime,
    end: datetime,
    location_id: int | None = None,
) -> ConflictData:
    """Held appointments and blocks intersecting ``[start, end)``.

    Callers pad ``start``/``end`` by the buffer so padded appointments near the edges
    are included.
    """
    appointments = await repository.query_appointments(
        session, tenant_id, start, end, location_id=location_id, exclude_canceled=True
    )
    blocks = await repository.query_blocks(session, tenant_id, start, end, location_id=location_id)
    return ConflictData(
        appointments=[_appointment_window(a) for a in appointments],
        blocks=[_block_window(b) for b in blocks],
    )


def appointment_blocks(appt: BusyWindow, location_id: int) -> bool:
    return appt.location_id == location_id and (appt.status is None or appt.status in HELD_STATUSES)


def block_applies(block: BusyWindow | AvailabilityBlock, location_id: int, provider_id: int | None) -> bool:
    if block.location_id is not None and block.location_id != location_id:
        return False
    # unpinned requests are blocked by every provider-specific block
    return block.provider_id is None or provider_id is None or block.provider_id == provider_id


def _overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    return start < other_end and end > other_start


def find_conflict(
    data: ConflictData,
    start: datetime,
    end: datetime,
    location_id: int,
    provider_id: int | None,
    buffer_minutes: int,
) -> BusyWindow | None:
    """First appointment or block colliding with ``[start, end)``.

    The buffer pads appointment windows only.
    """
    pad = timedelta(minutes=buffer_minutes)
    for appt in data.appointments:
        if appointment_blocks(appt, location_id) and _overlaps(start, end, appt.start - pad, appt.end + pad):
            return appt
    for block in data.blocks:
        if block_applies(block, location_id, provider_id) and _overlaps(start, end, block.start, block.end):
            return block
    return None


def has_conflict(
    data: ConflictData,
    start: datetime,
    end: datetime,
    location_id: int,
    provider_id: int | None,
    buffer_minutes: int,
) -> bool:
    return find_conflict(data, start, end, location_id, provider_id, buffer_minutes) is not None
