from datetime import date

import pytest

from agenda.core.errors import InvalidDate, LocationNotFound, StorageUnavailable
from agenda.models import AvailabilityBlock
from agenda.services import scan_service
from agenda.services.scan_service import find_next_available_dates
from tests.helpers import LONG_AGO, THURSDAY, local_instant


async def test_skips_closed_days_and_stops_at_limit(session, seed) -> None:
    days = await find_next_available_dates(
        session, seed.tenant_id, THURSDAY, seed.location_id, 30, limit=3, now=LONG_AGO
    )

    assert [d.date for d in days] == [date(2030, 1, 3), date(2030, 1, 4), date(2030, 1, 7)]
    assert all(d.slots == ["09:00", "09:15", "09:30", "09:45"] for d in days)


async def test_preview_size_and_horizon(session, seed) -> None:
    days = await find_next_available_dates(
        session, seed.tenant_id, "2030-01-04", seed.location_id, 30, horizon_days=3, preview_slots=2, now=LONG_AGO
    )

    # Fri is open, Sat and Sun are closed, Mon is past the horizon
    assert [(d.date, d.slots) for d in days] == [(date(2030, 1, 4), ["09:00", "09:15"])]


async def test_fully_blocked_day_is_skipped(session, seed) -> None:
    session.add(
        AvailabilityBlock(
            tenant_id=seed.tenant_id,
            location_id=seed.location_id,
            start_at=local_instant(THURSDAY, "00:00").replace(tzinfo=None),
            end_at=local_instant(THURSDAY, "23:59").replace(tzinfo=None),
            reason="holiday",
        )
    )
    await session.flush()

    days = await find_next_available_dates(session, seed.tenant_id, THURSDAY, seed.location_id, 30, limit=1, now=LONG_AGO)

    assert [d.date for d in days] == [date(2030, 1, 4)]


async def test_scan_uses_provider_override(session, seed) -> None:
    days = await find_next_available_dates(
        session,
        seed.tenant_id,
        THURSDAY,
        seed.location_id,
        60,
        provider_id=seed.override_provider_id,
        limit=2,
        now=LONG_AGO,
    )

    # Bruno only works Tuesdays
    assert [d.date for d in days] == [date(2030, 1, 8), date(2030, 1, 15)]
    assert days[0].slots == ["10:00", "10:15", "10:30", "10:45"]


async def test_failing_day_does_not_abort_scan(session, seed, monkeypatch) -> None:
    real = scan_service.enumerate_slots

    def flaky(day, *args, **kwargs):
        if day == THURSDAY:
            raise ValueError("corrupt schedule row")
        return real(day, *args, **kwargs)

    monkeypatch.setattr(scan_service, "enumerate_slots", flaky)

    days = await find_next_available_dates(session, seed.tenant_id, THURSDAY, seed.location_id, 30, limit=2, now=LONG_AGO)

    assert [d.date for d in days] == [date(2030, 1, 4), date(2030, 1, 7)]


async def test_failing_chunk_is_skipped(session, seed, monkeypatch) -> None:
    real = scan_service.fetch_conflict_data
    calls = []

    async def flaky(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise StorageUnavailable()
        return await real(*args, **kwargs)

    monkeypatch.setattr(scan_service, "fetch_conflict_data", flaky)

    days = await find_next_available_dates(
        session, seed.tenant_id, THURSDAY, seed.location_id, 30, chunk_days=7, limit=1, now=LONG_AGO
    )

    assert len(calls) == 2
    assert [d.date for d in days] == [date(2030, 1, 10)]


async def test_unknown_location_fails_fast(session, seed) -> None:
    with pytest.raises(LocationNotFound):
        await find_next_available_dates(session, seed.tenant_id, THURSDAY, 9999, 30)


async def test_start_at_the_edge_of_the_calendar_is_invalid(session, seed) -> None:
    with pytest.raises(InvalidDate):
        await find_next_available_dates(session, seed.tenant_id, date(9999, 12, 31), seed.location_id, 30)


async def test_scan_stops_before_the_end_of_the_calendar(session, seed) -> None:
    days = await find_next_available_dates(
        session, seed.tenant_id, date(9999, 12, 1), seed.location_id, 30,
        horizon_days=60, chunk_days=7, limit=31, now=LONG_AGO,
    )

    assert days
    assert max(d.date for d in days) <= date(9999, 12, 28)
