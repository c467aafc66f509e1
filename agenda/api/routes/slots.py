from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.api.deps import get_session, get_tenant_id
from agenda.api.schemas.appointment import AvailableSlotsResponse, DaySuggestionOut, SuggestDatesResponse
from agenda.services.scan_service import find_next_available_dates
from agenda.services.slot_service import list_available_slots, normalize_duration

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    date_param: date = Query(..., alias="date"),
    location_id: int = Query(...),
    provider_id: int | None = Query(None),
    duration_minutes: int | None = Query(None, gt=0, le=24 * 60),
    session: AsyncSession = Depends(get_session),
    tenant_id: int = Depends(get_tenant_id),
) -> AvailableSlotsResponse:
    """Bookable local start times for one location-local date."""
    slots = await list_available_slots(
        session,
        tenant_id,
        date_param,
        location_id,
        duration_minutes=duration_minutes,
        provider_id=provider_id,
    )
    return AvailableSlotsResponse(
        date=date_param.isoformat(),
        location_id=location_id,
        provider_id=provider_id,
        duration_minutes=normalize_duration(duration_minutes),
        slots=slots,
    )


@router.get("/suggest", response_model=SuggestDatesResponse)
async def suggest_dates(
    from_date: date = Query(...),
    location_id: int = Query(...),
    provider_id: int | None = Query(None),
    duration_minutes: int | None = Query(None, gt=0, le=24 * 60),
    horizon_days: int | None = Query(None, ge=1, le=90),
    limit: int | None = Query(None, ge=1, le=31),
    session: AsyncSession = Depends(get_session),
    tenant_id: int = Depends(get_tenant_id),
) -> SuggestDatesResponse:
    """Next open dates from ``from_date`` with a short preview of their first slots."""
    days = await find_next_available_dates(
        session,
        tenant_id,
        from_date,
        location_id,
        duration_minutes=duration_minutes,
        provider_id=provider_id,
        horizon_days=horizon_days,
        limit=limit,
    )
    return SuggestDatesResponse(
        from_date=from_date,
        location_id=location_id,
        provider_id=provider_id,
        duration_minutes=normalize_duration(duration_minutes),
        days=[DaySuggestionOut(date=d.date, slots=d.slots) for d in days],
    )
