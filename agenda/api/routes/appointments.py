from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.api.deps import get_session, get_tenant_id
from agenda.api.schemas.appointment import BookAppointmentRequest
from agenda.models.appointment import Appointment, AppointmentPublic
from agenda.services.appointment_service import get_appointment, list_appointments, transition_appointment
from agenda.services.booking_service import BookingRequest, book_appointment, run_booking_side_effects

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(a, from_attributes=True)


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    body: BookAppointmentRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    tenant_id: int = Depends(get_tenant_id),
) -> AppointmentPublic:
    outcome = await book_appointment(session, tenant_id, BookingRequest(**body.model_dump()))
    # side effects only for a committed booking
    await session.commit()
    background_tasks.add_task(run_booking_side_effects, outcome)
    return _to_public(outcome.appointment)


@router.get("", response_model=list[AppointmentPublic])
async def list_tenant_appointments(
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    location_id: int | None = Query(None),
    provider_id: int | None = Query(None),
    status_param: str | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    tenant_id: int = Depends(get_tenant_id),
) -> list[AppointmentPublic]:
    appointments = await list_appointments(
        session,
        tenant_id,
        from_date=from_date,
        to_date=to_date,
        location_id=location_id,
        provider_id=provider_id,
        status=status_param,
    )
    return [_to_public(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def read_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    tenant_id: int = Depends(get_tenant_id),
) -> AppointmentPublic:
    return _to_public(await get_appointment(session, tenant_id, appointment_id))


@router.post("/{appointment_id}/{action}", response_model=AppointmentPublic)
async def apply_action(
    appointment_id: int,
    action: str,
    session: AsyncSession = Depends(get_session),
    tenant_id: int = Depends(get_tenant_id),
) -> AppointmentPublic:
    """Lifecycle action: confirm, cancel, complete, mark_no_show, request_reschedule,
    resolve_reschedule_confirm or resolve_reschedule_cancel."""
    appointment = await transition_appointment(session, tenant_id, appointment_id, action)
    return _to_public(appointment)
