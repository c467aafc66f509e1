import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.errors import AppointmentNotFound, InvalidTransition, InvalidWindow
from agenda.models.appointment import TRANSITIONS, Appointment

logger = logging.getLogger(__name__)


async def get_appointment(session: AsyncSession, tenant_id: int, appointment_id: int) -> Appointment:
    result = await session.execute(
        select(Appointment).where(Appointment.id == appointment_id, Appointment.tenant_id == tenant_id)
    )
    appointment = result.scalar_one_or_none()
    if appointment is None:
        raise AppointmentNotFound(f"Appointment {appointment_id} not found")
    return appointment


async def list_appointments(
    session: AsyncSession,
    tenant_id: int,
    from_date: date | None = None,
    to_date: date | None = None,
    location_id: int | None = None,
    provider_id: int | None = None,
    status: str | None = None,
) -> list[Appointment]:
    """Tenant appointments ordered by start. Dates are UTC calendar days, ``to_date`` inclusive."""
    if from_date and to_date and to_date < from_date:
        raise InvalidWindow("to_date must not be before from_date")
    q = select(Appointment).where(Appointment.tenant_id == tenant_id)
    if from_date:
        q = q.where(Appointment.start_at >= datetime.combine(from_date, time.min))
    if to_date:
        q = q.where(Appointment.start_at < datetime.combine(to_date + timedelta(days=1), time.min))
    if location_id is not None:
        q = q.where(Appointment.location_id == location_id)
    if provider_id is not None:
        q = q.where(Appointment.provider_id == provider_id)
    if status:
        q = q.where(Appointment.status == status)
    result = await session.execute(q.order_by(Appointment.start_at, Appointment.id))
    return list(result.scalars().all())


async def transition_appointment(
    session: AsyncSession, tenant_id: int, appointment_id: int, action: str
) -> Appointment:
    """Apply a lifecycle action. Canceled and finished appointments release their window."""
    if action not in TRANSITIONS:
        raise InvalidTransition(f"Unknown action: {action}", action=action)
    allowed, target = TRANSITIONS[action]
    appointment = await get_appointment(session, tenant_id, appointment_id)
    if appointment.status not in allowed:
        raise InvalidTransition(
            f"Cannot {action} an appointment that is {appointment.status}",
            action=action,
            status=appointment.status,
        )
    previous = appointment.status
    appointment.status = target.value
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment %s: %s -> %s (%s)", appointment.id, previous, appointment.status, action)
    return appointment
