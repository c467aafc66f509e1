import logging

import httpx

from agenda.core.clock import as_utc
from agenda.core.config import settings
from agenda.models.appointment import Appointment

logger = logging.getLogger(__name__)


def build_calendar_event(appointment: Appointment, summary: str, description: str | None = None) -> dict:
    return {
        "summary": summary,
        "description": description or "",
        "start": {"dateTime": as_utc(appointment.start_at).isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": as_utc(appointment.end_at).isoformat(), "timeZone": "UTC"},
        "extendedProperties": {"private": {"appointment_id": str(appointment.id)}},
    }


async def sync_external_calendar(
    appointment: Appointment,
    provider_id: int | None,
    calendar_id: str | None,
    summary: str = "Appointment",
    description: str | None = None,
) -> str | None:
    """Mirror a booking into the provider's Google Calendar. Returns the event id."""
    if provider_id is None or not calendar_id:
        logger.debug("No provider calendar for appointment %s, skipping sync", appointment.id)
        return None
    if not settings.calendar_sync_enabled:
        logger.debug("Calendar sync disabled (GOOGLE_CALENDAR_TOKEN not set), skipping")
        return None
    url = f"{settings.google_calendar_api_url}/calendars/{calendar_id}/events"
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        resp = await client.post(
            url,
            json=build_calendar_event(appointment, summary, description),
            headers={"Authorization": f"Bearer {settings.google_calendar_token}"},
        )
    if resp.status_code >= 400:
        raise RuntimeError(f"Calendar sync failed: status={resp.status_code} body={resp.text[:500]}")
    event_id = resp.json().get("id")
    logger.info("Appointment %s synced to calendar %s (event %s)", appointment.id, calendar_id, event_id)
    return event_id
