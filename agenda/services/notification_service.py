import logging
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx

from agenda.core.config import settings

logger = logging.getLogger(__name__)


def build_appointment_created_variables(
    name: str,
    start_at: datetime,
    location_name: str | None,
    provider_name: str | None,
    timezone: str | None = None,
) -> list[str]:
    """Template body parameters: patient, date, date label, time label, where."""
    local = start_at.astimezone(ZoneInfo(timezone)) if timezone else start_at
    date_str = local.strftime("%d/%m/%Y")
    time_str = local.strftime("%H:%M")
    where = f"{location_name or 'our office'} with {provider_name or 'the specialist'}"
    return [name, date_str, date_str, time_str, where]


async def notify_appointment_created(
    phone: str,
    name: str,
    start_at: datetime,
    location_name: str | None,
    provider_name: str | None,
    timezone: str | None = None,
) -> None:
    """Send the appointment-created WhatsApp template. Raises on delivery failure."""
    if not settings.whatsapp_enabled:
        logger.debug("WhatsApp disabled (token not configured), skipping notification")
        return
    variables = build_appointment_created_variables(name, start_at, location_name, provider_name, timezone)
    payload = {
        "messaging_product": "whatsapp",
        "to": phone.lstrip("+"),
        "type": "template",
        "template": {
            "name": settings.whatsapp_template_appointment_created,
            "language": {"code": settings.whatsapp_language_code},
            "components": [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": v} for v in variables],
                }
            ],
        },
    }
    url = f"{settings.whatsapp_api_url}/{settings.whatsapp_phone_number_id}/messages"
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        resp = await client.post(
            url,
            json=payload,
            headers={"Authorization": f"Bearer {settings.whatsapp_token}"},
        )
    if resp.status_code >= 400:
        raise RuntimeError(f"WhatsApp send failed: status={resp.status_code} body={resp.text[:500]}")
    logger.info("Appointment notification sent to %s", phone)
