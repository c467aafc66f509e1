from dataclasses import dataclass
from zoneinfo import ZoneInfo

from agenda.core.config import settings
from agenda.models.location import Location
from agenda.models.provider import Provider
from agenda.services.business_hours import (
    DEFAULT_WEEKLY_SCHEDULE,
    WeeklySchedule,
    load_timezone,
)


@dataclass(frozen=True)
class ResolvedSchedule:
    schedule: WeeklySchedule
    timezone: ZoneInfo
    buffer_minutes: int
    source: str  # "provider" | "location" | "default"


def resolve_schedule(location: Location, provider: Provider | None = None) -> ResolvedSchedule:
    """Provider override, else location hours, else the Mon-Fri 09-18 default.

    Timezone and buffer always come from the location.
    """
    tz = load_timezone(location.timezone or settings.default_timezone)
    buffer_minutes = max(0, location.buffer_minutes or 0)

    if provider is not None:
        override = WeeklySchedule.from_json(provider.schedule_override)
        if not override.is_empty():
            return ResolvedSchedule(override, tz, buffer_minutes, "provider")

    own = WeeklySchedule.from_json(location.business_hours)
    if not own.is_empty():
        return ResolvedSchedule(own, tz, buffer_minutes, "location")
    return ResolvedSchedule(DEFAULT_WEEKLY_SCHEDULE, tz, buffer_minutes, "default")
