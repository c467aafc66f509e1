from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

BUENOS_AIRES = "America/Argentina/Buenos_Aires"  # UTC-3, no DST
WEEKDAYS_9_TO_18 = {day: [["09:00", "18:00"]] for day in ("mon", "tue", "wed", "thu", "fri")}

TUESDAY = date(2030, 1, 1)
THURSDAY = date(2030, 1, 3)
SATURDAY = date(2030, 1, 5)
LONG_AGO = datetime(2029, 12, 1, tzinfo=UTC)


def local_instant(day: date, hhmm: str, tz: str = BUENOS_AIRES) -> datetime:
    """Aware UTC instant for a local wall-clock time."""
    return datetime.combine(day, time.fromisoformat(hhmm), tzinfo=ZoneInfo(tz)).astimezone(UTC)


def quarter_hours(first: str, last: str) -> list[str]:
    """Every HH:MM from ``first`` to ``last`` inclusive in 15 minute steps."""
    h, m = map(int, first.split(":"))
    out = []
    while f"{h:02d}:{m:02d}" <= last:
        out.append(f"{h:02d}:{m:02d}")
        m += 15
        if m == 60:
            h, m = h + 1, 0
    return out


@dataclass
class Seed:
    tenant_id: int
    other_tenant_id: int
    location_id: int
    provider_id: int  # active, no override
    override_provider_id: int  # Tue 10:00-12:00 only
    paused_provider_id: int
    service_id: int  # 45 minutes
    paused_service_id: int
    patient_id: int
