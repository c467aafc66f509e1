from agenda.models import Location, Provider
from agenda.services.business_hours import DEFAULT_WEEKLY_SCHEDULE, Weekday
from agenda.services.schedule_resolver import resolve_schedule
from tests.helpers import BUENOS_AIRES, WEEKDAYS_9_TO_18


def _location(**overrides) -> Location:
    values = dict(id=1, tenant_id=1, name="Centro", timezone=BUENOS_AIRES, business_hours=WEEKDAYS_9_TO_18)
    values.update(overrides)
    return Location(**values)


def test_location_schedule_used_without_provider() -> None:
    resolved = resolve_schedule(_location(buffer_minutes=10))

    assert resolved.source == "location"
    assert resolved.timezone.key == BUENOS_AIRES
    assert resolved.buffer_minutes == 10
    assert len(resolved.schedule.intervals_for(Weekday.MON)) == 1


def test_provider_override_replaces_location_days() -> None:
    provider = Provider(id=2, tenant_id=1, full_name="Bruno", schedule_override={"tue": [["10:00", "12:00"]]})

    resolved = resolve_schedule(_location(buffer_minutes=5), provider)

    assert resolved.source == "provider"
    assert resolved.schedule.intervals_for(Weekday.MON) == ()
    assert resolved.schedule.to_json() == {"tue": [["10:00", "12:00"]]}
    # timezone and buffer never come from the provider
    assert resolved.timezone.key == BUENOS_AIRES
    assert resolved.buffer_minutes == 5


def test_provider_without_override_falls_back_to_location() -> None:
    provider = Provider(id=2, tenant_id=1, full_name="Ana", schedule_override={})

    assert resolve_schedule(_location(), provider).source == "location"


def test_empty_location_schedule_uses_default_week() -> None:
    resolved = resolve_schedule(_location(business_hours={}))

    assert resolved.source == "default"
    assert resolved.schedule == DEFAULT_WEEKLY_SCHEDULE


def test_negative_buffer_is_treated_as_zero() -> None:
    assert resolve_schedule(_location(buffer_minutes=-15)).buffer_minutes == 0
