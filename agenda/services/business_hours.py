"""Weekly open-hours value and the window-fits-schedule check.

Schedules travel as JSON in the form ``{"mon": [["09:00", "18:00"]], ...}``. They are
parsed once into a :class:`WeeklySchedule` so the rest of the engine works with typed
``Weekday -> [TimeRange]`` data instead of raw dicts.
"""
from datetime import date, datetime, time
from enum import StrEnum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, model_validator

from agenda.core.errors import InvalidTimezone, InvalidWindow


class Weekday(StrEnum):
    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"
    SAT = "sat"
    SUN = "sun"

    @classmethod
    def of(cls, d: date) -> "Weekday":
        return _WEEKDAYS[d.weekday()]

    @classmethod
    def parse(cls, key: str) -> "Weekday":
        # accepts "mon", "Mon", "monday"
        return cls(key.strip().lower()[:3])


_WEEKDAYS = list(Weekday)


class TimeRange(BaseModel):
    """Local ``[open, close)`` interval within one day."""

    model_config = ConfigDict(frozen=True)

    open: time
    close: time

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRange":
        if self.open >= self.close:
            raise ValueError(f"open {self.open} must be before close {self.close}")
        return self

    def covers(self, local_start: time, local_end: time) -> bool:
        return self.open <= local_start and local_end <= self.close


class WeeklySchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    days: dict[Weekday, tuple[TimeRange, ...]] = {}

    @classmethod
    def from_json(cls, raw: dict[str, Any] | None) -> "WeeklySchedule":
        if not raw:
            return cls()
        days: dict[Weekday, tuple[TimeRange, ...]] = {}
        try:
            for key, intervals in raw.items():
                ranges = []
                for interval in intervals or []:
                    if isinstance(interval, dict):
                        start, end = interval["open"], interval["close"]
                    else:
                        start, end = interval
                    ranges.append(TimeRange(open=time.fromisoformat(start), close=time.fromisoformat(end)))
                if ranges:
                    days[Weekday.parse(key)] = tuple(sorted(ranges, key=lambda r: r.open))
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidWindow(f"Malformed weekly schedule: {exc}") from exc
        return cls(days=days)

    def to_json(self) -> dict[str, list[list[str]]]:
        return {
            day.value: [[r.open.strftime("%H:%M"), r.close.strftime("%H:%M")] for r in ranges]
            for day, ranges in self.days.items()
        }

    def is_empty(self) -> bool:
        return not any(self.days.values())

    def intervals_for(self, weekday: Weekday) -> tuple[TimeRange, ...]:
        return self.days.get(weekday, ())


_NINE_TO_SIX = (TimeRange(open=time(9, 0), close=time(18, 0)),)

DEFAULT_WEEKLY_SCHEDULE = WeeklySchedule(
    days={day: _NINE_TO_SIX for day in (Weekday.MON, Weekday.TUE, Weekday.WED, Weekday.THU, Weekday.FRI)}
)


def load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezone(f"Unknown timezone: {name}", timezone=name) from exc


def is_within_business_hours(start: datetime, end: datetime, schedule: WeeklySchedule, tz: ZoneInfo) -> bool:
    """True iff ``[start, end)`` sits on one local day inside a configured interval."""
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)
    # windows may not cross local midnight
    if local_start.date() != local_end.date():
        return False
    intervals = schedule.intervals_for(Weekday.of(local_start.date()))
    if not intervals:
        return False
    start_t = local_start.time()
    end_t = local_end.time()
    return any(r.covers(start_t, end_t) for r in intervals)
