"""Cron schedule used to trigger poll cycles.

Accepts the six-field NCRONTAB form (``sec min hour day month weekday``) and
the classic five-field form, where the seconds field is taken as ``0``.
Month and weekday fields also take three-letter names (``JAN``, ``MON-FRI``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from gtfs_rt_poller.services.gtfs_rt.errors import PollerError

# (name, low, high) per field, seconds first
_FIELDS = (
    ("second", 0, 59),
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 7),
)

_MONTH_NAMES = {
    name: number
    for number, name in enumerate(
        ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"),
        start=1,
    )
}
_WEEKDAY_NAMES = {
    name: number
    for number, name in enumerate(("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"))
}
_NAMES = {"month": _MONTH_NAMES, "weekday": _WEEKDAY_NAMES}
_NAME_RE = re.compile(r"[A-Za-z]+")

# Give up after this many days without a match (e.g. "0 0 0 31 2 *")
_SEARCH_LIMIT_DAYS = 366 * 5
_LEAP_YEAR_START = datetime(2000, 1, 1)


class InvalidScheduleError(PollerError):
    """Raised for a cron expression that cannot be parsed."""

    code = "invalid_schedule"


def _replace_names(spec: str, name: str) -> str:
    names = _NAMES.get(name, {})

    def lookup(match: re.Match[str]) -> str:
        number = names.get(match.group().upper())
        if number is None:
            msg = f"Unknown {name} name: {match.group()!r}"
            raise InvalidScheduleError(msg)
        return str(number)

    return _NAME_RE.sub(lookup, spec)


def _parse_field(spec: str, name: str, low: int, high: int) -> frozenset[int]:
    spec = _replace_names(spec, name)
    values: set[int] = set()
    for part in spec.split(","):
        if not part:
            msg = f"Empty {name} entry"
            raise InvalidScheduleError(msg)

        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) == 0:
                msg = f"Invalid {name} step: {step_text!r}"
                raise InvalidScheduleError(msg)
            step = int(step_text)

        if part == "*":
            start, end = low, high
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            if not (start_text.isdigit() and end_text.isdigit()):
                msg = f"Invalid {name} range: {part!r}"
                raise InvalidScheduleError(msg)
            start, end = int(start_text), int(end_text)
        elif part.isdigit():
            start = int(part)
            # "5/15" means every 15 starting at 5
            end = high if step > 1 else start
        else:
            msg = f"Invalid {name} value: {part!r}"
            raise InvalidScheduleError(msg)

        if not (low <= start <= high and low <= end <= high) or start > end:
            msg = f"{name} out of range {low}-{high}: {part!r}"
            raise InvalidScheduleError(msg)
        values.update(range(start, end + 1, step))

    return frozenset(values)


@dataclass(frozen=True)
class CronSchedule:
    """A parsed cron expression."""

    expression: str
    seconds: frozenset[int]
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]
    day_restricted: bool
    weekday_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> CronSchedule:
        parts = expression.split()
        if len(parts) == 5:
            parts = ["0", *parts]
        if len(parts) != 6:
            msg = f"Expected 5 or 6 cron fields, got {len(parts)}: {expression!r}"
            raise InvalidScheduleError(msg)

        day_restricted = parts[3] not in ("*", "?")
        weekday_restricted = parts[5] not in ("*", "?")
        parts = ["*" if part == "?" else part for part in parts]

        parsed = [
            _parse_field(spec, name, low, high)
            for spec, (name, low, high) in zip(parts, _FIELDS)
        ]
        # Sunday may be written as 0 or 7
        weekdays = frozenset(0 if d == 7 else d for d in parsed[5])

        schedule = cls(
            expression=expression,
            seconds=parsed[0],
            minutes=parsed[1],
            hours=parsed[2],
            days=parsed[3],
            months=parsed[4],
            weekdays=weekdays,
            day_restricted=day_restricted,
            weekday_restricted=weekday_restricted,
        )
        # Rejects day/month combinations that do not exist, such as Feb 31
        schedule.next_after(_LEAP_YEAR_START)
        return schedule

    def _day_matches(self, dt: datetime) -> bool:
        if dt.month not in self.months:
            return False
        cron_weekday = (dt.weekday() + 1) % 7
        day_ok = dt.day in self.days
        weekday_ok = cron_weekday in self.weekdays
        if self.day_restricted and self.weekday_restricted:
            return day_ok or weekday_ok
        return day_ok and weekday_ok

    def next_after(self, dt: datetime) -> datetime:
        """First fire time strictly after ``dt``, to the whole second."""
        candidate = dt.replace(microsecond=0) + timedelta(seconds=1)
        day = candidate.replace(hour=0, minute=0, second=0)

        for _ in range(_SEARCH_LIMIT_DAYS):
            if self._day_matches(day):
                for hour in sorted(self.hours):
                    for minute in sorted(self.minutes):
                        for second in sorted(self.seconds):
                            fire = day.replace(hour=hour, minute=minute, second=second)
                            if fire >= candidate:
                                return fire
            day += timedelta(days=1)

        msg = f"Schedule never fires: {self.expression!r}"
        raise InvalidScheduleError(msg)

    def seconds_until_next(self, now: datetime) -> float:
        return (self.next_after(now) - now).total_seconds()
