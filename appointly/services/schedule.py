# appointly/services/schedule.py
"""
Weekly working hours plus date exceptions (holidays).

A weekly schedule maps weekday names to ordered wall-clock ranges in the
tenant's timezone:

    {"monday": [{"start": "09:00", "end": "12:00"},
                {"start": "13:00", "end": "17:00"}],
     "saturday": []}

Nothing here touches the database; callers pass in what they loaded.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Collection, Mapping, Optional, Sequence

from appointly.core.business import WEEKDAYS, weekday_name


@dataclass(frozen=True, order=True)
class WorkingPeriod:
    start: time
    end: time

    def contains(self, start: time, end: time) -> bool:
        return self.start <= start and end <= self.end


def parse_hhmm(value: str) -> time:
    """Parse 'HH:MM' (24h). Raises ValueError on anything else."""
    if not isinstance(value, str):
        raise ValueError(f"expected HH:MM string, got {value!r}")
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise ValueError(f"expected HH:MM, got {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise ValueError(f"time out of range: {value!r}")
    return time(hour, minute)


def validate_weekly_schedule(schedule: Mapping[str, Sequence[Mapping[str, str]]]) -> dict:
    """
    Check a weekly schedule and return it normalized (lowercase day keys,
    ranges sorted by start). Raises ValueError describing the first problem.
    """
    if not isinstance(schedule, Mapping):
        raise ValueError("weekly schedule must be an object keyed by weekday")

    normalized: dict = {}
    for raw_day, ranges in schedule.items():
        day = str(raw_day).strip().lower()
        if day not in WEEKDAYS:
            raise ValueError(f"unknown weekday: {raw_day!r}")
        if ranges is None:
            ranges = []

        periods = []
        for entry in ranges:
            try:
                start = parse_hhmm(entry["start"])
                end = parse_hhmm(entry["end"])
            except (KeyError, TypeError):
                raise ValueError(f"{day}: each range needs 'start' and 'end'")
            if start >= end:
                raise ValueError(f"{day}: start {entry['start']} must be before end {entry['end']}")
            periods.append(WorkingPeriod(start, end))

        periods.sort()
        for prev, cur in zip(periods, periods[1:]):
            if cur.start < prev.end:
                raise ValueError(f"{day}: ranges overlap")

        normalized[day] = [
            {"start": p.start.strftime("%H:%M"), "end": p.end.strftime("%H:%M")}
            for p in periods
        ]
    return normalized


def periods_for_weekday(schedule: Mapping[str, Sequence[Mapping[str, str]]], day: str) -> list[WorkingPeriod]:
    ranges = schedule.get(day) or []
    periods = [WorkingPeriod(parse_hhmm(r["start"]), parse_hhmm(r["end"])) for r in ranges]
    return sorted(periods)


def open_periods(
    schedule: Mapping[str, Sequence[Mapping[str, str]]],
    holidays: Optional[Collection[date]],
    on_date: date,
) -> list[WorkingPeriod]:
    """
    Open wall-clock periods for one calendar date.

    A holiday removes the whole date; a weekday that is missing or has an
    empty list is simply closed.
    """
    if holidays and on_date in holidays:
        return []
    return periods_for_weekday(schedule, weekday_name(on_date.weekday()))
