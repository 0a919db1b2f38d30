# appointly/services/timezones.py
"""
Conversions between tenant wall-clock time, UTC instants and the
customer's display zone. All comparisons in the engine happen on UTC
instants; zones are applied per date so DST offsets are always the ones
in force on that day.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from appointly.core.errors import ConfigurationError, InvalidTimezoneError, ValidationError
from appointly.services.schedule import WorkingPeriod

UTC = timezone.utc


@lru_cache(maxsize=256)
def _load_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def resolve_zone(name: str | None, *, field: str = "timezone") -> ZoneInfo:
    """Look up an IANA zone, raising InvalidTimezoneError for anything unknown."""
    if not name or not isinstance(name, str):
        raise InvalidTimezoneError(str(name), field=field)
    try:
        return _load_zone(name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise InvalidTimezoneError(name, field=field)


def tenant_zone(name: str | None) -> ZoneInfo:
    """
    Tenant timezones are validated when settings are saved; one that no
    longer resolves is a configuration problem, not a bad request.
    """
    try:
        return resolve_zone(name)
    except InvalidTimezoneError:
        raise ConfigurationError(f"Tenant timezone is not a valid IANA zone: {name!r}")


def local_to_utc(on_date: date, wall_time: time, zone: ZoneInfo) -> datetime:
    """Wall-clock time on a tenant date -> UTC instant, using that date's offset."""
    return datetime.combine(on_date, wall_time, tzinfo=zone).astimezone(UTC)


def period_to_utc(on_date: date, period: WorkingPeriod, zone: ZoneInfo) -> tuple[datetime, datetime]:
    return local_to_utc(on_date, period.start, zone), local_to_utc(on_date, period.end, zone)


def to_display(instant: datetime, zone: ZoneInfo) -> datetime:
    if instant.tzinfo is None:
        raise ValueError("naive datetime passed where a UTC instant was expected")
    return instant.astimezone(zone)


def local_date(instant: datetime, zone: ZoneInfo) -> date:
    return to_display(instant, zone).date()


def day_bounds_utc(on_date: date, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """[start, end) of a tenant calendar date as UTC instants (23/25h on DST days)."""
    start = datetime.combine(on_date, time.min, tzinfo=zone).astimezone(UTC)
    end = datetime.combine(on_date + timedelta(days=1), time.min, tzinfo=zone).astimezone(UTC)
    return start, end


def parse_instant(value: str | datetime, default_zone: ZoneInfo, *, field: str = "startTime") -> datetime:
    """
    Accept ISO8601 with an offset, or a naive value interpreted in
    default_zone. Returns a UTC instant.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"{field} must be an ISO 8601 datetime", field=field)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=default_zone)
    return dt.astimezone(UTC)


def parse_date(value: str | date, *, field: str) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"{field} must be an ISO 8601 date (YYYY-MM-DD)", field=field)
