"""Wall-clock <-> UTC conversion for arbitrary IANA zones.

``to_utc`` cannot ask the zone database "which instant shows 14:00 in
America/New_York?" directly, so it runs a short fixed-point search: start from
the naive UTC instant with the same fields, look at what the zone displays for
it, shift by the difference and repeat. Three rounds are enough because DST
transitions move wall clocks by at most one hour.
"""

from datetime import UTC, date, datetime, time, timedelta
from typing import NamedTuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..exceptions import InvalidDateTime

MAX_ITERATIONS = 3


class LocalTime(NamedTuple):
    date: date
    time: time
    abbreviation: str


def get_zone(zone: str) -> ZoneInfo:
    try:
        return ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidDateTime(f"Unknown timezone: {zone!r}") from exc


def parse_date(value: str | date) -> date:
    """Parse a ``YYYY-MM-DD`` string. Datetimes are rejected, not truncated."""
    if isinstance(value, datetime):
        raise InvalidDateTime(f"Expected a date, got a datetime: {value!r}")
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise InvalidDateTime(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def parse_time(value: str | time) -> time:
    """Parse ``HH:MM`` (or ``HH:MM:SS``) in 24-hour form."""
    if isinstance(value, time):
        return value
    raw = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(raw, fmt).time()
        except ValueError:
            continue
    raise InvalidDateTime(f"Invalid time {value!r}, expected HH:MM")


def parse_instant(value: str | datetime) -> datetime:
    """Parse an ISO-8601 instant into an aware UTC datetime.

    Naive input is rejected: without an offset the instant is ambiguous.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = f"{raw[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise InvalidDateTime(f"Invalid ISO-8601 instant: {value!r}") from exc
    if parsed.tzinfo is None:
        raise InvalidDateTime(f"Instant {value!r} has no UTC offset")
    return parsed.astimezone(UTC)


def to_utc(
    local_date: str | date,
    local_time: str | time,
    zone: str,
    *,
    abbreviation: str | None = None,
) -> datetime:
    """Convert a wall-clock date and time in ``zone`` to an aware UTC datetime.

    During the repeated hour of a fall-back transition the wall clock is
    ambiguous; the search settles on the first occurrence unless
    ``abbreviation`` (e.g. "EST") names the other one.
    """
    d = parse_date(local_date)
    t = parse_time(local_time)
    tz = get_zone(zone)
    desired = datetime.combine(d, t)

    guess = desired.replace(tzinfo=UTC)
    for _ in range(MAX_ITERATIONS):
        observed = guess.astimezone(tz).replace(tzinfo=None)
        delta = desired - observed
        if not delta:
            break
        guess += delta

    if abbreviation and guess.astimezone(tz).tzname() != abbreviation:
        guess = _other_occurrence(guess, tz, abbreviation)
    return guess


def _other_occurrence(guess: datetime, tz: ZoneInfo, abbreviation: str) -> datetime:
    local = guess.astimezone(tz)
    for shift in (timedelta(hours=1), timedelta(hours=-1)):
        candidate = guess + shift
        shown = candidate.astimezone(tz)
        if shown.tzname() == abbreviation and shown.replace(tzinfo=None) == local.replace(tzinfo=None):
            return candidate
    return guess


def to_local(instant: datetime, zone: str) -> LocalTime:
    """Display form of a UTC instant in ``zone``: date, HH:MM time, offset abbreviation."""
    if instant.tzinfo is None:
        # The store hands back naive values on backends without tz support
        instant = instant.replace(tzinfo=UTC)
    local = instant.astimezone(get_zone(zone))
    return LocalTime(local.date(), local.time().replace(second=0, microsecond=0), local.tzname() or "")


def local_datetime(instant: datetime, zone: str) -> datetime:
    """Aware datetime in ``zone`` for formatting."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(get_zone(zone))
