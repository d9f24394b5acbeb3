"""Free-slot computation over working hours.

Policy constants are product decisions, not per-call options.
"""

from datetime import datetime, time, timedelta

from .schemas import AvailableSlot, CalendarEvent, DateRange
from .timezones import to_local, to_utc

WORK_START = time(12, 0)
WORK_END = time(18, 0)
BUFFER = timedelta(minutes=15)
WEEKEND = (5, 6)  # Saturday, Sunday


def _minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


def _make_slot(day, start: datetime, duration: timedelta, gap: timedelta, timezone: str) -> AvailableSlot:
    return AvailableSlot(
        date=day,
        day_name=day.strftime("%A"),
        start=to_local(start, timezone).time,
        end=to_local(start + duration, timezone).time,
        duration_minutes=_minutes(duration),
        available_minutes=_minutes(gap),
    )


def find_available_slots(
    busy: list[CalendarEvent],
    date_range: DateRange,
    duration_minutes: int,
    timezone: str,
) -> list[AvailableSlot]:
    """Return at most one slot per free gap, per weekday, ordered by date then time.

    Each gap yields its earliest-starting slot of exactly ``duration_minutes``;
    ranking between slots is left to the caller. A gap before a busy interval
    must fit the slot plus the buffer; the gap after the last one must fit the
    slot alone.
    """
    duration = timedelta(minutes=duration_minutes)
    slots: list[AvailableSlot] = []

    day = to_local(date_range.start, timezone).date
    last_day = to_local(date_range.end, timezone).date

    while day <= last_day:
        if day.weekday() in WEEKEND:
            day += timedelta(days=1)
            continue

        window_start = to_utc(day, WORK_START, timezone)
        window_end = to_utc(day, WORK_END, timezone)

        # Only events overlapping the window count; the buffer applies inside it
        day_busy = sorted(
            (e for e in busy if e.start < window_end and e.end > window_start),
            key=lambda e: e.start,
        )

        slot_start = window_start
        for event in day_busy:
            if event.start > slot_start:
                gap = event.start - slot_start
                if gap >= duration + BUFFER and slot_start + duration <= window_end:
                    slots.append(_make_slot(day, slot_start, duration, gap, timezone))

            after_buffer = event.end + BUFFER
            if after_buffer > slot_start:
                slot_start = after_buffer

        if slot_start < window_end and window_end - slot_start >= duration:
            slots.append(_make_slot(day, slot_start, duration, window_end - slot_start, timezone))

        day += timedelta(days=1)

    return slots
