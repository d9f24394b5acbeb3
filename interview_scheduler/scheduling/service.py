"""Availability orchestration and the stateless slot-suggestion entry point.

Busy time is recomputed on every call; calendar state can change between
turns of a conversation, so nothing here is cached.
"""

import logging
import threading
from datetime import UTC, datetime, time, timedelta

from sqlalchemy.orm import Session

from ..applications.models import JobApplication
from ..applications.service import list_active_applications
from ..config import settings
from ..integrations.anthropic_client import propose_slots
from ..integrations.calendar import CalendarClient
from ..prompts import NO_APPLICATIONS, NO_AVAILABLE_SLOTS, NO_BUSY_EVENTS, SCHEDULE_SYSTEM_PROMPT
from .availability import find_available_slots
from .reconcile import dedupe_events
from .schemas import Availability, AvailableSlot, CalendarEvent, DateRange, SlotProposal
from .sources import ExternalCalendarSource, InterviewStoreSource, fetch_all_busy
from .timezones import get_zone, local_datetime, to_local, to_utc

logger = logging.getLogger(__name__)


def default_date_range(days: int | None = None) -> DateRange:
    now = datetime.now(UTC)
    return DateRange(start=now, end=now + timedelta(days=days or settings.schedule_days_ahead))


def _fetch_bounds(date_range: DateRange, timezone: str) -> tuple[datetime, datetime]:
    """Whole local days covering the range, so both boundary days are inclusive."""
    first = to_local(date_range.start, timezone).date
    last = to_local(date_range.end, timezone).date
    return to_utc(first, time(0, 0), timezone), to_utc(last + timedelta(days=1), time(0, 0), timezone)


def compute_availability(
    db: Session,
    calendar: CalendarClient,
    date_range: DateRange | None,
    duration_minutes: int,
    timezone: str | None = None,
) -> Availability:
    """Fetch busy time from every source, reconcile it, and derive free slots."""
    timezone = timezone or settings.default_timezone
    get_zone(timezone)
    date_range = date_range or default_date_range()

    time_min, time_max = _fetch_bounds(date_range, timezone)
    sources = [ExternalCalendarSource(calendar, timezone), InterviewStoreSource(db)]
    busy = dedupe_events(fetch_all_busy(sources, time_min, time_max))
    slots = find_available_slots(busy, date_range, duration_minutes, timezone)

    logger.info(
        "Availability %s..%s (%s, %d min): %d busy, %d slots",
        date_range.start.date(), date_range.end.date(), timezone, duration_minutes, len(busy), len(slots),
    )
    return Availability(busy=busy, slots=slots, timezone=timezone)


# ── Prompt building ────────────────────────────────────────────────────


def format_busy_events(events: list[CalendarEvent], timezone: str) -> str:
    if not events:
        return NO_BUSY_EVENTS
    lines = []
    for event in events:
        start = local_datetime(event.start, timezone)
        end = local_datetime(event.end, timezone)
        lines.append(f"- {start:%A, %Y-%m-%d}: {start:%H:%M} - {end:%H:%M} ({event.title})")
    return "\n".join(lines)


def format_available_slots(slots: list[AvailableSlot]) -> str:
    if not slots:
        return NO_AVAILABLE_SLOTS
    return "\n".join(
        f"- {s.day_name}, {s.date.isoformat()}: {s.start:%H:%M} - {s.end:%H:%M} ({s.available_minutes} min free)"
        for s in slots
    )


def format_applications(applications: list[JobApplication]) -> str:
    if not applications:
        return NO_APPLICATIONS
    return "\n".join(
        f"{i}. {a.company_name or 'Unknown company'} - {a.job_title or 'Position'} "
        f"(ID: {a.id}, status: {a.status})"
        for i, a in enumerate(applications, 1)
    )


def build_system_prompt(db: Session, availability: Availability, duration_minutes: int) -> str:
    today = local_datetime(datetime.now(UTC), availability.timezone)
    return SCHEDULE_SYSTEM_PROMPT.format(
        today=f"{today:%A, %Y-%m-%d}",
        timezone=availability.timezone,
        duration=duration_minutes,
        applications=format_applications(list_active_applications(db)),
        busy_events=format_busy_events(availability.busy, availability.timezone),
        available_slots=format_available_slots(availability.slots),
    )


def build_messages(history: list, user_message: str, limit: int | None = None) -> list[dict]:
    """Model turns: trailing history without slot-bearing replies, then the new message.

    ``history`` holds any objects with ``role``, ``content`` and
    ``suggested_slots``; it must not include ``user_message`` itself.
    """
    limit = limit or settings.history_limit
    kept = [m for m in history if not m.suggested_slots and m.content.strip()][-limit:]
    # The model API requires the conversation to open with a user turn
    while kept and kept[0].role != "user":
        kept.pop(0)
    return [{"role": m.role, "content": m.content} for m in kept] + [{"role": "user", "content": user_message}]


def propose_for_availability(
    db: Session,
    availability: Availability,
    user_message: str,
    duration_minutes: int,
    history: list,
    *,
    cancel_event: threading.Event | None = None,
) -> SlotProposal:
    system_prompt = build_system_prompt(db, availability, duration_minutes)
    messages = build_messages(history, user_message)
    proposal = propose_slots(system_prompt, messages, cancel_event=cancel_event)
    logger.info("Model proposed %d slot(s) over %d history turn(s)", len(proposal.suggested_slots), len(messages) - 1)
    return proposal


def get_suggestions(
    db: Session,
    calendar: CalendarClient,
    user_message: str,
    duration_minutes: int,
    date_range: DateRange | None = None,
    timezone: str | None = None,
    conversation_history: list | None = None,
    *,
    cancel_event: threading.Event | None = None,
) -> SlotProposal:
    """Free-text request plus fresh availability in, 0-3 suggested slots out."""
    availability = compute_availability(db, calendar, date_range, duration_minutes, timezone)
    return propose_for_availability(
        db,
        availability,
        user_message,
        duration_minutes,
        conversation_history or [],
        cancel_event=cancel_event,
    )
