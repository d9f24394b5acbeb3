"""Busy-interval sources: the external calendar and the local interview store.

Both sources are queried concurrently. A failing source is logged and
skipped: an incomplete busy set yields over-optimistic availability, which is
preferred over blocking scheduling altogether.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import CollaboratorUnavailable, InvalidDateTime
from ..integrations.calendar import CalendarClient
from ..interview.service import list_busy_interviews
from .schemas import CalendarEvent
from .timezones import get_zone, parse_instant

logger = logging.getLogger(__name__)

SCHEDULED_PREFIX = "[Scheduled]"


class EventSource(Protocol):
    name: str

    def fetch_busy(self, time_min: datetime, time_max: datetime) -> list[CalendarEvent]: ...


def _parse_boundary(boundary: dict, fallback_timezone: str) -> datetime | None:
    """Google sends ``dateTime`` for timed events and ``date`` for all-day ones."""
    if boundary.get("dateTime"):
        return parse_instant(boundary["dateTime"])
    if boundary.get("date"):
        day = date.fromisoformat(boundary["date"])
        zone = get_zone(boundary.get("timeZone") or fallback_timezone)
        return datetime(day.year, day.month, day.day, tzinfo=zone)
    return None


class ExternalCalendarSource:
    name = "calendar"

    def __init__(self, client: CalendarClient, timezone: str) -> None:
        self._client = client
        self._timezone = timezone

    def fetch_busy(self, time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
        events = []
        for item in self._client.list_events(time_min, time_max):
            if item.get("status") == "cancelled":
                continue
            try:
                start = _parse_boundary(item.get("start") or {}, self._timezone)
                end = _parse_boundary(item.get("end") or {}, self._timezone)
            except (InvalidDateTime, ValueError) as exc:
                logger.warning("Skipping calendar event %s with bad times: %s", item.get("id"), exc)
                continue
            if start is None or end is None:
                continue
            events.append(
                CalendarEvent(
                    id=str(item.get("id", "")),
                    title=item.get("summary") or "Busy",
                    start=start,
                    end=end,
                    source_tag=self.name,
                )
            )
        return events


class InterviewStoreSource:
    """Projects live interview records (pending or scheduled) into busy events."""

    name = "store"

    def __init__(self, db: Session) -> None:
        self._db = db

    def fetch_busy(self, time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
        try:
            interviews = list_busy_interviews(self._db, time_min, time_max)
        except SQLAlchemyError as exc:
            raise CollaboratorUnavailable("store", f"Interview store query failed: {exc}") from exc

        return [
            CalendarEvent(
                id=str(i.id),
                title=f"{SCHEDULED_PREFIX} {i.title}",
                start=i.scheduled_at,
                end=i.scheduled_at + timedelta(minutes=i.duration_minutes),
                source_tag=self.name,
            )
            for i in interviews
        ]


def _fetch_one(source: EventSource, time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
    try:
        events = source.fetch_busy(time_min, time_max)
    except CollaboratorUnavailable as exc:
        logger.warning("Busy source %s unavailable, continuing without it: %s", source.name, exc.message)
        return []
    except Exception:
        logger.exception("Busy source %s failed unexpectedly, continuing without it", source.name)
        return []
    logger.debug("Fetched %d busy events from %s", len(events), source.name)
    return events


def fetch_all_busy(sources: list[EventSource], time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
    """Query every source in parallel and concatenate results in source order."""
    if not sources:
        return []
    with ThreadPoolExecutor(max_workers=len(sources), thread_name_prefix="busy-source") as pool:
        futures = [pool.submit(_fetch_one, s, time_min, time_max) for s in sources]
        results = [f.result() for f in futures]

    events = [e for batch in results for e in batch]
    logger.info(
        "Busy events: %d total (%s)",
        len(events),
        ", ".join(f"{s.name}={len(r)}" for s, r in zip(sources, results, strict=True)),
    )
    return events
