"""Merge busy intervals from several sources into one deduplicated list."""

import logging
from datetime import timedelta

from .schemas import CalendarEvent

logger = logging.getLogger(__name__)

DUPLICATE_WINDOW = timedelta(minutes=5)


def dedupe_events(events: list[CalendarEvent]) -> list[CalendarEvent]:
    """Drop events whose start lies within 5 minutes of an already accepted one.

    The same interview usually exists both in the local store and on the
    external calendar, with starts a few minutes apart. Each candidate is
    compared only against events accepted before it, so the first one seen
    wins and the result depends on input order. Quadratic, fine for the tens
    of events a scheduling request sees.
    """
    accepted: list[CalendarEvent] = []
    for event in events:
        if any(abs(event.start - other.start) < DUPLICATE_WINDOW for other in accepted):
            logger.debug("Dropping duplicate event %s (%s) at %s", event.id, event.source_tag, event.start)
            continue
        accepted.append(event)

    if len(accepted) != len(events):
        logger.info("Reconciled %d events into %d unique busy intervals", len(events), len(accepted))
    return accepted
