"""Conversational scheduling: propose slots, let the user pick one, then confirm.

A conversation is an explicit ``ConversationSession`` held in a
``SessionStore`` and passed by handle; nothing here is module-level state.
Persistence happens only on ``confirm_selected_slot``, never on the turn that
produced the suggestions.

States::

    idle -> awaiting_user_input -> computing_availability -> awaiting_llm
         -> slots_proposed -> slot_selected -> confirmed
                          \\-> awaiting_user_input
"""

import enum
import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from sqlalchemy.orm import Session

from ..applications.models import JobApplication
from ..applications.service import find_application_by_company, get_application
from ..exceptions import InterviewNotFound, InvalidTransition, NoMatchingApplication, SchedulingError, SessionNotFound
from ..integrations.calendar import CalendarClient
from ..interview.models import InterviewStatus, InterviewType, ScheduledInterview
from ..interview.service import create_interview, get_interview, update_interview
from ..prompts import CONFIRMATION_MESSAGE, RESCHEDULE_MESSAGE, WELCOME_MESSAGE
from .schemas import Availability, DateRange, ScheduleAssistantMessage, SlotProposal, SuggestedSlot
from .service import compute_availability, propose_for_availability
from .timezones import to_local, to_utc

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(hours=2)


class DialogueState(enum.StrEnum):
    IDLE = "idle"
    AWAITING_USER_INPUT = "awaiting_user_input"
    COMPUTING_AVAILABILITY = "computing_availability"
    AWAITING_LLM = "awaiting_llm"
    SLOTS_PROPOSED = "slots_proposed"
    SLOT_SELECTED = "slot_selected"
    CONFIRMED = "confirmed"


# A message may only start a turn from these states
_ACCEPTS_MESSAGE = (
    DialogueState.IDLE,
    DialogueState.AWAITING_USER_INPUT,
    DialogueState.SLOTS_PROPOSED,
    DialogueState.SLOT_SELECTED,
    DialogueState.CONFIRMED,
)


@dataclass
class ConversationSession:
    duration_minutes: int
    timezone: str
    reschedule_interview_id: str | None = None
    id: str = field(default_factory=lambda: uuid4().hex)
    state: DialogueState = DialogueState.IDLE
    messages: list[ScheduleAssistantMessage] = field(default_factory=list)
    last_availability: Availability | None = None
    last_proposal: SlotProposal | None = None
    selected_slot: SuggestedSlot | None = None
    interview_id: str | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def add_message(self, role: str, content: str, slots: list[SuggestedSlot] | None = None) -> None:
        self.messages.append(ScheduleAssistantMessage(role=role, content=content, suggested_slots=slots or None))
        self.updated_at = datetime.now(UTC)

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "state": str(self.state),
            "duration_minutes": self.duration_minutes,
            "timezone": self.timezone,
            "reschedule_interview_id": self.reschedule_interview_id,
            "messages": [m.model_dump(mode="json", by_alias=True) for m in self.messages],
            "selected_slot": self.selected_slot.model_dump(by_alias=True) if self.selected_slot else None,
            "interview_id": self.interview_id,
        }


class SessionStore:
    """In-memory conversation sessions, one process. Idle sessions expire after ``SESSION_TTL``."""

    def __init__(self, ttl: timedelta = SESSION_TTL) -> None:
        self._sessions: dict[str, ConversationSession] = {}
        self._lock = threading.Lock()
        self._ttl = ttl

    def create(
        self,
        duration_minutes: int,
        timezone: str,
        reschedule_interview_id: str | None = None,
    ) -> ConversationSession:
        session = ConversationSession(
            duration_minutes=duration_minutes,
            timezone=timezone,
            reschedule_interview_id=reschedule_interview_id,
        )
        session.add_message("assistant", WELCOME_MESSAGE)
        session.state = DialogueState.AWAITING_USER_INPUT
        with self._lock:
            self._prune()
            self._sessions[session.id] = session
        logger.info("Conversation %s started (reschedule=%s)", session.id, reschedule_interview_id)
        return session

    def get(self, session_id: str) -> ConversationSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Conversation {session_id} not found or expired")
        return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.cancel_event.set()
        return True

    def __len__(self) -> int:
        return len(self._sessions)

    def _prune(self) -> None:
        cutoff = datetime.now(UTC) - self._ttl
        expired = [sid for sid, s in self._sessions.items() if s.updated_at < cutoff]
        for sid in expired:
            self._sessions.pop(sid).cancel_event.set()
        if expired:
            logger.debug("Pruned %d expired conversation(s)", len(expired))


def _require_state(session: ConversationSession, operation: str, *allowed: DialogueState) -> None:
    if session.state not in allowed:
        raise InvalidTransition(operation, session.state, " or ".join(allowed))


# ── Turns ──────────────────────────────────────────────────────────────


def handle_user_message(
    db: Session,
    calendar: CalendarClient,
    session: ConversationSession,
    content: str,
    date_range: DateRange | None = None,
) -> SlotProposal:
    """One user turn: fresh availability, one model call, slots stored on the session."""
    _require_state(session, "send a message", *_ACCEPTS_MESSAGE)

    history = list(session.messages)
    session.add_message("user", content)
    session.selected_slot = None
    session.cancel_event = threading.Event()

    try:
        session.state = DialogueState.COMPUTING_AVAILABILITY
        availability = compute_availability(db, calendar, date_range, session.duration_minutes, session.timezone)
        session.last_availability = availability

        session.state = DialogueState.AWAITING_LLM
        proposal = propose_for_availability(
            db,
            availability,
            content,
            session.duration_minutes,
            history,
            cancel_event=session.cancel_event,
        )
    except Exception:
        # The user must be able to retry on the same session
        session.state = DialogueState.AWAITING_USER_INPUT
        raise

    session.last_proposal = proposal
    session.add_message("assistant", proposal.message, proposal.suggested_slots)
    session.state = DialogueState.SLOTS_PROPOSED if proposal.suggested_slots else DialogueState.AWAITING_USER_INPUT
    return proposal


def cancel_generation(session: ConversationSession) -> bool:
    """Stop an in-flight model call. Returns False if nothing was generating."""
    if session.state != DialogueState.AWAITING_LLM:
        return False
    session.cancel_event.set()
    logger.info("Conversation %s: generation cancel requested", session.id)
    return True


def select_slot(session: ConversationSession, index: int) -> SuggestedSlot:
    _require_state(session, "select a slot", DialogueState.SLOTS_PROPOSED, DialogueState.SLOT_SELECTED)
    slots = session.last_proposal.suggested_slots if session.last_proposal else []
    if not 0 <= index < len(slots):
        raise SchedulingError(f"No suggested slot at position {index}; {len(slots)} available")
    session.selected_slot = slots[index]
    session.state = DialogueState.SLOT_SELECTED
    return session.selected_slot


def cancel_selection(session: ConversationSession) -> None:
    _require_state(session, "cancel the selection", DialogueState.SLOT_SELECTED)
    session.selected_slot = None
    session.state = DialogueState.SLOTS_PROPOSED


# ── Confirmation ───────────────────────────────────────────────────────


def resolve_application(db: Session, slot: SuggestedSlot) -> JobApplication:
    """Explicit id first, then company name. Never guesses."""
    if slot.application_id:
        application = get_application(db, slot.application_id)
        if application:
            return application
        logger.warning("Slot carries unknown application id %s, trying company name", slot.application_id)

    application = find_application_by_company(db, slot.company_name)
    if application:
        return application

    company = slot.company_name or "this interview"
    raise NoMatchingApplication(
        f"Could not match {company!r} to any of your active applications. "
        "Tell me which company the interview is for and try again."
    )


def _describe(interview: ScheduledInterview) -> str:
    local = to_local(interview.scheduled_at, interview.timezone)
    return f"{local.date:%A, %B %d} at {local.time:%H:%M} {local.abbreviation}"


def confirm_selected_slot(
    db: Session,
    calendar: CalendarClient,
    session: ConversationSession,
    *,
    interview_type: InterviewType = InterviewType.VIDEO,
    add_to_calendar: bool = True,
) -> ScheduledInterview:
    """Persist the selected slot: a new PENDING interview, or a move of the one being rescheduled."""
    _require_state(session, "confirm", DialogueState.SLOT_SELECTED)
    slot = session.selected_slot
    scheduled_at = to_utc(slot.date, slot.start_time, session.timezone)
    sync = calendar if add_to_calendar else None

    if session.reschedule_interview_id:
        if get_interview(db, session.reschedule_interview_id) is None:
            raise InterviewNotFound(f"Interview {session.reschedule_interview_id} not found")
        interview = update_interview(
            db,
            session.reschedule_interview_id,
            {"scheduled_at": scheduled_at, "duration_minutes": session.duration_minutes},
            calendar=sync,
        )
        reply = RESCHEDULE_MESSAGE.format(when=_describe(interview))
    else:
        application = resolve_application(db, slot)
        interview = create_interview(
            db,
            application.id,
            title=f"{application.job_title or 'Interview'} - {application.company_name}",
            scheduled_at=scheduled_at,
            duration_minutes=session.duration_minutes,
            timezone=session.timezone,
            interview_type=interview_type,
            status=InterviewStatus.PENDING,
            notes=slot.reason or None,
            calendar=sync,
        )
        reply = CONFIRMATION_MESSAGE.format(when=_describe(interview))

    session.interview_id = str(interview.id)
    session.state = DialogueState.CONFIRMED
    session.add_message("assistant", reply)
    logger.info("Conversation %s confirmed interview %s", session.id, interview.id)
    return interview
