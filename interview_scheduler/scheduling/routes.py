"""Scheduling JSON API: availability, stateless suggestions, and conversation sessions."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..config import settings
from ..database.base import get_db
from ..dependencies import get_calendar, get_session_store
from ..integrations.calendar import CalendarClient
from ..interview.schemas import interview_to_dict
from ..rate_limit import limiter
from .dialogue import (
    SessionStore,
    cancel_generation,
    cancel_selection,
    confirm_selected_slot,
    handle_user_message,
    select_slot,
)
from .schemas import (
    AvailabilityRequest,
    ConfirmSlotRequest,
    SelectSlotRequest,
    SessionCreateRequest,
    SessionMessageRequest,
    SuggestionRequest,
)
from .service import compute_availability, get_suggestions
from .timezones import get_zone

router = APIRouter(prefix="/schedule", tags=["scheduling"])


@router.post("/availability")
def availability(
    body: AvailabilityRequest,
    db: Session = Depends(get_db),
    calendar: CalendarClient = Depends(get_calendar),
):
    result = compute_availability(db, calendar, body.date_range, body.duration_minutes, body.timezone)
    return JSONResponse(result.model_dump(mode="json"))


@router.post("/suggestions")
@limiter.limit(settings.suggestions_rate_limit)
def suggestions(
    request: Request,
    body: SuggestionRequest,
    db: Session = Depends(get_db),
    calendar: CalendarClient = Depends(get_calendar),
):
    """One-shot proposal; the caller carries the conversation history."""
    proposal = get_suggestions(
        db,
        calendar,
        body.user_message,
        body.duration_minutes,
        body.date_range,
        body.timezone,
        body.conversation_history,
    )
    return JSONResponse(proposal.model_dump(mode="json", by_alias=True))


# ── Conversation sessions ──────────────────────────────────────────────


@router.post("/sessions")
def start_session(body: SessionCreateRequest, store: SessionStore = Depends(get_session_store)):
    timezone = body.timezone or settings.default_timezone
    get_zone(timezone)
    session = store.create(body.duration_minutes, timezone, body.reschedule_interview_id)
    return JSONResponse(session.snapshot(), status_code=201)


@router.get("/sessions/{session_id}")
def read_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    return JSONResponse(store.get(session_id).snapshot())


@router.delete("/sessions/{session_id}")
def end_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    store.get(session_id)
    store.delete(session_id)
    return JSONResponse({"ok": True})


@router.post("/sessions/{session_id}/messages")
@limiter.limit(settings.suggestions_rate_limit)
def send_message(
    request: Request,
    session_id: str,
    body: SessionMessageRequest,
    db: Session = Depends(get_db),
    calendar: CalendarClient = Depends(get_calendar),
    store: SessionStore = Depends(get_session_store),
):
    session = store.get(session_id)
    proposal = handle_user_message(db, calendar, session, body.content, body.date_range)
    return JSONResponse(
        {
            "proposal": proposal.model_dump(mode="json", by_alias=True),
            "session": session.snapshot(),
        }
    )


@router.post("/sessions/{session_id}/cancel")
def cancel_message(session_id: str, store: SessionStore = Depends(get_session_store)):
    cancelled = cancel_generation(store.get(session_id))
    return JSONResponse({"cancelled": cancelled})


@router.post("/sessions/{session_id}/select")
def select(session_id: str, body: SelectSlotRequest, store: SessionStore = Depends(get_session_store)):
    session = store.get(session_id)
    select_slot(session, body.index)
    return JSONResponse(session.snapshot())


@router.post("/sessions/{session_id}/cancel-selection")
def unselect(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = store.get(session_id)
    cancel_selection(session)
    return JSONResponse(session.snapshot())


@router.post("/sessions/{session_id}/confirm")
def confirm(
    request: Request,
    session_id: str,
    body: ConfirmSlotRequest,
    db: Session = Depends(get_db),
    calendar: CalendarClient = Depends(get_calendar),
    store: SessionStore = Depends(get_session_store),
):
    session = store.get(session_id)
    interview = confirm_selected_slot(
        db,
        calendar,
        session,
        interview_type=body.interview_type,
        add_to_calendar=body.add_to_calendar,
    )
    action = "interview_updated" if session.reschedule_interview_id else "interview_scheduled"
    audit(db, request, action, interview.id, f"session={session.id}")
    db.commit()
    return JSONResponse(
        {"interview": interview_to_dict(interview), "session": session.snapshot()},
        status_code=200 if session.reschedule_interview_id else 201,
    )
