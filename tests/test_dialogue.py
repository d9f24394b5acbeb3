"""Tests for the conversational scheduling flow."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from interview_scheduler.applications.models import ApplicationStatus
from interview_scheduler.exceptions import (
    GenerationCancelled,
    InvalidTransition,
    LLMUnavailable,
    NoMatchingApplication,
    SchedulingError,
    SessionNotFound,
)
from interview_scheduler.interview.models import InterviewStatus, ScheduledInterview
from interview_scheduler.interview.service import create_interview, get_interview
from interview_scheduler.prompts import WELCOME_MESSAGE
from interview_scheduler.scheduling.dialogue import (
    DialogueState,
    SessionStore,
    cancel_generation,
    cancel_selection,
    confirm_selected_slot,
    handle_user_message,
    resolve_application,
    select_slot,
)
from interview_scheduler.scheduling.schemas import DateRange, SlotProposal, SuggestedSlot

NY = "America/New_York"
TUESDAY_RANGE = DateRange(
    start=datetime(2026, 3, 10, 4, 0, tzinfo=UTC),
    end=datetime(2026, 3, 11, 3, 59, tzinfo=UTC),
)
PROPOSE = "interview_scheduler.scheduling.service.propose_slots"


def _proposal(*slots: SuggestedSlot, message="Here are some options") -> SlotProposal:
    return SlotProposal(message=message, suggested_slots=list(slots))


def _slot(start="14:15", **kwargs) -> SuggestedSlot:
    return SuggestedSlot(date="2026-03-10", start_time=start, reason="Free afternoon", **kwargs)


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def session(store):
    return store.create(60, NY)


def _propose(db, calendar, session, *slots, message="Here are some options"):
    with patch(PROPOSE, return_value=_proposal(*slots, message=message)):
        return handle_user_message(db, calendar, session, "Tuesday afternoon please", TUESDAY_RANGE)


class TestSessionStore:
    def test_new_session_greets(self, session):
        assert session.state == DialogueState.AWAITING_USER_INPUT
        assert session.messages[0].role == "assistant"
        assert session.messages[0].content == WELCOME_MESSAGE

    def test_get_and_delete(self, store, session):
        assert store.get(session.id) is session
        assert store.delete(session.id) is True
        assert session.cancel_event.is_set()
        with pytest.raises(SessionNotFound):
            store.get(session.id)
        assert store.delete(session.id) is False

    def test_expired_sessions_pruned(self):
        store = SessionStore(ttl=timedelta(minutes=30))
        old = store.create(60, NY)
        old.updated_at = datetime.now(UTC) - timedelta(hours=1)
        store.create(60, NY)
        with pytest.raises(SessionNotFound):
            store.get(old.id)
        assert len(store) == 1

    def test_snapshot_is_json_ready(self, session):
        data = session.snapshot()
        assert data["state"] == "awaiting_user_input"
        assert data["messages"][0]["role"] == "assistant"
        assert isinstance(data["messages"][0]["timestamp"], str)


class TestHandleUserMessage:
    def test_slots_proposed(self, db_session, null_calendar, session):
        proposal = _propose(db_session, null_calendar, session, _slot(company_name="Acme Corp"))
        assert session.state == DialogueState.SLOTS_PROPOSED
        assert session.last_proposal is proposal
        assert session.last_availability is not None
        assert [m.role for m in session.messages] == ["assistant", "user", "assistant"]
        assert session.messages[-1].suggested_slots == proposal.suggested_slots

    def test_no_slots_waits_for_input(self, db_session, null_calendar, session):
        _propose(db_session, null_calendar, session, message="Which company is this for?")
        assert session.state == DialogueState.AWAITING_USER_INPUT
        assert session.messages[-1].suggested_slots is None

    def test_history_excludes_current_message_and_slot_turns(self, db_session, null_calendar, session):
        _propose(db_session, null_calendar, session, _slot())
        with patch(PROPOSE, return_value=_proposal()) as propose:
            handle_user_message(db_session, null_calendar, session, "Anything on Wednesday?", TUESDAY_RANGE)
        messages = propose.call_args.args[1]
        assert messages == [
            {"role": "user", "content": "Tuesday afternoon please"},
            {"role": "user", "content": "Anything on Wednesday?"},
        ]

    def test_availability_recomputed_each_turn(self, db_session, mock_calendar, session):
        _propose(db_session, mock_calendar, session)
        _propose(db_session, mock_calendar, session)
        assert mock_calendar.list_events.call_count == 2

    def test_llm_failure_returns_to_input(self, db_session, null_calendar, session):
        with patch(PROPOSE, side_effect=LLMUnavailable()), pytest.raises(LLMUnavailable):
            handle_user_message(db_session, null_calendar, session, "Tuesday", TUESDAY_RANGE)
        assert session.state == DialogueState.AWAITING_USER_INPUT

    def test_store_failure_returns_to_input(self, db_session, null_calendar, session):
        error = OperationalError("SELECT", {}, Exception("db down"))
        with (
            patch("interview_scheduler.scheduling.service.list_active_applications", side_effect=error),
            pytest.raises(OperationalError),
        ):
            handle_user_message(db_session, null_calendar, session, "Tuesday", TUESDAY_RANGE)
        assert session.state == DialogueState.AWAITING_USER_INPUT

        proposal = _propose(db_session, null_calendar, session, _slot())
        assert proposal.suggested_slots
        assert session.state == DialogueState.SLOTS_PROPOSED

    def test_cancelled_generation_returns_to_input(self, db_session, null_calendar, session):
        with patch(PROPOSE, side_effect=GenerationCancelled("stopped")), pytest.raises(GenerationCancelled):
            handle_user_message(db_session, null_calendar, session, "Tuesday", TUESDAY_RANGE)
        assert session.state == DialogueState.AWAITING_USER_INPUT

    def test_cancel_token_passed_to_model(self, db_session, null_calendar, session):
        with patch(PROPOSE, return_value=_proposal()) as propose:
            handle_user_message(db_session, null_calendar, session, "Tuesday", TUESDAY_RANGE)
        assert propose.call_args.kwargs["cancel_event"] is session.cancel_event

    def test_rejected_while_generating(self, db_session, null_calendar, session):
        session.state = DialogueState.AWAITING_LLM
        with pytest.raises(InvalidTransition):
            handle_user_message(db_session, null_calendar, session, "hello?", TUESDAY_RANGE)


class TestCancelGeneration:
    def test_sets_token_while_generating(self, session):
        session.state = DialogueState.AWAITING_LLM
        assert cancel_generation(session) is True
        assert session.cancel_event.is_set()

    def test_noop_when_idle(self, session):
        assert cancel_generation(session) is False
        assert not session.cancel_event.is_set()


class TestSelection:
    def test_select_and_cancel(self, db_session, null_calendar, session):
        _propose(db_session, null_calendar, session, _slot("12:00"), _slot("14:15"))
        chosen = select_slot(session, 1)
        assert chosen.start_time == "14:15"
        assert session.state == DialogueState.SLOT_SELECTED

        cancel_selection(session)
        assert session.selected_slot is None
        assert session.state == DialogueState.SLOTS_PROPOSED

    def test_reselect_allowed(self, db_session, null_calendar, session):
        _propose(db_session, null_calendar, session, _slot("12:00"), _slot("14:15"))
        select_slot(session, 0)
        assert select_slot(session, 1).start_time == "14:15"

    def test_index_out_of_range(self, db_session, null_calendar, session):
        _propose(db_session, null_calendar, session, _slot())
        with pytest.raises(SchedulingError):
            select_slot(session, 3)

    def test_select_before_proposal(self, session):
        with pytest.raises(InvalidTransition):
            select_slot(session, 0)

    def test_confirm_requires_selection(self, db_session, null_calendar, session):
        _propose(db_session, null_calendar, session, _slot())
        with pytest.raises(InvalidTransition):
            confirm_selected_slot(db_session, null_calendar, session)
        assert db_session.query(ScheduledInterview).count() == 0


class TestResolveApplication:
    def test_explicit_id_wins(self, db_session, acme_application, globex_application):
        slot = _slot(application_id=str(acme_application.id), company_name="Globex")
        assert resolve_application(db_session, slot) is acme_application

    def test_unknown_id_falls_back_to_company(self, db_session, acme_application):
        slot = _slot(application_id="00000000-0000-0000-0000-000000000000", company_name="acme")
        assert resolve_application(db_session, slot) is acme_application

    def test_no_match_raises(self, db_session, acme_application):
        with pytest.raises(NoMatchingApplication):
            resolve_application(db_session, _slot(company_name="Umbrella"))

    def test_no_hint_raises(self, db_session, acme_application):
        with pytest.raises(NoMatchingApplication):
            resolve_application(db_session, _slot())


class TestConfirm:
    def test_creates_pending_interview_in_utc(self, db_session, acme_application, null_calendar, session):
        _propose(db_session, null_calendar, session, _slot("14:15", company_name="Acme"))
        select_slot(session, 0)
        interview = confirm_selected_slot(db_session, null_calendar, session)

        assert interview.status == InterviewStatus.PENDING
        assert interview.application_id == acme_application.id
        # 14:15 EDT
        assert interview.scheduled_at == datetime(2026, 3, 10, 18, 15, tzinfo=UTC)
        assert interview.duration_minutes == 60
        assert interview.timezone == NY
        assert interview.notes == "Free afternoon"
        assert acme_application.status == ApplicationStatus.INTERVIEWING

        assert session.state == DialogueState.CONFIRMED
        assert session.interview_id == str(interview.id)
        assert "Tuesday, March 10 at 14:15 EDT" in session.messages[-1].content

    def test_unknown_company_creates_nothing(self, db_session, acme_application, null_calendar, session):
        _propose(db_session, null_calendar, session, _slot(company_name="Umbrella"))
        select_slot(session, 0)
        with pytest.raises(NoMatchingApplication):
            confirm_selected_slot(db_session, null_calendar, session)
        assert db_session.query(ScheduledInterview).count() == 0
        assert session.state == DialogueState.SLOT_SELECTED

    def test_calendar_sync_optional(self, db_session, acme_application, mock_calendar, session):
        _propose(db_session, mock_calendar, session, _slot(company_name="Acme"))
        select_slot(session, 0)
        confirm_selected_slot(db_session, mock_calendar, session, add_to_calendar=False)
        mock_calendar.create_event.assert_not_called()

    def test_reschedule_moves_existing_interview(self, db_session, acme_application, mock_calendar, store):
        original = create_interview(
            db_session,
            acme_application.id,
            title="Onsite",
            scheduled_at=datetime(2026, 3, 9, 17, 0, tzinfo=UTC),
            duration_minutes=90,
            timezone=NY,
            calendar=mock_calendar,
        )
        db_session.commit()
        session = store.create(45, NY, reschedule_interview_id=str(original.id))

        _propose(db_session, mock_calendar, session, _slot("16:30"))
        select_slot(session, 0)
        moved = confirm_selected_slot(db_session, mock_calendar, session)

        assert moved.id == original.id
        assert moved.scheduled_at == datetime(2026, 3, 10, 20, 30, tzinfo=UTC)
        assert moved.duration_minutes == 45
        assert moved.status == InterviewStatus.SCHEDULED
        assert db_session.query(ScheduledInterview).count() == 1
        mock_calendar.update_event.assert_called_once()
        assert "Interview moved to" in session.messages[-1].content

    def test_reschedule_missing_interview(self, db_session, null_calendar, store):
        session = store.create(60, NY, reschedule_interview_id="00000000-0000-0000-0000-000000000000")
        _propose(db_session, null_calendar, session, _slot())
        select_slot(session, 0)
        with pytest.raises(SchedulingError) as exc_info:
            confirm_selected_slot(db_session, null_calendar, session)
        assert exc_info.value.status_code == 404
        assert get_interview(db_session, "00000000-0000-0000-0000-000000000000") is None
