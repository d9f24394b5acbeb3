"""Interview JSON API routes."""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..database.base import get_db
from ..dependencies import get_calendar
from ..exceptions import InterviewNotFound
from ..integrations.calendar import CalendarClient
from .models import InterviewStatus
from .schemas import CompleteInterviewRequest, InterviewCreateRequest, InterviewUpdateRequest, interview_to_dict
from .service import (
    approve_interview,
    cancel_interview,
    complete_interview,
    create_interview,
    delete_interview,
    get_interview,
    get_interviews_by_application,
    get_upcoming_interviews,
    list_interviews,
    revert_to_pending,
    update_interview,
)

router = APIRouter(tags=["interviews"])


@router.post("/interviews")
def schedule_interview(
    request: Request,
    payload: InterviewCreateRequest,
    db: Session = Depends(get_db),
    calendar: CalendarClient = Depends(get_calendar),
):
    interview = create_interview(
        db,
        payload.application_id,
        title=payload.title,
        scheduled_at=payload.scheduled_at,
        duration_minutes=payload.duration_minutes,
        timezone=payload.timezone,
        interview_type=payload.interview_type,
        location=payload.location,
        meeting_link=payload.meeting_link,
        interviewer_name=payload.interviewer_name,
        interviewer_email=payload.interviewer_email,
        notes=payload.notes,
        calendar=calendar if payload.add_to_calendar else None,
    )
    audit(db, request, "interview_scheduled", interview.id, f"application={payload.application_id}")
    db.commit()
    return JSONResponse(interview_to_dict(interview), status_code=201)


@router.get("/interviews")
def list_all_interviews(
    status: InterviewStatus | None = None,
    db: Session = Depends(get_db),
):
    return JSONResponse([interview_to_dict(i) for i in list_interviews(db, status)])


@router.get("/interviews/upcoming")
def upcoming_interviews(
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
):
    return JSONResponse([interview_to_dict(i) for i in get_upcoming_interviews(db, days)])


@router.get("/interviews/{interview_id}")
def read_interview(interview_id: str, db: Session = Depends(get_db)):
    interview = get_interview(db, interview_id)
    if not interview:
        raise InterviewNotFound(f"Interview {interview_id} not found")
    return JSONResponse(interview_to_dict(interview))


@router.patch("/interviews/{interview_id}")
def edit_interview(
    request: Request,
    interview_id: str,
    payload: InterviewUpdateRequest,
    db: Session = Depends(get_db),
    calendar: CalendarClient = Depends(get_calendar),
):
    fields = payload.changed_fields()
    interview = update_interview(
        db,
        interview_id,
        fields,
        expected_version=payload.expected_version,
        calendar=calendar,
    )
    audit(db, request, "interview_updated", interview.id, ",".join(sorted(fields)))
    db.commit()
    return JSONResponse(interview_to_dict(interview))


@router.delete("/interviews/{interview_id}")
def remove_interview(
    request: Request,
    interview_id: str,
    db: Session = Depends(get_db),
    calendar: CalendarClient = Depends(get_calendar),
):
    if not delete_interview(db, interview_id, calendar=calendar):
        raise InterviewNotFound(f"Interview {interview_id} not found")
    audit(db, request, "interview_deleted", interview_id)
    db.commit()
    return JSONResponse({"ok": True})


@router.post("/interviews/{interview_id}/approve")
def approve(request: Request, interview_id: str, db: Session = Depends(get_db)):
    interview = approve_interview(db, interview_id)
    audit(db, request, "interview_approved", interview.id)
    db.commit()
    return JSONResponse(interview_to_dict(interview))


@router.post("/interviews/{interview_id}/revert")
def revert(request: Request, interview_id: str, db: Session = Depends(get_db)):
    interview = revert_to_pending(db, interview_id)
    audit(db, request, "interview_reverted", interview.id)
    db.commit()
    return JSONResponse(interview_to_dict(interview))


@router.post("/interviews/{interview_id}/cancel")
def cancel(
    request: Request,
    interview_id: str,
    db: Session = Depends(get_db),
    calendar: CalendarClient = Depends(get_calendar),
):
    interview = cancel_interview(db, interview_id, calendar=calendar)
    audit(db, request, "interview_cancelled", interview.id)
    db.commit()
    return JSONResponse(interview_to_dict(interview))


@router.post("/interviews/{interview_id}/complete")
def complete(
    request: Request,
    interview_id: str,
    payload: CompleteInterviewRequest,
    db: Session = Depends(get_db),
):
    interview = complete_interview(db, interview_id, payload.outcome, payload.feedback)
    audit(db, request, "interview_completed", interview.id, payload.outcome)
    db.commit()
    return JSONResponse(interview_to_dict(interview))


@router.get("/applications/{application_id}/interviews")
def application_interviews(application_id: str, db: Session = Depends(get_db)):
    return JSONResponse([interview_to_dict(i) for i in get_interviews_by_application(db, application_id)])
