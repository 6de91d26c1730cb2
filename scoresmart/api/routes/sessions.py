"""
Session Enrollment API Endpoints

GET  /api/v1/sessions                - List sessions (available, admin or own-sessions view)
GET  /api/v1/sessions/{id}           - Single session with derived fields
POST /api/v1/sessions                - Create a session (tutor/admin)
POST /api/v1/sessions/{id}/join      - Take a seat
POST /api/v1/sessions/{id}/leave     - Give a seat back
POST /api/v1/sessions/{id}/cancel    - Cancel a session (tutor/admin)
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, ConfigDict, Field

from scoresmart.api.auth import get_current_caller
from scoresmart.api.responses import failure_response
from scoresmart.services.availability_filter import AvailabilityQuery, ListingMode
from scoresmart.services.enrollment_workflow import EnrollmentWorkflow, get_enrollment_workflow
from scoresmart.services.session_admin import SessionAdmin, SessionDraft, get_session_admin
from scoresmart.services.session_types import Caller

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


# Request/Response models
class CreateSessionRequest(BaseModel):
    """Session fields a tutor or admin may set; seat counts and status are engine-owned"""
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    session_type: Literal["ONE_TO_ONE", "SMART_QUAD", "MASTERCLASS"]
    course_type: Optional[str] = None
    start_time: datetime
    end_time: datetime
    max_participants: Optional[int] = Field(None, ge=1)
    tutor_id: Optional[str] = None
    meeting_link: Optional[str] = None


class SessionResponse(BaseModel):
    """Standard response wrapper"""
    data: Any
    metadata: Dict[str, Any] = {}


def _resolve_now(tz: str) -> datetime:
    try:
        return datetime.now(ZoneInfo(tz))
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=400, detail=f"Unknown timezone '{tz}'")


def _enrollment_dict(enrollment) -> Dict[str, Any]:
    return {
        "confirmation_ref": enrollment.confirmation_ref,
        "session_id": enrollment.session_id,
        "participant_id": enrollment.participant_id,
        "enrolled_at": enrollment.enrolled_at.isoformat(),
    }


@router.get("", response_model=SessionResponse)
async def list_sessions(
    time_window: Literal["all", "today", "this_week"] = Query("all"),
    course_type: str = Query("all", description="Course track (e.g., PTE, IELTS) or 'all'"),
    session_type: Literal["all", "ONE_TO_ONE", "SMART_QUAD", "MASTERCLASS"] = Query("all"),
    search: str = Query("", max_length=200, description="Case-insensitive title/description/tutor search"),
    mode: ListingMode = Query(ListingMode.AVAILABLE),
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=200),
    tz: str = Query("UTC", description="IANA timezone used for today/this_week boundaries"),
    caller: Caller = Depends(get_current_caller),
    workflow: EnrollmentWorkflow = Depends(get_enrollment_workflow),
):
    """
    List sessions visible to the caller, ordered by start time.

    Students only see session types their feature flags allow; asking for a
    disabled type returns 403 FeatureDisabled rather than an empty list.
    mode=all is admin-only; mode=mine lists the calling tutor's own sessions
    in every state.
    """
    now = _resolve_now(tz)
    query = AvailabilityQuery(
        time_window=time_window,
        course_type=course_type,
        session_type=session_type,
        search_text=search,
        mode=mode,
        offset=offset,
        limit=limit,
    )

    outcome = await workflow.browse(caller, query, now)
    if not outcome.ok:
        return failure_response(outcome.error)

    return SessionResponse(
        data=[view.to_dict() for view in outcome.value],
        metadata={
            "count": len(outcome.value),
            "timestamp": now.isoformat(),
            "mode": mode.value,
        },
    )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str = Path(..., description="Session identifier"),
    caller: Caller = Depends(get_current_caller),
    workflow: EnrollmentWorkflow = Depends(get_enrollment_workflow),
):
    outcome = await workflow.get_session_view(caller, session_id)
    if not outcome.ok:
        return failure_response(outcome.error)
    return SessionResponse(data=outcome.value.to_dict())


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    request: CreateSessionRequest,
    caller: Caller = Depends(get_current_caller),
    admin: SessionAdmin = Depends(get_session_admin),
):
    """Create a session with per-type capacity defaults (tutors and admins)"""
    draft = SessionDraft(**request.model_dump())
    outcome = await admin.create_session(caller, draft)
    if not outcome.ok:
        return failure_response(outcome.error)

    record = outcome.value
    return SessionResponse(
        data={
            "id": record.id,
            "title": record.title,
            "session_type": record.session_type.value,
            "course_type": record.course_type,
            "start_time": record.start_time.isoformat(),
            "end_time": record.end_time.isoformat(),
            "max_participants": record.max_participants,
            "current_participants": record.current_participants,
            "status": record.status.value,
            "tutor_id": record.tutor_id,
            "meeting_link": record.meeting_link,
        },
        metadata={"warnings": outcome.warnings},
    )


@router.post("/{session_id}/join", response_model=SessionResponse)
async def join_session(
    session_id: str = Path(..., description="Session identifier"),
    caller: Caller = Depends(get_current_caller),
    workflow: EnrollmentWorkflow = Depends(get_enrollment_workflow),
):
    """Reserve a seat for the caller; 409 SessionFull when the last seat is gone"""
    outcome = await workflow.join(caller, session_id)
    if not outcome.ok:
        return failure_response(outcome.error)
    return SessionResponse(
        data={"status": "enrolled", **_enrollment_dict(outcome.value)},
        metadata={"warnings": outcome.warnings},
    )


@router.post("/{session_id}/leave", response_model=SessionResponse)
async def leave_session(
    session_id: str = Path(..., description="Session identifier"),
    caller: Caller = Depends(get_current_caller),
    workflow: EnrollmentWorkflow = Depends(get_enrollment_workflow),
):
    outcome = await workflow.leave(caller, session_id)
    if not outcome.ok:
        return failure_response(outcome.error)
    return SessionResponse(
        data={"status": "left", "session_id": session_id, "participant_id": caller.id},
        metadata={"warnings": outcome.warnings},
    )


@router.post("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: str = Path(..., description="Session identifier"),
    caller: Caller = Depends(get_current_caller),
    workflow: EnrollmentWorkflow = Depends(get_enrollment_workflow),
):
    outcome = await workflow.cancel(caller, session_id)
    if not outcome.ok:
        return failure_response(outcome.error)
    voided: List[Dict[str, Any]] = [_enrollment_dict(e) for e in outcome.value]
    return SessionResponse(
        data={"status": "cancelled", "session_id": session_id, "voided_enrollments": voided},
        metadata={"warnings": outcome.warnings},
    )
