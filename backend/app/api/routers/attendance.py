from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.api.access import ensure_organizer_role
from app.api.deps import get_current_user, get_outbox, get_store
from app.config import settings
from app.models.enums import AttendanceAction
from app.schemas.attendance import (
    CheckInIn,
    CountOut,
    EventSummaryOut,
    QrCodesIn,
    QrCodesOut,
    RecordingOut,
    ScanIn,
    TokenIssueOut,
    ValidateOut,
    VolunteerSummaryOut,
    attendance_to_out,
)
from app.schemas.exception_request import (
    ExceptionRequestIn,
    ExceptionRequestResultOut,
    ExceptionReviewIn,
    PendingExceptionOut,
)
from app.services.attendance_recording import (
    RecordingResult,
    invalidate_open_sessions,
    issue_event_token,
    redeem_qr,
    redeem_token,
)
from app.services.attendance_reports import export_event_csv, today_count, volunteer_summary
from app.services.errors import AttendanceError, EventNotFound
from app.services.exception_requests import (
    get_exception_request,
    list_pending_exception_requests,
    review_exception_request,
    submit_exception_request,
)
from app.services.hours import local_day
from app.services.qr_codes import deactivate_qr_codes, generate_daily_qr_codes
from app.services.scan_guard import ScanGuard, get_scan_guard


router = APIRouter()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _recording_out(result: RecordingResult) -> RecordingOut:
    message = "Time in recorded" if result.action == AttendanceAction.timein else "Time out recorded"
    return RecordingOut(action=result.action, message=message, attendance=attendance_to_out(result.record))


async def _load_event(store, event_id: uuid.UUID):
    event = await store.get_event(event_id)
    if event is None:
        raise EventNotFound()
    return event


@router.post("/{event_id}/issue-token", response_model=TokenIssueOut)
async def issue_token(event_id: uuid.UUID, store=Depends(get_store), user=Depends(get_current_user)) -> TokenIssueOut:
    event = await _load_event(store, event_id)
    token = issue_event_token(event=event, user=user, now=_utcnow())
    return TokenIssueOut(token=token, event_id=event.id, expires_in=settings.ATTENDANCE_TOKEN_TTL_SECONDS)


@router.post("/check-in", response_model=RecordingOut)
async def check_in_with_token(
    payload: CheckInIn,
    store=Depends(get_store),
    guard: ScanGuard = Depends(get_scan_guard),
    user=Depends(get_current_user),
) -> RecordingOut:
    action_key = payload.action.value if payload.action else "auto"
    key = await guard.claim(user_id=user.id, action=action_key, raw=payload.token)
    try:
        result = await redeem_token(store, token=payload.token, user_id=user.id, now=_utcnow(), action=payload.action)
    except AttendanceError:
        await guard.release(key)
        raise
    return _recording_out(result)


@router.post("/scan", response_model=RecordingOut)
async def scan_qr(
    payload: ScanIn,
    store=Depends(get_store),
    guard: ScanGuard = Depends(get_scan_guard),
    user=Depends(get_current_user),
) -> RecordingOut:
    key = await guard.claim(user_id=user.id, action=payload.action.value, raw=payload.qr_code)
    try:
        result = await redeem_qr(store, qr_code=payload.qr_code, action=payload.action, user_id=user.id, now=_utcnow())
    except AttendanceError:
        await guard.release(key)
        raise
    return _recording_out(result)


def _qr_out(qr) -> QrCodesOut:
    return QrCodesOut(
        event_id=qr.event_id,
        date=qr.date,
        check_in_code=qr.check_in_code,
        check_out_code=qr.check_out_code,
        generated_at=qr.generated_at,
        expires_at=qr.expires_at,
        is_active=qr.is_active,
    )


@router.post("/{event_id}/qr-codes", response_model=QrCodesOut)
async def generate_qr_codes(
    event_id: uuid.UUID,
    payload: QrCodesIn | None = None,
    store=Depends(get_store),
    user=Depends(get_current_user),
) -> QrCodesOut:
    event = await _load_event(store, event_id)
    day = payload.day if payload else None
    qr = await generate_daily_qr_codes(store, event=event, user=user, now=_utcnow(), day=day)
    return _qr_out(qr)


@router.delete("/{event_id}/qr-codes/{day}")
async def deactivate_qr(
    event_id: uuid.UUID, day: date, store=Depends(get_store), user=Depends(get_current_user)
) -> dict:
    event = await _load_event(store, event_id)
    qr = await deactivate_qr_codes(store, event=event, user=user, day=day)
    return {"success": True, "deactivated": qr is not None}


@router.post("/{event_id}/validate", response_model=ValidateOut)
async def validate_attendance(
    event_id: uuid.UUID, store=Depends(get_store), user=Depends(get_current_user)
) -> ValidateOut:
    event = await _load_event(store, event_id)
    return ValidateOut(invalidated=await invalidate_open_sessions(store, event=event, user=user))


@router.get("/me/summary", response_model=VolunteerSummaryOut)
async def my_summary(store=Depends(get_store), user=Depends(get_current_user)) -> VolunteerSummaryOut:
    summary = await volunteer_summary(store, user_id=user.id)
    return VolunteerSummaryOut(
        user_id=summary.user_id,
        total_hours=summary.total_hours,
        events=[
            EventSummaryOut(event_id=e.event_id, title=e.title, days_attended=e.days_attended, hours=e.hours)
            for e in summary.events
        ],
    )


@router.get("/{event_id}/count", response_model=CountOut)
async def attendance_count(event_id: uuid.UUID, store=Depends(get_store), user=Depends(get_current_user)) -> CountOut:
    now = _utcnow()
    count = await today_count(store, event_id=event_id, user=user, now=now)
    return CountOut(event_id=event_id, date=local_day(now), count=count)


@router.get("/{event_id}/export.csv")
async def export_attendance_csv(event_id: uuid.UUID, store=Depends(get_store), user=Depends(get_current_user)):
    filename, content = await export_event_csv(store, event_id=event_id, user=user)
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/exception-requests", response_model=list[PendingExceptionOut])
async def pending_exception_requests(
    store=Depends(get_store), user=Depends(get_current_user)
) -> list[PendingExceptionOut]:
    ensure_organizer_role(user)
    rows = await list_pending_exception_requests(store, user=user)
    return [
        PendingExceptionOut(
            attendance=attendance_to_out(record),
            event_id=event.id,
            event_title=event.title,
            volunteer_name=volunteer.full_name if volunteer else None,
            volunteer_email=volunteer.email if volunteer else None,
        )
        for record, event, volunteer in rows
    ]


@router.post("/{attendance_id}/exception-request", response_model=ExceptionRequestResultOut)
async def request_exception(
    attendance_id: uuid.UUID,
    payload: ExceptionRequestIn,
    store=Depends(get_store),
    outbox=Depends(get_outbox),
    user=Depends(get_current_user),
) -> ExceptionRequestResultOut:
    record = await submit_exception_request(
        store, outbox, record_id=attendance_id, user=user, reason=payload.reason, now=_utcnow()
    )
    return ExceptionRequestResultOut(message="Exception request submitted", attendance=attendance_to_out(record))


@router.get("/{attendance_id}/exception-request", response_model=ExceptionRequestResultOut)
async def read_exception_request(
    attendance_id: uuid.UUID, store=Depends(get_store), user=Depends(get_current_user)
) -> ExceptionRequestResultOut:
    record = await get_exception_request(store, record_id=attendance_id, user=user)
    return ExceptionRequestResultOut(message="ok", attendance=attendance_to_out(record))


@router.put("/{attendance_id}/exception-request", response_model=ExceptionRequestResultOut)
async def review_exception(
    attendance_id: uuid.UUID,
    payload: ExceptionReviewIn,
    store=Depends(get_store),
    outbox=Depends(get_outbox),
    user=Depends(get_current_user),
) -> ExceptionRequestResultOut:
    approve = payload.action == "approve"
    record = await review_exception_request(
        store, outbox, record_id=attendance_id, user=user, approve=approve, notes=payload.notes, now=_utcnow()
    )
    message = "Exception request approved" if approve else "Exception request rejected"
    return ExceptionRequestResultOut(message=message, attendance=attendance_to_out(record))
