from __future__ import annotations

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user, get_outbox, get_store
from app.schemas.attendance import attendance_to_out
from app.schemas.feedback import (
    EventFeedbackOut,
    EventFeedbackRowOut,
    FeedbackOverrideIn,
    FeedbackResultOut,
    FeedbackSubmitIn,
    PendingFeedbackOut,
)
from app.services.feedback import event_feedback, override_feedback, pending_feedback_for_volunteer, submit_feedback


router = APIRouter()


@router.post("/{attendance_id}", response_model=FeedbackResultOut)
async def submit(
    attendance_id: uuid.UUID,
    payload: FeedbackSubmitIn,
    store=Depends(get_store),
    outbox=Depends(get_outbox),
    user=Depends(get_current_user),
) -> FeedbackResultOut:
    record = await submit_feedback(
        store,
        outbox,
        record_id=attendance_id,
        user=user,
        rating=payload.rating,
        comment=payload.comment,
        now=datetime.now(timezone.utc),
    )
    return FeedbackResultOut(message="Feedback submitted", attendance=attendance_to_out(record))


@router.post("/{attendance_id}/override", response_model=FeedbackResultOut)
async def override(
    attendance_id: uuid.UUID,
    payload: FeedbackOverrideIn,
    store=Depends(get_store),
    outbox=Depends(get_outbox),
    user=Depends(get_current_user),
) -> FeedbackResultOut:
    record = await override_feedback(
        store,
        outbox,
        record_id=attendance_id,
        user=user,
        now=datetime.now(timezone.utc),
        rating=payload.rating,
        comment=payload.comment,
        reinstate_hours=payload.reinstate_hours,
        reason=payload.reason,
    )
    message = "Hours reinstated" if payload.reinstate_hours else "Attendance voided"
    return FeedbackResultOut(message=message, attendance=attendance_to_out(record))


@router.get("/me/pending", response_model=list[PendingFeedbackOut])
async def my_pending(store=Depends(get_store), user=Depends(get_current_user)) -> list[PendingFeedbackOut]:
    items = await pending_feedback_for_volunteer(store, user_id=user.id, now=datetime.now(timezone.utc))
    return [
        PendingFeedbackOut(
            attendance=attendance_to_out(item.record),
            event_id=item.event.id,
            event_title=item.event.title,
            event_end_date=item.event.end_date,
            deadline_at=item.record.deadline_at,
            overdue=item.overdue,
        )
        for item in items
    ]


@router.get("/event/{event_id}", response_model=EventFeedbackOut)
async def for_event(event_id: uuid.UUID, store=Depends(get_store), user=Depends(get_current_user)) -> EventFeedbackOut:
    event, rows = await event_feedback(store, event_id=event_id, user=user)
    return EventFeedbackOut(
        event_id=event.id,
        title=event.title,
        require_feedback=event.require_feedback,
        allow_organizer_override=event.allow_organizer_override,
        feedback_deadline_hours=event.feedback_deadline_hours,
        average_rating=event.feedback_average_rating or 0,
        total_responses=event.feedback_total_responses or 0,
        last_calculated_at=event.feedback_last_calculated_at,
        records=[
            EventFeedbackRowOut(
                attendance=attendance_to_out(record),
                volunteer_name=volunteer.full_name if volunteer else None,
                volunteer_email=volunteer.email if volunteer else None,
            )
            for record, volunteer in rows
        ],
    )
