from __future__ import annotations

import csv
import io
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from app.api.access import ensure_organizer
from app.services.errors import EventNotFound
from app.services.hours import local_day, round_hours


EXPORT_HEADERS = ["Name", "Email", "Date", "Time In", "Time Out", "Total Hours", "Status"]


@dataclass
class EventAttendanceSummary:
    event_id: uuid.UUID
    title: str
    days_attended: int = 0
    hours: float = 0


@dataclass
class VolunteerSummary:
    user_id: uuid.UUID
    total_hours: float = 0
    events: list[EventAttendanceSummary] = field(default_factory=list)


def counted_hours(record) -> float:
    if not record.is_valid or record.voided_hours:
        return 0
    return record.day_hours or 0


async def volunteer_summary(store, *, user_id: uuid.UUID) -> VolunteerSummary:
    """Days attended and credited hours per event for one volunteer."""
    by_event: dict[uuid.UUID, EventAttendanceSummary] = {}
    for record, event in await store.volunteer_records(user_id):
        item = by_event.get(event.id)
        if item is None:
            item = by_event[event.id] = EventAttendanceSummary(event_id=event.id, title=event.title)
        if record.time_in is not None:
            item.days_attended += 1
        item.hours = round_hours(item.hours + counted_hours(record))

    events = list(by_event.values())
    return VolunteerSummary(
        user_id=user_id,
        total_hours=round_hours(sum(e.hours for e in events)),
        events=events,
    )


async def _organized_event(store, event_id: uuid.UUID, user):
    event = await store.get_event(event_id)
    if event is None:
        raise EventNotFound()
    ensure_organizer(user, event)
    return event


async def today_count(store, *, event_id: uuid.UUID, user, now: datetime) -> int:
    event = await _organized_event(store, event_id, user)
    return await store.count_for_day(event.id, local_day(now))


def _fmt(moment: datetime | None) -> str:
    return moment.isoformat() if moment is not None else ""


def export_rows(rows) -> list[list[str]]:
    out: list[list[str]] = []
    for record, user in rows:
        out.append(
            [
                (user.full_name if user else None) or "-",
                (user.email if user else None) or "-",
                record.date.isoformat(),
                _fmt(record.time_in),
                _fmt(record.time_out),
                f"{record.total_hours or 0:.2f}",
                record.status.value if record.status else "timed_in",
            ]
        )
    return out


async def export_event_csv(store, *, event_id: uuid.UUID, user) -> tuple[str, str]:
    event = await _organized_event(store, event_id, user)
    stream = io.StringIO()
    writer = csv.writer(stream)
    writer.writerow(EXPORT_HEADERS)
    writer.writerows(export_rows(await store.event_records(event.id)))
    return f"attendance_{event.id}.csv", stream.getvalue()
