from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv
from sqlalchemy import select

from app.auth.security import create_access_token
from app.config import settings
from app.db import SessionLocal
from app.models.enums import RegistrationStatus, UserRole
from app.models.event import Event
from app.models.event_volunteer import EventVolunteer
from app.models.user import User

load_dotenv()

DEMO_USERS = [
    ("organizer@example.org", "Demo Organizer", UserRole.DEPARTMENT),
    ("staff@example.org", "Demo Staff", UserRole.CRD_STAFF),
    ("volunteer@example.org", "Demo Volunteer", UserRole.USER),
]
DEMO_EVENT_TITLE = "Community Clean-up"


async def _ensure_user(db, email: str, full_name: str, role: UserRole) -> User:
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(email=email, full_name=full_name, role=role, is_active=True)
        db.add(user)
        await db.flush()
    return user


async def seed() -> None:
    print("Starting seed process...")
    async with SessionLocal() as db:
        users = {email: await _ensure_user(db, email, name, role) for email, name, role in DEMO_USERS}
        organizer = users["organizer@example.org"]
        volunteer = users["volunteer@example.org"]

        event = (await db.execute(select(Event).where(Event.title == DEMO_EVENT_TITLE))).scalars().first()
        if event is None:
            now = datetime.now(timezone.utc)
            event = Event(
                title=DEMO_EVENT_TITLE,
                start_date=now,
                end_date=now + timedelta(hours=int(os.getenv("SEED_EVENT_HOURS", "4"))),
                created_by_user_id=organizer.id,
                feedback_deadline_hours=settings.FEEDBACK_DEADLINE_HOURS,
            )
            db.add(event)
            await db.flush()
            db.add(EventVolunteer(event_id=event.id, user_id=volunteer.id, status=RegistrationStatus.approved))
        await db.commit()
        print(f"Event: {event.title} ({event.id})")

        for user in users.values():
            token = create_access_token(user_id=user.id, role=user.role.value, expires_minutes=24 * 60)
            print(f"{user.role.value:<13} {user.email:<24} {token}")


if __name__ == "__main__":
    asyncio.run(seed())
