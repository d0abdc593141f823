from app.models.attendance_record import AttendanceRecord
from app.models.event import Event
from app.models.event_qr_code import EventQrCode
from app.models.event_volunteer import EventVolunteer
from app.models.notification import Notification
from app.models.user import User

__all__ = [
    "AttendanceRecord",
    "Event",
    "EventQrCode",
    "EventVolunteer",
    "Notification",
    "User",
]
