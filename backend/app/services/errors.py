from __future__ import annotations

from fastapi import status


class AttendanceError(Exception):
    """Client-facing validation failure raised by the attendance and feedback services.

    Each subclass carries a stable ``code`` and the HTTP status it maps to at the
    API boundary. The default message can be replaced per raise.
    """

    code = "AttendanceError"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Attendance operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.detail = message or self.message
        super().__init__(self.detail)

    def to_payload(self) -> dict:
        return {"success": False, "code": self.code, "detail": self.detail}


# Lookups
class EventNotFound(AttendanceError):
    code = "EventNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Event not found"


class AttendanceNotFound(AttendanceError):
    code = "AttendanceNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Attendance record not found"


class NotificationNotFound(AttendanceError):
    code = "NotificationNotFound"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Notification not found"


# Window violations
class EventNotActive(AttendanceError):
    code = "EventNotActive"
    message = "Event is not active"


class TokenExpiredOrInvalid(AttendanceError):
    code = "TokenExpiredOrInvalid"
    message = "Invalid attendance token"


class QrExpiredOrInactive(AttendanceError):
    code = "QrExpiredOrInactive"
    message = "QR code has expired"


class QrActionMismatch(AttendanceError):
    code = "QrActionMismatch"
    message = "QR code cannot be used for this action"


class InvalidQrCode(AttendanceError):
    code = "InvalidQrCode"
    message = "Invalid QR code"


# Sequencing violations
class DuplicateTimeIn(AttendanceError):
    code = "DuplicateTimeIn"
    status_code = status.HTTP_409_CONFLICT
    message = "You have already recorded time in for today"


class DuplicateTimeOut(AttendanceError):
    code = "DuplicateTimeOut"
    status_code = status.HTTP_409_CONFLICT
    message = "You have already recorded time out for today"


class NoTimeInRecorded(AttendanceError):
    code = "NoTimeInRecorded"
    message = "You must record time in before time out"


class DuplicateScan(AttendanceError):
    code = "DuplicateScan"
    status_code = status.HTTP_409_CONFLICT
    message = "This scan is already being processed"


class ConcurrentUpdate(AttendanceError):
    code = "ConcurrentUpdate"
    status_code = status.HTTP_409_CONFLICT
    message = "Attendance record was modified concurrently, please retry"


class AttendanceNotCompleted(AttendanceError):
    code = "AttendanceNotCompleted"
    message = "Attendance not completed yet. Please complete time in and time out before submitting feedback."


# Authentication
class NotAuthenticated(AttendanceError):
    code = "NotAuthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authenticated"


class InvalidAccessToken(NotAuthenticated):
    code = "InvalidAccessToken"
    message = "Invalid token"


class InactiveUser(NotAuthenticated):
    code = "InactiveUser"
    message = "Inactive user"


# Authorization violations
class NotRegisteredVolunteer(AttendanceError):
    code = "NotRegisteredVolunteer"
    status_code = status.HTTP_403_FORBIDDEN
    message = "You are not an approved volunteer for this event"


class NotOrganizer(AttendanceError):
    code = "NotOrganizer"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Only the event organizer can perform this action"


class Forbidden(AttendanceError):
    code = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Forbidden"


class OverrideDisabled(AttendanceError):
    code = "OverrideDisabled"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Overrides disabled for this event"


# Feedback
class FeedbackNotRequired(AttendanceError):
    code = "FeedbackNotRequired"
    message = "Feedback not required for this attendance"


class AlreadySubmitted(AttendanceError):
    code = "AlreadySubmitted"
    message = "Feedback already submitted"


class DeadlinePassed(AttendanceError):
    code = "DeadlinePassed"
    message = (
        "Feedback deadline has passed. Please contact the event organizer "
        "to submit feedback or reinstate your hours."
    )


class InvalidRating(AttendanceError):
    code = "InvalidRating"
    message = "Rating must be between 1 and 5"


class CommentRequired(AttendanceError):
    code = "CommentRequired"
    message = "Feedback message is required"


class CommentTooLong(AttendanceError):
    code = "CommentTooLong"
    message = "Feedback message is too long"


# Exception workflow
class TimeOutAlreadyRecorded(AttendanceError):
    code = "TimeOutAlreadyRecorded"
    message = "Time out is already recorded for this attendance"


class DuplicateExceptionRequest(AttendanceError):
    code = "DuplicateExceptionRequest"
    message = "An exception request already exists for this attendance"


class NoPendingException(AttendanceError):
    code = "NoPendingException"
    message = "No pending exception request for this attendance"


class ReasonRequired(AttendanceError):
    code = "ReasonRequired"
    message = "A reason is required"
