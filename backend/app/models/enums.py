from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    USER = "USER"
    DEPARTMENT = "DEPARTMENT"
    CRD_STAFF = "CRD_STAFF"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


PRIVILEGED_ROLES = frozenset({UserRole.CRD_STAFF, UserRole.SYSTEM_ADMIN})
ORGANIZER_ROLES = frozenset({UserRole.DEPARTMENT, UserRole.CRD_STAFF, UserRole.SYSTEM_ADMIN})


class RegistrationStatus(str, enum.Enum):
    registered = "registered"
    approved = "approved"
    rejected = "rejected"
    invited = "invited"
    accepted = "accepted"


class FeedbackStatus(str, enum.Enum):
    pending = "pending"
    submitted = "submitted"
    missed = "missed"
    voided = "voided"
    overridden = "overridden"
    not_required = "not_required"


class ExceptionStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class AttendanceAction(str, enum.Enum):
    timein = "timein"
    timeout = "timeout"


class AttendanceSource(str, enum.Enum):
    token = "token"
    qr = "qr"


class QrCodeType(str, enum.Enum):
    checkIn = "checkIn"
    checkOut = "checkOut"


class NotificationType(str, enum.Enum):
    feedback_reminder = "feedback_reminder"
    feedback_missed = "feedback_missed"
    feedback_received = "feedback_received"
    feedback_override = "feedback_override"
    exception_requested = "exception_requested"
    exception_reviewed = "exception_reviewed"
