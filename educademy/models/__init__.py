"""
SQLAlchemy models for Educademy.

Importing this package registers every model with the shared Base metadata.
"""

from .assignment import Assignment, AssignmentSubmission, SubmissionStatus
from .base import Base, to_naive_utc, utc_now_naive
from .course import Course, Enrollment
from .device_session import DeviceSession
from .notification import Notification, NotificationPriority, NotificationType
from .user import User, UserRole

__all__ = [
    "Assignment",
    "AssignmentSubmission",
    "Base",
    "Course",
    "DeviceSession",
    "Enrollment",
    "Notification",
    "NotificationPriority",
    "NotificationType",
    "SubmissionStatus",
    "User",
    "UserRole",
    "to_naive_utc",
    "utc_now_naive",
]
