"""User and device records."""

from datetime import datetime

from .notification import CamelModel


class UserRecord(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    role: str
    is_active: bool = True

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class DeviceSessionRecord(CamelModel):
    id: int
    user_id: int
    connection_id: str
    device_type: str
    os: str
    browser: str
    ip_address: str | None = None
    user_agent: str | None = None
    is_active: bool = True
    connected_at: datetime
    disconnected_at: datetime | None = None
    disconnect_reason: str | None = None


class CourseRecord(CamelModel):
    id: int
    title: str
    instructor_id: int


class EnrollmentRecord(CamelModel):
    id: int
    student_id: int
    course_id: int
    enrolled_at: datetime


class EnrollmentRequest(CamelModel):
    student_id: int | None = None
