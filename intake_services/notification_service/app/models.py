"""In-memory domain records for the notification pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final, Literal

NotificationType = Literal["sms", "email"]
NotificationStatus = Literal["pending", "sent", "failed", "delivered", "bounced"]
NotificationPriority = Literal["low", "normal", "high"]
TemplateName = Literal["satisfactionSurvey", "appointmentReminder", "appointmentConfirmation"]

NOTIFICATION_TYPES: Final = ("sms", "email")
TEMPLATE_NAMES: Final = ("satisfactionSurvey", "appointmentReminder", "appointmentConfirmation")
SUCCESS_STATUSES: Final = frozenset({"sent", "delivered"})


@dataclass(slots=True)
class Recipient:
    phone: str | None = None
    email: str | None = None
    name: str | None = None

    @property
    def key(self) -> str:
        """Identifier used for preference lookups and log entries."""

        return self.email or self.phone or ""


@dataclass(slots=True)
class NotificationRequest:
    """A single dispatch request.

    Field values are not checked on construction; ``NotificationService.send``
    validates them and reports problems as a failed response.
    """

    type: str | None
    recipient: Recipient
    template: str | None
    data: dict[str, Any] | None = field(default_factory=dict)
    priority: NotificationPriority | None = None
    scheduled_at: datetime | None = None
    retry_attempts: int | None = None


@dataclass(slots=True)
class NotificationResponse:
    success: bool
    status: NotificationStatus
    message_id: str | None = None
    provider: str | None = None
    error: str | None = None
    delivery_time: datetime | None = None
    cost: float | None = None

    @classmethod
    def failed(cls, error: str, *, provider: str | None = None) -> NotificationResponse:
        return cls(success=False, status="failed", error=error, provider=provider)


@dataclass(slots=True)
class NotificationLog:
    id: str
    type: str
    recipient: str
    template: str
    status: NotificationStatus
    sent_at: datetime
    message_id: str | None = None
    provider: str | None = None
    error: str | None = None
    cost: float | None = None
    delivered_at: datetime | None = None
    retry_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class QuietHours:
    start: str
    end: str
    timezone: str


@dataclass(slots=True)
class NotificationPreferences:
    user_id: str
    email: bool = True
    sms: bool = True
    appointment_reminders: bool = True
    satisfaction_surveys: bool = True
    marketing: bool = False
    timezone: str = "America/New_York"
    language: Literal["en", "es"] = "en"
    quiet_hours: QuietHours | None = None


@dataclass(slots=True)
class AppointmentDetails:
    appointment_id: str
    doctor_name: str
    appointment_date: str
    appointment_time: str
    location: str

    def as_template_data(self) -> dict[str, Any]:
        return {
            "appointmentId": self.appointment_id,
            "doctorName": self.doctor_name,
            "appointmentDate": self.appointment_date,
            "appointmentTime": self.appointment_time,
            "location": self.location,
        }


@dataclass(slots=True)
class NotificationStats:
    total: int
    successful: int
    failed: int
    pending: int
    total_cost: float
    by_type: dict[str, int]
    by_template: dict[str, int]


@dataclass(slots=True)
class AuditLogEntry:
    user_id: str
    action: str
    resource: str
    details: dict[str, Any]
    success: bool
    timestamp: str
    error_message: str | None = None
