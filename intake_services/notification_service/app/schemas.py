"""Pydantic schemas for the notification HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

_HH_MM = r"^([01]\d|2[0-3]):[0-5]\d$"


def _validate_timezone(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone: {value}") from exc
    return value


class RecipientPayload(BaseModel):
    phone: str | None = Field(default=None, max_length=32)
    email: EmailStr | None = None
    name: str | None = Field(default=None, max_length=255)

    @field_validator("phone", "email", "name", mode="before")
    @classmethod
    def _strip_optional(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        cleaned = value.strip()
        if not cleaned:
            return None
        return cleaned


class NotificationSendRequest(BaseModel):
    type: Literal["sms", "email"]
    recipient: RecipientPayload
    template: Literal["satisfactionSurvey", "appointmentReminder", "appointmentConfirmation"]
    data: dict[str, Any]
    priority: Literal["low", "normal", "high"] | None = None
    scheduled_at: datetime | None = Field(default=None, alias="scheduledAt")
    retry_attempts: int | None = Field(default=None, ge=0, alias="retryAttempts")

    model_config = ConfigDict(populate_by_name=True)


class AppointmentDataPayload(BaseModel):
    appointment_id: str = Field(min_length=1, alias="appointmentId")
    doctor_name: str = Field(min_length=1, alias="doctorName")
    appointment_date: str = Field(min_length=1, alias="appointmentDate")
    appointment_time: str = Field(min_length=1, alias="appointmentTime")
    location: str = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class AppointmentNotificationRequest(BaseModel):
    recipient: RecipientPayload
    appointment_data: AppointmentDataPayload = Field(alias="appointmentData")

    model_config = ConfigDict(populate_by_name=True)


class NotificationResult(BaseModel):
    success: bool
    status: str
    message_id: str | None = Field(default=None, alias="messageId")
    provider: str | None = None
    error: str | None = None
    delivery_time: datetime | None = Field(default=None, alias="deliveryTime")
    cost: float | None = None

    model_config = ConfigDict(populate_by_name=True)


class NotificationSendResponse(BaseModel):
    success: bool
    message: str
    data: NotificationResult


class NotificationLogResponse(BaseModel):
    id: str
    type: str
    recipient: str
    template: str
    status: str
    message_id: str | None = Field(default=None, alias="messageId")
    provider: str | None = None
    error: str | None = None
    cost: float | None = None
    sent_at: datetime = Field(alias="sentAt")
    delivered_at: datetime | None = Field(default=None, alias="deliveredAt")
    retry_count: int = Field(alias="retryCount")
    metadata: dict[str, Any]

    model_config = ConfigDict(populate_by_name=True)


class NotificationLogListResponse(BaseModel):
    items: list[NotificationLogResponse]
    total: int


class NotificationStatsResponse(BaseModel):
    total: int
    successful: int
    failed: int
    pending: int
    total_cost: float = Field(alias="totalCost")
    by_type: dict[str, int] = Field(alias="byType")
    by_template: dict[str, int] = Field(alias="byTemplate")

    model_config = ConfigDict(populate_by_name=True)


class RetryResponse(BaseModel):
    message: str
    retry_count: int = Field(alias="retryCount")

    model_config = ConfigDict(populate_by_name=True)


class QuietHoursPayload(BaseModel):
    start: str = Field(pattern=_HH_MM)
    end: str = Field(pattern=_HH_MM)
    timezone: str

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        return _validate_timezone(value)


class PreferenceResponse(BaseModel):
    user_id: str = Field(alias="userId")
    email: bool
    sms: bool
    appointment_reminders: bool = Field(alias="appointmentReminders")
    satisfaction_surveys: bool = Field(alias="satisfactionSurveys")
    marketing: bool
    timezone: str
    language: Literal["en", "es"]
    quiet_hours: QuietHoursPayload | None = Field(default=None, alias="quietHours")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class PreferenceUpdate(BaseModel):
    email: bool | None = None
    sms: bool | None = None
    appointment_reminders: bool | None = Field(default=None, alias="appointmentReminders")
    satisfaction_surveys: bool | None = Field(default=None, alias="satisfactionSurveys")
    marketing: bool | None = None
    timezone: str | None = None
    language: Literal["en", "es"] | None = None
    quiet_hours: QuietHoursPayload | None = Field(default=None, alias="quietHours")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        return _validate_timezone(value)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly set by the caller, keyed by attribute name."""

        updates = self.model_dump(exclude_unset=True)
        for key in ("email", "sms", "appointment_reminders", "satisfaction_surveys", "marketing", "timezone", "language"):
            if key in updates and updates[key] is None:
                updates.pop(key)
        return updates


class EmailTemplateResponse(BaseModel):
    subject: str
    text: str
    html: str


class TemplateVariables(BaseModel):
    sms: list[str]
    email: list[str]


class TemplateResponse(BaseModel):
    name: str
    sms: str
    email: EmailTemplateResponse
    variables: TemplateVariables


class AuditEntryResponse(BaseModel):
    user_id: str = Field(alias="userId")
    action: str
    resource: str
    details: dict[str, Any]
    success: bool
    error_message: str | None = Field(default=None, alias="errorMessage")
    timestamp: datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class AuditLogListResponse(BaseModel):
    items: list[AuditEntryResponse]
    total: int
