"""Recipient notification preferences and the opt-out/quiet-hours gate."""

from __future__ import annotations

from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from .models import NotificationPreferences, NotificationRequest, QuietHours


def default_preferences(user_id: str, *, timezone_name: str = "America/New_York") -> NotificationPreferences:
    return NotificationPreferences(user_id=user_id, timezone=timezone_name)


def local_clock_time(now: datetime, timezone_name: str) -> str:
    """Return ``HH:MM`` wall-clock time of ``now`` in the given zone."""

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(timezone_name)).strftime("%H:%M")


def in_quiet_hours(quiet_hours: QuietHours, now: datetime) -> bool:
    # Same-day window only: a range such as 22:00-06:00 never matches.
    current = local_clock_time(now, quiet_hours.timezone)
    return quiet_hours.start <= current <= quiet_hours.end


def should_send(
    request: NotificationRequest,
    preferences: NotificationPreferences,
    *,
    now: datetime | None = None,
) -> bool:
    """Return False when the recipient's preferences suppress this notification."""

    if request.type == "email" and not preferences.email:
        return False
    if request.type == "sms" and not preferences.sms:
        return False
    if request.template == "satisfactionSurvey" and not preferences.satisfaction_surveys:
        return False
    if request.template == "appointmentReminder" and not preferences.appointment_reminders:
        return False
    if preferences.quiet_hours is not None:
        current = now or datetime.now(timezone.utc)
        if in_quiet_hours(preferences.quiet_hours, current):
            return False
    return True


_UPDATABLE_FIELDS = frozenset(f.name for f in fields(NotificationPreferences)) - {"user_id"}


class InMemoryPreferenceStore:
    """Process-local preference records keyed by recipient email or phone."""

    def __init__(self, *, default_timezone: str = "America/New_York") -> None:
        self._preferences: dict[str, NotificationPreferences] = {}
        self._default_timezone = default_timezone

    async def get(self, recipient_key: str) -> NotificationPreferences:
        preferences = self._preferences.get(recipient_key)
        if preferences is None:
            preferences = default_preferences(recipient_key, timezone_name=self._default_timezone)
            self._preferences[recipient_key] = preferences
        return preferences

    async def update(self, recipient_key: str, changes: Mapping[str, Any]) -> NotificationPreferences:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"unknown preference fields: {', '.join(sorted(unknown))}")
        current = await self.get(recipient_key)
        updates = dict(changes)
        quiet_hours = updates.get("quiet_hours")
        if isinstance(quiet_hours, Mapping):
            updates["quiet_hours"] = QuietHours(**quiet_hours)
        updated = replace(current, **updates, user_id=recipient_key)
        self._preferences[recipient_key] = updated
        return updated

    def __len__(self) -> int:
        return len(self._preferences)
