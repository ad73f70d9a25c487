from datetime import datetime, timezone

import pytest

from intake_services.notification_service.app.models import (
    NotificationPreferences,
    NotificationRequest,
    QuietHours,
    Recipient,
)
from intake_services.notification_service.app.preferences import (
    InMemoryPreferenceStore,
    in_quiet_hours,
    local_clock_time,
    should_send,
)

# 2024-01-15 19:30 UTC is 14:30 in New York (EST, UTC-5).
_NOON_THIRTY_NY = datetime(2024, 1, 15, 19, 30, tzinfo=timezone.utc)


def _request(channel: str = "sms", template: str = "appointmentConfirmation") -> NotificationRequest:
    return NotificationRequest(
        type=channel,
        recipient=Recipient(phone="+15551234567", email="patient@example.com"),
        template=template,
        data={},
    )


@pytest.mark.parametrize("template", ["satisfactionSurvey", "appointmentReminder", "appointmentConfirmation"])
def test_sms_opt_out_blocks_every_template(template: str) -> None:
    preferences = NotificationPreferences(user_id="+15551234567", sms=False)

    assert should_send(_request("sms", template), preferences, now=_NOON_THIRTY_NY) is False


def test_email_opt_out_does_not_block_sms() -> None:
    preferences = NotificationPreferences(user_id="patient@example.com", email=False)

    assert should_send(_request("email"), preferences, now=_NOON_THIRTY_NY) is False
    assert should_send(_request("sms"), preferences, now=_NOON_THIRTY_NY) is True


def test_template_opt_outs() -> None:
    no_surveys = NotificationPreferences(user_id="x", satisfaction_surveys=False)
    no_reminders = NotificationPreferences(user_id="x", appointment_reminders=False)

    assert should_send(_request(template="satisfactionSurvey"), no_surveys, now=_NOON_THIRTY_NY) is False
    assert should_send(_request(template="appointmentReminder"), no_surveys, now=_NOON_THIRTY_NY) is True
    assert should_send(_request(template="appointmentReminder"), no_reminders, now=_NOON_THIRTY_NY) is False
    # Confirmations have no dedicated opt-out.
    assert should_send(_request(template="appointmentConfirmation"), no_reminders, now=_NOON_THIRTY_NY) is True


def test_marketing_flag_does_not_gate_clinical_templates() -> None:
    preferences = NotificationPreferences(user_id="x", marketing=False)

    assert should_send(_request(template="appointmentReminder"), preferences, now=_NOON_THIRTY_NY) is True


def test_local_clock_time_uses_zone() -> None:
    assert local_clock_time(_NOON_THIRTY_NY, "America/New_York") == "14:30"
    assert local_clock_time(_NOON_THIRTY_NY, "UTC") == "19:30"


@pytest.mark.parametrize(
    ("start", "end", "expected"),
    [
        ("14:00", "15:00", True),
        ("14:30", "15:00", True),
        ("13:00", "14:30", True),
        ("14:31", "18:00", False),
        ("08:00", "14:29", False),
    ],
)
def test_quiet_hours_window_is_inclusive(start: str, end: str, expected: bool) -> None:
    preferences = NotificationPreferences(
        user_id="x",
        quiet_hours=QuietHours(start=start, end=end, timezone="America/New_York"),
    )

    assert should_send(_request(), preferences, now=_NOON_THIRTY_NY) is (not expected)


def test_quiet_hours_crossing_midnight_never_match() -> None:
    late_night = datetime(2024, 1, 16, 4, 0, tzinfo=timezone.utc)  # 23:00 in New York
    quiet_hours = QuietHours(start="22:00", end="06:00", timezone="America/New_York")

    assert in_quiet_hours(quiet_hours, late_night) is False


def test_naive_now_is_treated_as_utc() -> None:
    quiet_hours = QuietHours(start="14:00", end="15:00", timezone="America/New_York")

    assert in_quiet_hours(quiet_hours, datetime(2024, 1, 15, 19, 30)) is True


@pytest.mark.asyncio
async def test_store_creates_default_on_first_lookup() -> None:
    store = InMemoryPreferenceStore()

    preferences = await store.get("patient@example.com")

    assert preferences.user_id == "patient@example.com"
    assert preferences.email is True
    assert preferences.sms is True
    assert preferences.appointment_reminders is True
    assert preferences.satisfaction_surveys is True
    assert preferences.marketing is False
    assert preferences.timezone == "America/New_York"
    assert preferences.language == "en"
    assert preferences.quiet_hours is None
    assert len(store) == 1


@pytest.mark.asyncio
async def test_store_update_merges_partial_changes() -> None:
    store = InMemoryPreferenceStore()
    await store.update("patient@example.com", {"sms": False})

    updated = await store.update(
        "patient@example.com",
        {"quiet_hours": {"start": "21:00", "end": "23:00", "timezone": "UTC"}, "language": "es"},
    )

    assert updated.sms is False
    assert updated.email is True
    assert updated.language == "es"
    assert updated.quiet_hours == QuietHours(start="21:00", end="23:00", timezone="UTC")
    assert (await store.get("patient@example.com")) == updated


@pytest.mark.asyncio
async def test_store_update_keeps_recipient_key() -> None:
    store = InMemoryPreferenceStore()

    updated = await store.update("+15551234567", {"marketing": True})

    assert updated.user_id == "+15551234567"


@pytest.mark.asyncio
async def test_store_rejects_unknown_fields() -> None:
    store = InMemoryPreferenceStore()

    with pytest.raises(ValueError):
        await store.update("x", {"push": True})
    with pytest.raises(ValueError):
        await store.update("x", {"user_id": "someone-else"})
