import re

import pytest

from intake_services.notification_service.app.templates import (
    DEFAULT_TEMPLATES,
    EmailTemplate,
    UnknownTemplateError,
    extract_variables,
    render,
    render_message,
    resolve_template,
)

_PLACEHOLDER = re.compile(r"\{\{[^}]+\}\}")


def test_extract_variables_collapses_duplicates_in_first_seen_order() -> None:
    template = "Hi {{name}}, {{name}} your visit with {{doctorName}} is on {{appointmentDate}}"

    assert extract_variables(template) == ["name", "doctorName", "appointmentDate"]


def test_extract_variables_without_placeholders() -> None:
    assert extract_variables("Thank you for choosing GoTo Optical!") == []


def test_render_replaces_known_values() -> None:
    template = "Hi {{name}}, your appointment with {{doctorName}} is on {{appointmentDate}}"
    data = {"name": "John Doe", "doctorName": "Dr. Bruce Goldstick", "appointmentDate": "2024-01-15"}

    assert render(template, data) == "Hi John Doe, your appointment with Dr. Bruce Goldstick is on 2024-01-15"


def test_render_keeps_missing_placeholders_verbatim() -> None:
    template = "Hi {{name}}, your appointment with {{doctorName}} is on {{appointmentDate}}"

    result = render(template, {"name": "John Doe"})

    assert result == "Hi John Doe, your appointment with {{doctorName}} is on {{appointmentDate}}"


@pytest.mark.parametrize("value", [None, "", 0, False])
def test_render_keeps_falsy_values_verbatim(value: object) -> None:
    assert render("Room {{room}}", {"room": value}) == "Room {{room}}"


def test_render_converts_values_to_strings() -> None:
    assert render("{{count}} visits, balance {{balance}}", {"count": 3, "balance": 12.5}) == "3 visits, balance 12.5"


@pytest.mark.parametrize("name", sorted(DEFAULT_TEMPLATES))
def test_catalogue_renders_without_leftover_placeholders(name: str) -> None:
    template = DEFAULT_TEMPLATES[name]
    texts = [template.sms, template.email.subject, template.email.text, template.email.html]
    for text in texts:
        data = {variable: f"value-{variable}" for variable in extract_variables(text)}
        assert _PLACEHOLDER.search(render(text, data)) is None


def test_resolve_template_by_channel() -> None:
    assert resolve_template("appointmentReminder", "sms") == DEFAULT_TEMPLATES["appointmentReminder"].sms
    email = resolve_template("appointmentReminder", "email")
    assert isinstance(email, EmailTemplate)
    assert email.subject == "Appointment Reminder - {{appointmentDate}}"


def test_resolve_unknown_template_raises() -> None:
    with pytest.raises(UnknownTemplateError):
        resolve_template("marketingBlast", "sms")


def test_render_message_for_email_uses_text_body() -> None:
    message = render_message(
        "appointmentConfirmation",
        "email",
        "a@b.com",
        {"appointmentDate": "2024-01-15", "appointmentId": "APT1"},
    )

    assert message.subject == "Appointment Confirmed - 2024-01-15"
    assert message.body.startswith("Appointment Confirmed")
    assert "Confirmation: APT1" in message.body
    assert message.html is not None and "<li>Confirmation: APT1</li>" in message.html
    assert "{{doctorName}}" in message.body


def test_render_message_for_sms_has_no_subject() -> None:
    message = render_message("satisfactionSurvey", "sms", "+15551234567", {"doctorName": "Dr. X"})

    assert message.subject is None
    assert message.html is None
    assert message.body.startswith("Hi {{name}}, how was your visit with Dr. X?")
