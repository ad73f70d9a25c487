"""Message templates and ``{{placeholder}}`` substitution."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping

TEMPLATE_VARIABLE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


class UnknownTemplateError(LookupError):
    """Raised when a template name is not part of the catalogue."""


@dataclass(frozen=True, slots=True)
class EmailTemplate:
    subject: str
    text: str
    html: str


@dataclass(frozen=True, slots=True)
class MessageTemplate:
    sms: str
    email: EmailTemplate


@dataclass(frozen=True, slots=True)
class RenderedMessage:
    channel: str
    recipient: str
    body: str
    subject: str | None = None
    html: str | None = None


def extract_variables(template: str) -> list[str]:
    """Return distinct placeholder names in order of first appearance."""

    return list(dict.fromkeys(TEMPLATE_VARIABLE_PATTERN.findall(template)))


def render(template: str, data: Mapping[str, Any]) -> str:
    """Substitute placeholders with values from ``data``.

    Placeholders whose value is missing or falsy are kept verbatim.
    """

    def _replace(match: re.Match[str]) -> str:
        value = data.get(match.group(1))
        if not value:
            return match.group(0)
        return str(value)

    return TEMPLATE_VARIABLE_PATTERN.sub(_replace, template)


_SATISFACTION_SURVEY = MessageTemplate(
    sms=(
        "Hi {{name}}, how was your visit with {{doctorName}}? "
        "Rate your experience: {{surveyUrl}} Reply STOP to unsubscribe."
    ),
    email=EmailTemplate(
        subject="How was your visit with {{doctorName}}?",
        html="""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #3b82f6;">How was your visit?</h2>
  <p>Hi {{name}},</p>
  <p>We hope your appointment with {{doctorName}} went well. Your feedback helps us provide better care.</p>
  <p><strong>Appointment Details:</strong></p>
  <ul>
    <li>Date: {{appointmentDate}}</li>
    <li>Time: {{appointmentTime}}</li>
    <li>Location: {{location}}</li>
  </ul>
  <p><a href="{{surveyUrl}}" style="background-color: #3b82f6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">Rate Your Experience</a></p>
  <p>Thank you for choosing GoTo Optical!</p>
</div>
""",
        text="""How was your visit?

Hi {{name}},

We hope your appointment with {{doctorName}} went well. Your feedback helps us provide better care.

Appointment Details:
- Date: {{appointmentDate}}
- Time: {{appointmentTime}}
- Location: {{location}}

Rate your experience: {{surveyUrl}}

Thank you for choosing GoTo Optical!
""",
    ),
)

_APPOINTMENT_REMINDER = MessageTemplate(
    sms=(
        "Reminder: You have an appointment with {{doctorName}} on {{appointmentDate}} "
        "at {{appointmentTime}}. Location: {{location}}. Reply STOP to unsubscribe."
    ),
    email=EmailTemplate(
        subject="Appointment Reminder - {{appointmentDate}}",
        html="""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #3b82f6;">Appointment Reminder</h2>
  <p>Hi {{name}},</p>
  <p>This is a friendly reminder about your upcoming appointment.</p>
  <p><strong>Appointment Details:</strong></p>
  <ul>
    <li>Date: {{appointmentDate}}</li>
    <li>Time: {{appointmentTime}}</li>
    <li>Doctor: {{doctorName}}</li>
    <li>Location: {{location}}</li>
  </ul>
  <p>Please arrive 15 minutes before your appointment time.</p>
  <p>If you need to reschedule, please call us at (555) 123-4567.</p>
</div>
""",
        text="""Appointment Reminder

Hi {{name}},

This is a friendly reminder about your upcoming appointment.

Appointment Details:
- Date: {{appointmentDate}}
- Time: {{appointmentTime}}
- Doctor: {{doctorName}}
- Location: {{location}}

Please arrive 15 minutes before your appointment time.

If you need to reschedule, please call us at (555) 123-4567.
""",
    ),
)

_APPOINTMENT_CONFIRMATION = MessageTemplate(
    sms=(
        "Your appointment with {{doctorName}} has been confirmed for {{appointmentDate}} "
        "at {{appointmentTime}}. Location: {{location}}. Confirmation: {{appointmentId}}"
    ),
    email=EmailTemplate(
        subject="Appointment Confirmed - {{appointmentDate}}",
        html="""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #3b82f6;">Appointment Confirmed</h2>
  <p>Hi {{name}},</p>
  <p>Your appointment has been successfully scheduled!</p>
  <p><strong>Appointment Details:</strong></p>
  <ul>
    <li>Date: {{appointmentDate}}</li>
    <li>Time: {{appointmentTime}}</li>
    <li>Doctor: {{doctorName}}</li>
    <li>Location: {{location}}</li>
    <li>Confirmation: {{appointmentId}}</li>
  </ul>
  <p>Please arrive 15 minutes before your appointment time.</p>
  <p>If you need to reschedule, please call us at (555) 123-4567.</p>
</div>
""",
        text="""Appointment Confirmed

Hi {{name}},

Your appointment has been successfully scheduled!

Appointment Details:
- Date: {{appointmentDate}}
- Time: {{appointmentTime}}
- Doctor: {{doctorName}}
- Location: {{location}}
- Confirmation: {{appointmentId}}

Please arrive 15 minutes before your appointment time.

If you need to reschedule, please call us at (555) 123-4567.
""",
    ),
)

DEFAULT_TEMPLATES: Mapping[str, MessageTemplate] = {
    "satisfactionSurvey": _SATISFACTION_SURVEY,
    "appointmentReminder": _APPOINTMENT_REMINDER,
    "appointmentConfirmation": _APPOINTMENT_CONFIRMATION,
}


def resolve_template(
    name: str,
    channel: str,
    templates: Mapping[str, MessageTemplate] = DEFAULT_TEMPLATES,
) -> EmailTemplate | str:
    """Return the SMS string or the email triple for a template."""

    template = templates.get(name)
    if template is None:
        raise UnknownTemplateError(name)
    if channel == "sms":
        return template.sms
    return template.email


def render_message(
    name: str,
    channel: str,
    recipient: str,
    data: Mapping[str, Any],
    templates: Mapping[str, MessageTemplate] = DEFAULT_TEMPLATES,
) -> RenderedMessage:
    resolved = resolve_template(name, channel, templates)
    if isinstance(resolved, EmailTemplate):
        return RenderedMessage(
            channel=channel,
            recipient=recipient,
            subject=render(resolved.subject, data),
            body=render(resolved.text, data),
            html=render(resolved.html, data),
        )
    return RenderedMessage(channel=channel, recipient=recipient, body=render(resolved, data))
