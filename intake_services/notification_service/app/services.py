"""Service layer for notification dispatch and retry."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from time import monotonic
from typing import Any, Callable, Mapping
from urllib.parse import urlencode

from opentelemetry import trace

from .audit import AuditSink
from .metrics import (
    NOTIFICATION_COST_TOTAL,
    NOTIFICATION_ERRORS_TOTAL,
    NOTIFICATION_FAILURE_TOTAL,
    NOTIFICATION_INVALID_TOTAL,
    NOTIFICATION_OPT_OUT_TOTAL,
    NOTIFICATION_PREFERENCE_UPDATES_TOTAL,
    NOTIFICATION_RETRY_TOTAL,
    NOTIFICATION_SEND_LATENCY_SECONDS,
    NOTIFICATION_SENT_TOTAL,
)
from .models import (
    NOTIFICATION_TYPES,
    SUCCESS_STATUSES,
    TEMPLATE_NAMES,
    AppointmentDetails,
    NotificationLog,
    NotificationPreferences,
    NotificationRequest,
    NotificationResponse,
    NotificationStats,
    Recipient,
)
from .preferences import InMemoryPreferenceStore, should_send
from .providers import DeliveryProvider
from .repository import NotificationLogRepository
from .templates import DEFAULT_TEMPLATES, MessageTemplate, RenderedMessage, render_message

_LOGGER = logging.getLogger(__name__)
_TRACER = trace.get_tracer(__name__)

AUDIT_ACTION = "SEND_NOTIFICATION"
AUDIT_USER = "system"
PREFERENCE_BLOCKED_ERROR = "Notification blocked by user preferences"
DEFAULT_MAX_RETRIES = 3

_CHANNEL_LABELS = {"sms": "SMS", "email": "Email"}


class NotificationValidationError(ValueError):
    """Raised when a request is missing required fields or uses unknown values."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(f"Invalid notification request: {', '.join(errors)}")


def validate_request(request: NotificationRequest) -> list[str]:
    errors: list[str] = []
    recipient = request.recipient or Recipient()

    if not request.type or request.type not in NOTIFICATION_TYPES:
        errors.append("Invalid notification type")
    if request.type == "sms" and not recipient.phone:
        errors.append("Phone number required for SMS notifications")
    if request.type == "email" and not recipient.email:
        errors.append("Email address required for email notifications")
    if not request.template or request.template not in TEMPLATE_NAMES:
        errors.append("Invalid template")
    if request.data is None:
        errors.append("Notification data required")
    return errors


def _clean(metadata: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in metadata.items() if value is not None}


def _preferred_channel(recipient: Recipient) -> str:
    return "email" if recipient.email else "sms"


class NotificationService:
    """High-level orchestration for notifications.

    Collaborators are injected so each application (or test) owns its log,
    preference store, providers and clock.
    """

    def __init__(
        self,
        log_repository: NotificationLogRepository,
        preference_store: InMemoryPreferenceStore,
        providers: Mapping[str, DeliveryProvider],
        audit_logger: AuditSink | None = None,
        *,
        templates: Mapping[str, MessageTemplate] = DEFAULT_TEMPLATES,
        clock: Callable[[], datetime] | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        delivery_timeout_seconds: float | None = None,
        public_base_url: str = "http://localhost:3000",
    ) -> None:
        self.log_repository = log_repository
        self.preference_store = preference_store
        self.providers = dict(providers)
        self.audit_logger = audit_logger
        self.templates = templates
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.max_retries = max_retries
        self.delivery_timeout_seconds = delivery_timeout_seconds
        self.public_base_url = public_base_url.rstrip("/")

    async def send(self, request: NotificationRequest) -> NotificationResponse:
        with _TRACER.start_as_current_span("notification.send") as span:
            span.set_attribute("notification.channel", str(request.type))
            span.set_attribute("notification.template", str(request.template))
            try:
                return await self._dispatch(request)
            except NotificationValidationError as exc:
                NOTIFICATION_INVALID_TOTAL.inc()
                return self._fail(request, str(exc))
            except Exception as exc:
                _LOGGER.exception("Notification error for template %s", request.template)
                NOTIFICATION_ERRORS_TOTAL.inc()
                return self._fail(request, str(exc) or "Unknown error")

    async def _dispatch(self, request: NotificationRequest) -> NotificationResponse:
        errors = validate_request(request)
        if errors:
            raise NotificationValidationError(errors)

        preferences = await self.preference_store.get(request.recipient.key)
        if not should_send(request, preferences, now=self.clock()):
            NOTIFICATION_OPT_OUT_TOTAL.labels(channel=request.type).inc()
            return NotificationResponse.failed(PREFERENCE_BLOCKED_ERROR)

        address = request.recipient.phone if request.type == "sms" else request.recipient.email
        message = render_message(
            request.template,
            request.type,
            address or "",
            request.data or {},
            self.templates,
        )
        response = await self._deliver(message)

        sent_at = self.clock()
        log = NotificationLog(
            id=f"notification_{int(sent_at.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}",
            type=request.type,
            recipient=address or "",
            template=request.template,
            status=response.status,
            message_id=response.message_id,
            provider=response.provider,
            error=response.error,
            cost=response.cost,
            sent_at=sent_at,
            delivered_at=response.delivery_time,
            retry_count=0,
            metadata=_clean(
                {
                    "appointmentId": request.data.get("appointmentId"),
                    "doctorName": request.data.get("doctorName"),
                    "priority": request.priority,
                }
            ),
        )
        await self.log_repository.add(log)

        self._audit(
            request,
            details={
                "notificationId": log.id,
                "recipient": log.recipient,
                "template": request.template,
                "status": response.status,
                "cost": response.cost,
            },
            success=response.success,
            error_message=response.error,
        )
        return response

    async def _deliver(self, message: RenderedMessage) -> NotificationResponse:
        provider = self.providers.get(message.channel)
        if provider is None:
            raise LookupError(f"No delivery provider configured for {message.channel}")

        start_time = monotonic()
        try:
            if self.delivery_timeout_seconds is None:
                response = await provider.deliver(message)
            else:
                response = await asyncio.wait_for(provider.deliver(message), self.delivery_timeout_seconds)
        except asyncio.TimeoutError:
            label = _CHANNEL_LABELS.get(message.channel, message.channel)
            response = NotificationResponse.failed(f"{label} delivery timed out", provider=provider.name)
        duration = monotonic() - start_time

        NOTIFICATION_SEND_LATENCY_SECONDS.labels(channel=message.channel).observe(duration)
        if response.success:
            NOTIFICATION_SENT_TOTAL.labels(channel=message.channel).inc()
            NOTIFICATION_COST_TOTAL.labels(channel=message.channel).inc(response.cost or 0.0)
        else:
            NOTIFICATION_FAILURE_TOTAL.labels(channel=message.channel).inc()
        return response

    def _fail(self, request: NotificationRequest, error: str) -> NotificationResponse:
        self._audit(request, details={"error": error}, success=False, error_message=error)
        return NotificationResponse.failed(error)

    def _audit(
        self,
        request: NotificationRequest,
        *,
        details: dict[str, Any],
        success: bool,
        error_message: str | None,
    ) -> None:
        if self.audit_logger is None:
            return
        try:
            self.audit_logger.log(
                user_id=AUDIT_USER,
                action=AUDIT_ACTION,
                resource=f"/api/notifications/{request.type}",
                details=details,
                success=success,
                error_message=error_message,
            )
        except Exception:
            _LOGGER.warning("Audit sink rejected notification entry", exc_info=True)

    async def send_satisfaction_survey(
        self,
        recipient: Recipient,
        appointment: AppointmentDetails,
    ) -> NotificationResponse:
        query = urlencode({"appointmentId": appointment.appointment_id})
        survey_url = f"{self.public_base_url}/satisfaction?{query}"
        request = NotificationRequest(
            type=_preferred_channel(recipient),
            recipient=recipient,
            template="satisfactionSurvey",
            data={**appointment.as_template_data(), "surveyUrl": survey_url},
            priority="normal",
        )
        return await self.send(request)

    async def send_appointment_reminder(
        self,
        recipient: Recipient,
        appointment: AppointmentDetails,
    ) -> NotificationResponse:
        request = NotificationRequest(
            type=_preferred_channel(recipient),
            recipient=recipient,
            template="appointmentReminder",
            data=appointment.as_template_data(),
            priority="high",
        )
        return await self.send(request)

    async def send_appointment_confirmation(
        self,
        recipient: Recipient,
        appointment: AppointmentDetails,
    ) -> NotificationResponse:
        request = NotificationRequest(
            type=_preferred_channel(recipient),
            recipient=recipient,
            template="appointmentConfirmation",
            data=appointment.as_template_data(),
            priority="normal",
        )
        return await self.send(request)

    async def retry_failed_notifications(self) -> int:
        """Re-send failed log entries below the retry ceiling.

        Candidates are sent one after another. A successful retry marks the
        original entry ``sent`` and bumps its retry count; the retry itself is
        logged as a new entry by ``send``.
        """

        candidates = await self.log_repository.list_retry_candidates(max_retries=self.max_retries)
        retried = 0
        for log in candidates:
            try:
                address_field = "phone" if log.type == "sms" else "email"
                request = NotificationRequest(
                    type=log.type,
                    recipient=Recipient(**{address_field: log.recipient}),
                    template=log.template,
                    data=dict(log.metadata),
                )
                response = await self.send(request)
                if not response.success:
                    NOTIFICATION_RETRY_TOTAL.labels(outcome="failed").inc()
                    continue
                await self.log_repository.mark_retried(log)
            except Exception:
                _LOGGER.exception("Retry failed for notification %s", log.id)
                NOTIFICATION_RETRY_TOTAL.labels(outcome="error").inc()
                continue
            NOTIFICATION_RETRY_TOTAL.labels(outcome="sent").inc()
            retried += 1
        return retried

    async def get_logs(self, limit: int = 50, offset: int = 0) -> list[NotificationLog]:
        logs, _ = await self.log_repository.list_logs(limit=limit, offset=offset)
        return logs

    async def get_stats(self) -> NotificationStats:
        logs = await self.log_repository.all()
        return NotificationStats(
            total=len(logs),
            successful=sum(1 for log in logs if log.status in SUCCESS_STATUSES),
            failed=sum(1 for log in logs if log.status == "failed"),
            pending=sum(1 for log in logs if log.status == "pending"),
            total_cost=sum(log.cost or 0.0 for log in logs),
            by_type={channel: sum(1 for log in logs if log.type == channel) for channel in NOTIFICATION_TYPES},
            by_template={name: sum(1 for log in logs if log.template == name) for name in TEMPLATE_NAMES},
        )

    async def get_preferences(self, recipient_key: str) -> NotificationPreferences:
        return await self.preference_store.get(recipient_key)

    async def update_preferences(
        self,
        recipient_key: str,
        changes: Mapping[str, Any],
    ) -> NotificationPreferences:
        updated = await self.preference_store.update(recipient_key, changes)
        for field_name in changes:
            NOTIFICATION_PREFERENCE_UPDATES_TOTAL.labels(field=field_name).inc()
        return updated
