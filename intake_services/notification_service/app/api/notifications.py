"""HTTP routes for notification dispatch, logs and preferences."""

from __future__ import annotations

from datetime import timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_notification_service
from ..models import (
    AppointmentDetails,
    NotificationLog,
    NotificationPreferences,
    NotificationRequest,
    NotificationResponse,
    Recipient,
)
from ..schemas import (
    AppointmentNotificationRequest,
    NotificationLogListResponse,
    NotificationLogResponse,
    NotificationResult,
    NotificationSendRequest,
    NotificationSendResponse,
    NotificationStatsResponse,
    PreferenceResponse,
    PreferenceUpdate,
    RecipientPayload,
    RetryResponse,
    TemplateResponse,
)
from ..services import NotificationService
from ..templates import extract_variables

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _serialize_datetime(value):
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _serialize_result(response: NotificationResponse) -> dict[str, object]:
    return {
        "success": response.success,
        "status": response.status,
        "messageId": response.message_id,
        "provider": response.provider,
        "error": response.error,
        "deliveryTime": _serialize_datetime(response.delivery_time),
        "cost": response.cost,
    }


def _serialize_log(log: NotificationLog) -> dict[str, object]:
    return {
        "id": log.id,
        "type": log.type,
        "recipient": log.recipient,
        "template": log.template,
        "status": log.status,
        "messageId": log.message_id,
        "provider": log.provider,
        "error": log.error,
        "cost": log.cost,
        "sentAt": _serialize_datetime(log.sent_at),
        "deliveredAt": _serialize_datetime(log.delivered_at),
        "retryCount": log.retry_count,
        "metadata": dict(log.metadata),
    }


def _serialize_preferences(preferences: NotificationPreferences) -> dict[str, object]:
    quiet_hours = preferences.quiet_hours
    return {
        "userId": preferences.user_id,
        "email": preferences.email,
        "sms": preferences.sms,
        "appointmentReminders": preferences.appointment_reminders,
        "satisfactionSurveys": preferences.satisfaction_surveys,
        "marketing": preferences.marketing,
        "timezone": preferences.timezone,
        "language": preferences.language,
        "quietHours": (
            {"start": quiet_hours.start, "end": quiet_hours.end, "timezone": quiet_hours.timezone}
            if quiet_hours is not None
            else None
        ),
    }


def _to_recipient(payload: RecipientPayload) -> Recipient:
    return Recipient(phone=payload.phone, email=payload.email, name=payload.name)


def _to_appointment(payload: AppointmentNotificationRequest) -> AppointmentDetails:
    data = payload.appointment_data
    return AppointmentDetails(
        appointment_id=data.appointment_id,
        doctor_name=data.doctor_name,
        appointment_date=data.appointment_date,
        appointment_time=data.appointment_time,
        location=data.location,
    )


def _send_response(response: NotificationResponse, *, success_message: str, failure_message: str) -> NotificationSendResponse:
    return NotificationSendResponse(
        success=response.success,
        message=success_message if response.success else failure_message,
        data=NotificationResult.model_validate(_serialize_result(response)),
    )


@router.post("", response_model=NotificationSendResponse)
async def send_notification(
    payload: NotificationSendRequest,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationSendResponse:
    request = NotificationRequest(
        type=payload.type,
        recipient=_to_recipient(payload.recipient),
        template=payload.template,
        data=dict(payload.data),
        priority=payload.priority,
        scheduled_at=payload.scheduled_at,
        retry_attempts=payload.retry_attempts,
    )
    response = await service.send(request)
    return _send_response(
        response,
        success_message="Notification sent successfully",
        failure_message="Failed to send notification",
    )


@router.post("/satisfaction-survey", response_model=NotificationSendResponse)
async def send_satisfaction_survey(
    payload: AppointmentNotificationRequest,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationSendResponse:
    response = await service.send_satisfaction_survey(_to_recipient(payload.recipient), _to_appointment(payload))
    return _send_response(
        response,
        success_message="Satisfaction survey notification sent",
        failure_message="Failed to send notification",
    )


@router.post("/appointment-reminder", response_model=NotificationSendResponse)
async def send_appointment_reminder(
    payload: AppointmentNotificationRequest,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationSendResponse:
    response = await service.send_appointment_reminder(_to_recipient(payload.recipient), _to_appointment(payload))
    return _send_response(
        response,
        success_message="Appointment reminder sent",
        failure_message="Failed to send reminder",
    )


@router.post("/appointment-confirmation", response_model=NotificationSendResponse)
async def send_appointment_confirmation(
    payload: AppointmentNotificationRequest,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationSendResponse:
    response = await service.send_appointment_confirmation(_to_recipient(payload.recipient), _to_appointment(payload))
    return _send_response(
        response,
        success_message="Appointment confirmation sent",
        failure_message="Failed to send confirmation",
    )


@router.get("/logs", response_model=NotificationLogListResponse)
async def list_logs(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationLogListResponse:
    logs = await service.get_logs(limit=limit, offset=offset)
    items = [NotificationLogResponse.model_validate(_serialize_log(log)) for log in logs]
    return NotificationLogListResponse(items=items, total=len(service.log_repository))


@router.get("/stats", response_model=NotificationStatsResponse)
async def get_stats(
    service: NotificationService = Depends(get_notification_service),
) -> NotificationStatsResponse:
    stats = await service.get_stats()
    return NotificationStatsResponse(
        total=stats.total,
        successful=stats.successful,
        failed=stats.failed,
        pending=stats.pending,
        totalCost=stats.total_cost,
        byType=stats.by_type,
        byTemplate=stats.by_template,
    )


@router.post("/retry", response_model=RetryResponse)
async def retry_failed(
    service: NotificationService = Depends(get_notification_service),
) -> RetryResponse:
    retried = await service.retry_failed_notifications()
    return RetryResponse(message=f"Retried {retried} failed notifications", retryCount=retried)


@router.get("/templates", response_model=list[TemplateResponse])
async def list_templates(
    service: NotificationService = Depends(get_notification_service),
) -> list[TemplateResponse]:
    items: list[TemplateResponse] = []
    for name, template in service.templates.items():
        email = template.email
        email_variables = extract_variables(email.subject + email.text + email.html)
        items.append(
            TemplateResponse.model_validate(
                {
                    "name": name,
                    "sms": template.sms,
                    "email": {"subject": email.subject, "text": email.text, "html": email.html},
                    "variables": {"sms": extract_variables(template.sms), "email": email_variables},
                }
            )
        )
    return items


@router.get("/preferences/{recipient_key}", response_model=PreferenceResponse)
async def get_preferences(
    recipient_key: str,
    service: NotificationService = Depends(get_notification_service),
) -> PreferenceResponse:
    preferences = await service.get_preferences(recipient_key)
    return PreferenceResponse.model_validate(_serialize_preferences(preferences))


@router.put("/preferences/{recipient_key}", response_model=PreferenceResponse)
async def update_preferences(
    recipient_key: str,
    payload: PreferenceUpdate,
    service: NotificationService = Depends(get_notification_service),
) -> PreferenceResponse:
    try:
        updated = await service.update_preferences(recipient_key, payload.changes())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return PreferenceResponse.model_validate(_serialize_preferences(updated))
