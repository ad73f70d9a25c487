"""Dependency helpers for notification service."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Request

from intake_services.common import ServiceSettings

from .audit import AuditLogger
from .preferences import InMemoryPreferenceStore
from .repository import NotificationLogRepository
from .services import NotificationService


def get_service_settings(request: Request) -> ServiceSettings:
    return request.app.state.settings


def get_log_repository(request: Request) -> NotificationLogRepository:
    return request.app.state.log_repository


def get_preference_store(request: Request) -> InMemoryPreferenceStore:
    return request.app.state.preference_store


def get_providers(request: Request) -> dict[str, Any]:
    return getattr(request.app.state, "delivery_providers", None) or {}


def get_audit_logger(request: Request) -> AuditLogger | None:
    return getattr(request.app.state, "audit_logger", None)


def get_notification_service(
    settings: ServiceSettings = Depends(get_service_settings),
    log_repository: NotificationLogRepository = Depends(get_log_repository),
    preference_store: InMemoryPreferenceStore = Depends(get_preference_store),
    providers: dict[str, Any] = Depends(get_providers),
    audit_logger: AuditLogger | None = Depends(get_audit_logger),
) -> NotificationService:
    return NotificationService(
        log_repository,
        preference_store,
        providers,
        audit_logger,
        max_retries=settings.notification_max_retries,
        delivery_timeout_seconds=settings.notification_delivery_timeout_seconds,
        public_base_url=settings.public_base_url,
    )
