import random
from contextlib import asynccontextmanager

from fastapi import FastAPI

from intake_services.common import (
    DEFAULT_APP_NAME,
    ServiceSettings,
    build_app,
    configure_logging,
)

from .api.audit import router as audit_router
from .api.health import router as health_router
from .api.notifications import router as notifications_router
from .audit import AuditLogger
from .preferences import InMemoryPreferenceStore
from .providers import DeliveryProvider, SimulatedEmailProvider, SimulatedSmsProvider
from .repository import NotificationLogRepository

SERVICE_NAME = "Notification Service"


def build_providers(settings: ServiceSettings) -> dict[str, DeliveryProvider]:
    """Create the simulated SMS and email providers described by ``settings``."""

    rng = random.Random(settings.notification_random_seed)
    return {
        "sms": SimulatedSmsProvider(
            name=settings.notification_sms_provider,
            from_number=settings.notification_sms_from_number,
            delay_seconds=settings.notification_sms_delay_ms / 1000,
            failure_rate=settings.notification_sms_failure_rate,
            cost=settings.notification_sms_cost,
            rng=rng,
        ),
        "email": SimulatedEmailProvider(
            name=settings.notification_email_provider,
            from_email=settings.notification_email_from,
            from_name=settings.notification_email_from_name,
            delay_seconds=settings.notification_email_delay_ms / 1000,
            failure_rate=settings.notification_email_failure_rate,
            cost=settings.notification_email_cost,
            rng=rng,
        ),
    }


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    """Create the Notification Service FastAPI application."""

    resolved_settings = settings or ServiceSettings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.log_repository = NotificationLogRepository()
        app.state.preference_store = InMemoryPreferenceStore(
            default_timezone=resolved_settings.notification_default_timezone,
        )
        app.state.audit_logger = AuditLogger(enabled=resolved_settings.audit_log_enabled)
        app.state.delivery_providers = build_providers(resolved_settings)
        try:
            yield
        finally:
            app.state.log_repository = None
            app.state.preference_store = None
            app.state.audit_logger = None
            app.state.delivery_providers = None

    app = build_app(resolved_settings, lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(notifications_router)
    app.include_router(audit_router)
    return app


app = create_app()
