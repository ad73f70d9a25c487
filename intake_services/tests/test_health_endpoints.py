from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from intake_services.common import ServiceSettings
from intake_services.notification_service.app.main import create_app


@pytest.mark.asyncio
async def test_health_endpoint_returns_ok() -> None:
    app = create_app(ServiceSettings(enable_metrics=False, enable_tracing=False))

    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "channels": ["email", "sms"]}


@pytest.mark.asyncio
async def test_app_title_defaults_to_service_name() -> None:
    app = create_app(ServiceSettings(enable_metrics=False, enable_tracing=False))

    assert app.title == "Notification Service"


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
