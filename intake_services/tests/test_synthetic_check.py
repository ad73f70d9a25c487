import argparse
from contextlib import asynccontextmanager
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport

from intake_services.common import ServiceSettings
from intake_services.notification_service.app.main import create_app
from scripts.synthetic.notification_probe import MetricDelta, ProbeError, _check_metrics, run_probe

_PHONE = "+15550000000"


def _args(**overrides: Any) -> argparse.Namespace:
    values: dict[str, Any] = {
        "base_url": "http://test",
        "metrics_path": "/metrics",
        "skip_metrics": True,
        "channel": "sms",
        "recipient": _PHONE,
        "template": "appointmentConfirmation",
        "request_timeout": 5.0,
        "max_send_ms": 5000.0,
        "allow_failure": False,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


def _app() -> FastAPI:
    return create_app(
        ServiceSettings(
            enable_metrics=False,
            enable_tracing=False,
            notification_sms_delay_ms=0,
            notification_sms_failure_rate=0.0,
        )
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield


async def _opt_out(app: FastAPI) -> None:
    await app.state.preference_store.update(_PHONE, {"sms": False})


@pytest.mark.asyncio
async def test_delivered_notification_is_found_in_log() -> None:
    app = _app()

    async with lifespan(app):
        result = await run_probe(_args(), transport=ASGITransport(app=app))

    assert result["status"] == "ok"
    assert result["finalStatus"] == "sent"
    assert result["notificationId"].startswith("notification_")


@pytest.mark.asyncio
async def test_blocked_send_is_reported_without_log_lookup() -> None:
    app = _app()

    async with lifespan(app):
        await _opt_out(app)
        result = await run_probe(_args(allow_failure=True), transport=ASGITransport(app=app))

    assert result["status"] == "ok"
    assert result["finalStatus"] == "blocked"
    assert result["notificationId"] is None


@pytest.mark.asyncio
async def test_blocked_send_fails_unless_failures_are_allowed() -> None:
    app = _app()

    async with lifespan(app):
        await _opt_out(app)
        with pytest.raises(ProbeError, match="not delivered"):
            await run_probe(_args(), transport=ASGITransport(app=app))


def _deltas(**values: float) -> list[MetricDelta]:
    names = (
        "notification_sent_total",
        "notification_failure_total",
        "notification_send_latency_seconds_count",
        "notification_opt_out_total",
    )
    return [
        MetricDelta(name=name, labels={"channel": "sms"}, before=0.0, after=values.get(name, 0.0))
        for name in names
    ]


def test_blocked_metrics_only_require_opt_out_counter() -> None:
    _check_metrics(
        _deltas(notification_opt_out_total=1),
        channel="sms",
        delivered=False,
        blocked=True,
    )

    with pytest.raises(ProbeError, match="notification_opt_out_total"):
        _check_metrics(_deltas(), channel="sms", delivered=False, blocked=True)


def test_delivered_metrics_require_sent_and_latency() -> None:
    _check_metrics(
        _deltas(notification_sent_total=1, notification_send_latency_seconds_count=1),
        channel="sms",
        delivered=True,
        blocked=False,
    )

    with pytest.raises(ProbeError, match="notification_sent_total"):
        _check_metrics(
            _deltas(notification_send_latency_seconds_count=1),
            channel="sms",
            delivered=True,
            blocked=False,
        )
