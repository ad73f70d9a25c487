import logging

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider

from intake_services.common import AUDIT_LOGGER_NAME, ServiceSettings, build_app, configure_logging
from intake_services.common.tracing import _INSTRUMENTED_APPS, configure_tracing
from intake_services.notification_service.app.audit import AuditLogger


@pytest.mark.usefixtures("caplog")
class TestTracingInstrumentation:
    def test_tracing_sets_provider_once(self, caplog: pytest.LogCaptureFixture) -> None:
        settings = ServiceSettings(
            enable_tracing=True,
            enable_metrics=False,
            app_name="Tracing Test Service",
        )
        configure_logging(settings)
        caplog.set_level(logging.WARNING)
        before = len(_INSTRUMENTED_APPS)
        app = build_app(settings)
        after_first = len(_INSTRUMENTED_APPS)
        assert after_first == before + 1
        configure_tracing(app, settings)
        assert len(_INSTRUMENTED_APPS) == after_first
        assert isinstance(trace.get_tracer_provider(), TracerProvider)

    def test_logging_injects_trace_identifiers(self, caplog: pytest.LogCaptureFixture) -> None:
        settings = ServiceSettings(
            enable_tracing=True,
            enable_metrics=False,
            app_name="Logging Trace Test",
        )
        configure_logging(settings)
        build_app(settings)
        caplog.clear()
        tracer = trace.get_tracer(__name__)
        logger = logging.getLogger("trace-test")
        with caplog.at_level(logging.INFO):
            logger.info("outside span")
            outside_record = next(record for record in caplog.records if record.message == "outside span")
            assert getattr(outside_record, "trace_id", "-") == "-"
            assert getattr(outside_record, "span_id", "-") == "-"
            with tracer.start_as_current_span("span"):
                logger.info("inside span")
        inside_record = next(record for record in caplog.records if record.message == "inside span")
        trace_id = getattr(inside_record, "trace_id", "-")
        span_id = getattr(inside_record, "span_id", "-")
        assert trace_id != "-"
        assert span_id != "-"
        assert len(trace_id) == 32
        assert len(span_id) == 16


class TestAuditLogging:
    def test_audit_logger_level_follows_switch(self) -> None:
        configure_logging(ServiceSettings(audit_log_enabled=True, log_level="WARNING"))
        assert logging.getLogger(AUDIT_LOGGER_NAME).level == logging.INFO

        configure_logging(ServiceSettings(audit_log_enabled=False))
        assert logging.getLogger(AUDIT_LOGGER_NAME).level == logging.WARNING

    def test_audit_entries_are_written_to_the_audit_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        audit = AuditLogger()

        with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER_NAME):
            audit.log(
                user_id="system",
                action="SEND_NOTIFICATION",
                resource="/api/notifications/sms",
                details={"template": "appointmentReminder"},
                success=True,
            )

        records = [record for record in caplog.records if record.name == AUDIT_LOGGER_NAME]
        assert len(records) == 1
        assert '"action": "SEND_NOTIFICATION"' in records[0].getMessage()

    def test_audit_queries_and_clear(self) -> None:
        audit = AuditLogger()
        audit.log(user_id="system", action="SEND_NOTIFICATION", resource="/api/notifications/sms", details={}, success=True)
        audit.log(
            user_id="dr-goldstick",
            action="UPDATE_PREFERENCES",
            resource="/api/notifications/preferences",
            details={},
            success=False,
            error_message="denied",
        )

        assert [entry.user_id for entry in audit.get_logs()] == ["system", "dr-goldstick"]
        assert len(audit.get_logs_by_user("system")) == 1
        assert audit.get_logs_by_action("UPDATE_PREFERENCES")[0].error_message == "denied"
        assert audit.get_logs()[0].timestamp.endswith("+00:00")
        audit.clear()
        assert audit.get_logs() == []

    def test_disabled_audit_logger_keeps_nothing(self) -> None:
        audit = AuditLogger(enabled=False)

        audit.log(user_id="system", action="SEND_NOTIFICATION", resource="/api/notifications/sms", details={}, success=True)

        assert audit.get_logs() == []
