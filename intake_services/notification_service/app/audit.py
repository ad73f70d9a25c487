"""Audit trail sink for dispatch attempts."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Protocol

from intake_services.common import AUDIT_LOGGER_NAME

from .models import AuditLogEntry

_AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


class AuditSink(Protocol):
    def log(
        self,
        *,
        user_id: str,
        action: str,
        resource: str,
        details: dict[str, Any],
        success: bool,
        error_message: str | None = None,
    ) -> None: ...


class AuditLogger:
    """Keeps audit entries in memory and mirrors them to the audit logger."""

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self._entries: list[AuditLogEntry] = []

    def log(
        self,
        *,
        user_id: str,
        action: str,
        resource: str,
        details: dict[str, Any],
        success: bool,
        error_message: str | None = None,
    ) -> None:
        if not self.enabled:
            return
        entry = AuditLogEntry(
            user_id=user_id,
            action=action,
            resource=resource,
            details=details,
            success=success,
            error_message=error_message,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._entries.append(entry)
        _AUDIT_LOGGER.info("AUDIT %s", json.dumps(asdict(entry), default=str, sort_keys=True))

    def get_logs(self) -> list[AuditLogEntry]:
        return list(self._entries)

    def get_logs_by_user(self, user_id: str) -> list[AuditLogEntry]:
        return [entry for entry in self._entries if entry.user_id == user_id]

    def get_logs_by_action(self, action: str) -> list[AuditLogEntry]:
        return [entry for entry in self._entries if entry.action == action]

    def clear(self) -> None:
        self._entries.clear()
