"""Storage helpers for the notification log."""

from __future__ import annotations

from .models import NotificationLog


class NotificationLogRepository:
    """Append-only, process-local notification log.

    Entries are never removed; only the retry path updates status and retry
    count on an existing entry.
    """

    def __init__(self) -> None:
        self._logs: list[NotificationLog] = []

    async def add(self, log: NotificationLog) -> NotificationLog:
        self._logs.append(log)
        return log

    async def get(self, log_id: str) -> NotificationLog | None:
        return next((log for log in self._logs if log.id == log_id), None)

    async def list_logs(self, *, limit: int, offset: int) -> tuple[list[NotificationLog], int]:
        ordered = sorted(self._logs, key=lambda log: log.sent_at, reverse=True)
        return ordered[offset : offset + limit], len(self._logs)

    async def list_retry_candidates(self, *, max_retries: int) -> list[NotificationLog]:
        return [log for log in self._logs if log.status == "failed" and log.retry_count < max_retries]

    async def mark_retried(self, log: NotificationLog) -> NotificationLog:
        log.status = "sent"
        log.retry_count += 1
        return log

    async def all(self) -> list[NotificationLog]:
        return list(self._logs)

    def __len__(self) -> int:
        return len(self._logs)
