"""Prometheus metrics for the notification service."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram

# Notification delivery lifecycle -----------------------------------------------------------
NOTIFICATION_SENT_TOTAL: Final = Counter(
    "notification_sent_total",
    "Total number of notifications successfully handed to a provider.",
    labelnames=("channel",),
)

NOTIFICATION_FAILURE_TOTAL: Final = Counter(
    "notification_failure_total",
    "Total number of notifications the provider failed to deliver.",
    labelnames=("channel",),
)

NOTIFICATION_INVALID_TOTAL: Final = Counter(
    "notification_invalid_total",
    "Notification requests rejected by validation.",
)

NOTIFICATION_OPT_OUT_TOTAL: Final = Counter(
    "notification_opt_out_total",
    "Number of notification sends skipped because of recipient preferences.",
    labelnames=("channel",),
)

NOTIFICATION_ERRORS_TOTAL: Final = Counter(
    "notification_errors_total",
    "Unexpected errors raised while dispatching a notification.",
)

NOTIFICATION_SEND_LATENCY_SECONDS: Final = Histogram(
    "notification_send_latency_seconds",
    "Time taken by the provider to accept or reject a notification.",
    labelnames=("channel",),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)

NOTIFICATION_COST_TOTAL: Final = Counter(
    "notification_cost_dollars_total",
    "Accumulated provider cost of delivered notifications.",
    labelnames=("channel",),
)

# Retries ----------------------------------------------------------------------------------
NOTIFICATION_RETRY_TOTAL: Final = Counter(
    "notification_retry_total",
    "Retry attempts of failed notifications by outcome.",
    labelnames=("outcome",),
)

# Preference changes -----------------------------------------------------------------------
NOTIFICATION_PREFERENCE_UPDATES_TOTAL: Final = Counter(
    "notification_preference_updates_total",
    "Total notification preference fields changed.",
    labelnames=("field",),
)
