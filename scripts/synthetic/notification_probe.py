#!/usr/bin/env python3
"""Synthetic probe for the notification service.

Sends one templated notification through ``POST /notifications``, checks that
it shows up in the notification log, measures dispatch latency and
(optionally) verifies that the per-channel Prometheus counters moved.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import re
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

import httpx

CHANNEL_LABEL = "channel"
PREFERENCE_BLOCKED_ERROR = "Notification blocked by user preferences"
TEMPLATES = ("satisfactionSurvey", "appointmentReminder", "appointmentConfirmation")

_METRIC_LINE = re.compile(
    r"^(?P<name>[a-zA-Z_:][a-zA-Z0-9_:]*)(?:\{(?P<labels>[^}]*)\})?\s+(?P<value>[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)$"
)
_LABEL_PAIR = re.compile(r'(?P<key>[a-zA-Z_][a-zA-Z0-9_]*)="(?P<value>(?:[^"\\]|\\.)*)"')


@dataclass(slots=True)
class MetricSample:
    name: str
    labels: Mapping[str, str]
    value: float


@dataclass(slots=True)
class MetricDelta:
    name: str
    labels: Mapping[str, str]
    before: float
    after: float

    @property
    def delta(self) -> float:
        return self.after - self.before


class ProbeError(RuntimeError):
    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = dict(context or {})


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synthetic probe for notification service")
    parser.add_argument(
        "--base-url",
        default=os.getenv("NOTIFICATION_BASE_URL", "http://127.0.0.1:8000"),
        help="Base URL for the notification service (default: %(default)s or NOTIFICATION_BASE_URL)",
    )
    parser.add_argument(
        "--metrics-path",
        default=os.getenv("NOTIFICATION_METRICS_PATH", "/metrics"),
        help="Path to Prometheus metrics endpoint (default: %(default)s or NOTIFICATION_METRICS_PATH)",
    )
    parser.add_argument(
        "--skip-metrics",
        action="store_true",
        help="Skip verification of Prometheus metric deltas",
    )
    parser.add_argument(
        "--channel",
        choices=("sms", "email"),
        default=os.getenv("NOTIFICATION_PROBE_CHANNEL", "email"),
        help="Channel to send on (default: %(default)s or NOTIFICATION_PROBE_CHANNEL)",
    )
    parser.add_argument(
        "--recipient",
        default=os.getenv("NOTIFICATION_PROBE_RECIPIENT"),
        help="Phone number or email address to target; defaults to a synthetic address for the channel",
    )
    parser.add_argument(
        "--template",
        choices=TEMPLATES,
        default="appointmentConfirmation",
        help="Template to render (default: %(default)s)",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=10.0,
        help="HTTP client timeout in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--max-send-ms",
        type=float,
        default=float(os.getenv("NOTIFICATION_PROBE_MAX_SEND_MS", "5000")),
        help="Maximum allowed send latency in milliseconds (default: %(default)s or NOTIFICATION_PROBE_MAX_SEND_MS)",
    )
    parser.add_argument(
        "--allow-failure",
        action="store_true",
        help="Accept a logged provider failure or a preference block (reported as finalStatus=blocked)",
    )
    return parser.parse_args()


def _parse_labels(raw: str | None) -> Dict[str, str]:
    if not raw:
        return {}
    return {
        match.group("key"): match.group("value").replace('\\"', '"').replace("\\\\", "\\")
        for match in _LABEL_PAIR.finditer(raw)
    }


def parse_metrics(text: str) -> List[MetricSample]:
    samples: List[MetricSample] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = _METRIC_LINE.match(stripped)
        if not match:
            continue
        samples.append(
            MetricSample(
                name=match.group("name"),
                labels=_parse_labels(match.group("labels")),
                value=float(match.group("value")),
            )
        )
    return samples


def find_metric_value(
    samples: Sequence[MetricSample],
    name: str,
    *,
    labels: Mapping[str, str],
) -> float:
    for sample in samples:
        if sample.name != name:
            continue
        if all(sample.labels.get(key) == value for key, value in labels.items()):
            return sample.value
    return 0.0


async def fetch_metrics(client: httpx.AsyncClient, path: str) -> List[MetricSample]:
    response = await client.get(path)
    response.raise_for_status()
    return parse_metrics(response.text)


def build_payload(args: argparse.Namespace) -> Dict[str, Any]:
    identifier = uuid.uuid4().hex[:8]
    if args.channel == "sms":
        recipient = {"phone": args.recipient or "+15550000000", "name": "Synthetic Probe"}
    else:
        recipient = {"email": args.recipient or "synthetic@example.com", "name": "Synthetic Probe"}
    return {
        "type": args.channel,
        "recipient": recipient,
        "template": args.template,
        "data": {
            "appointmentId": f"PROBE_{identifier}",
            "doctorName": "Dr. Synthetic",
            "appointmentDate": time.strftime("%Y-%m-%d"),
            "appointmentTime": "09:00",
            "location": "Synthetic Clinic",
            "surveyUrl": f"{args.base_url}/satisfaction?appointmentId=PROBE_{identifier}",
        },
        "priority": "low",
    }


async def _send_notification(client: httpx.AsyncClient, payload: Mapping[str, Any]) -> tuple[Dict[str, Any], float]:
    start = time.monotonic()
    response = await client.post("/notifications", json=payload)
    duration = (time.monotonic() - start) * 1000.0
    if response.status_code != 200:
        raise ProbeError(
            "Notification request was rejected",
            context={"status_code": response.status_code, "body": response.text},
        )
    return response.json(), duration


async def _find_log_entry(client: httpx.AsyncClient, appointment_id: str) -> Dict[str, Any]:
    response = await client.get("/notifications/logs", params={"limit": 50})
    if response.status_code != 200:
        raise ProbeError(
            "Failed to fetch notification log",
            context={"status_code": response.status_code, "body": response.text},
        )
    for item in response.json().get("items", []):
        if item.get("metadata", {}).get("appointmentId") == appointment_id:
            return item
    raise ProbeError("Probe notification missing from log", context={"appointmentId": appointment_id})


def _calc_metric_deltas(
    before: Sequence[MetricSample],
    after: Sequence[MetricSample],
    *,
    name: str,
    labels: Mapping[str, str],
) -> MetricDelta:
    return MetricDelta(
        name=name,
        labels=dict(labels),
        before=find_metric_value(before, name, labels=labels),
        after=find_metric_value(after, name, labels=labels),
    )


def _check_metrics(results: Sequence[MetricDelta], *, channel: str, delivered: bool, blocked: bool) -> None:
    by_name = {result.name: result.delta for result in results}
    if blocked:
        # Blocked sends never reach a provider; only the opt-out counter moves.
        if by_name["notification_opt_out_total"] < 1:
            raise ProbeError("notification_opt_out_total did not increment", context={"channel": channel})
        return
    if by_name["notification_send_latency_seconds_count"] < 1:
        raise ProbeError(
            "notification_send_latency_seconds_count did not increment",
            context={"channel": channel},
        )
    outcome_metric = "notification_sent_total" if delivered else "notification_failure_total"
    if by_name[outcome_metric] < 1:
        raise ProbeError(f"{outcome_metric} did not increment", context={"channel": channel})


async def run_probe(
    args: argparse.Namespace,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Dict[str, Any]:
    timeout = httpx.Timeout(args.request_timeout)
    async with httpx.AsyncClient(base_url=args.base_url, timeout=timeout, transport=transport) as client:
        metrics_before: Sequence[MetricSample] = ()
        if not args.skip_metrics:
            metrics_before = await fetch_metrics(client, args.metrics_path)

        payload = build_payload(args)
        body, send_ms = await _send_notification(client, payload)
        result = body.get("data", {})
        delivered = bool(body.get("success"))
        blocked = result.get("error") == PREFERENCE_BLOCKED_ERROR

        if not delivered and not (args.allow_failure and result.get("status") == "failed"):
            raise ProbeError(
                "Notification was not delivered",
                context={"message": body.get("message"), "error": result.get("error")},
            )
        if send_ms > args.max_send_ms:
            raise ProbeError(
                "Notification send latency exceeded threshold",
                context={"send_ms": round(send_ms, 2), "threshold_ms": args.max_send_ms},
            )

        entry: Dict[str, Any] = {}
        if not blocked:
            entry = await _find_log_entry(client, payload["data"]["appointmentId"])
        if not blocked and entry.get("status") != result.get("status"):
            raise ProbeError(
                "Logged status does not match dispatch result",
                context={"logged": entry.get("status"), "returned": result.get("status")},
            )

        metric_results: List[MetricDelta] = []
        if not args.skip_metrics:
            metrics_after = await fetch_metrics(client, args.metrics_path)
            label_filter = {CHANNEL_LABEL: args.channel}
            for name in (
                "notification_sent_total",
                "notification_failure_total",
                "notification_send_latency_seconds_count",
                "notification_opt_out_total",
            ):
                metric_results.append(_calc_metric_deltas(metrics_before, metrics_after, name=name, labels=label_filter))
            _check_metrics(metric_results, channel=args.channel, delivered=delivered, blocked=blocked)

        return {
            "status": "ok",
            "notificationId": entry.get("id"),
            "messageId": result.get("messageId"),
            "finalStatus": "blocked" if blocked else result.get("status"),
            "cost": result.get("cost"),
            "durationsMs": {"send": round(send_ms, 2)},
            "metrics": [
                {
                    "name": delta.name,
                    "labels": delta.labels,
                    "before": delta.before,
                    "after": delta.after,
                    "delta": delta.delta,
                }
                for delta in metric_results
            ],
        }


async def main_async() -> int:
    args = parse_args()
    try:
        result = await run_probe(args)
    except ProbeError as exc:
        payload = {"status": "error", "message": str(exc), "context": exc.context}
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 1
    except httpx.HTTPError as exc:
        payload = {
            "status": "error",
            "message": str(exc),
            "context": {"exc_type": exc.__class__.__name__},
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 1
    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
