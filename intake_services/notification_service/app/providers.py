"""Delivery provider implementations used by the service."""

from __future__ import annotations

import asyncio
import random
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Protocol

from .models import NotificationResponse
from .templates import RenderedMessage


class RandomSource(Protocol):
    def random(self) -> float: ...


class DeliveryProvider(Protocol):
    name: str
    channel: str

    async def deliver(self, message: RenderedMessage) -> NotificationResponse: ...


@dataclass(slots=True)
class SentNotification:
    recipient: str
    channel: str
    subject: str | None
    body: str
    message_id: str


def _message_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class SimulatedProvider:
    """Stand-in for a real SMS/email gateway.

    Each call waits ``delay_seconds`` and then fails with probability
    ``failure_rate``, drawing one sample from ``rng``. Successful messages are
    kept in ``sent`` for inspection.
    """

    channel: str = ""
    failure_message: str = "Delivery failed"

    def __init__(
        self,
        *,
        name: str = "mock",
        delay_seconds: float,
        failure_rate: float,
        cost: float,
        rng: RandomSource | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.name = name
        self.delay_seconds = max(delay_seconds, 0.0)
        self.failure_rate = failure_rate
        self.cost = cost
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.sent: List[SentNotification] = []

    async def deliver(self, message: RenderedMessage) -> NotificationResponse:
        if self.delay_seconds:
            await self._sleep(self.delay_seconds)

        if self._rng.random() < self.failure_rate:
            return NotificationResponse.failed(self.failure_message, provider=self.name)

        message_id = _message_id(self.channel)
        self.sent.append(
            SentNotification(
                recipient=message.recipient,
                channel=self.channel,
                subject=message.subject,
                body=message.body,
                message_id=message_id,
            )
        )
        return NotificationResponse(
            success=True,
            status="sent",
            message_id=message_id,
            provider=self.name,
            delivery_time=self._clock(),
            cost=self.cost,
        )


class SimulatedSmsProvider(SimulatedProvider):
    channel = "sms"
    failure_message = "SMS delivery failed"

    def __init__(
        self,
        *,
        name: str = "mock",
        from_number: str | None = None,
        delay_seconds: float = 1.0,
        failure_rate: float = 0.05,
        cost: float = 0.01,
        **kwargs,
    ) -> None:
        super().__init__(name=name, delay_seconds=delay_seconds, failure_rate=failure_rate, cost=cost, **kwargs)
        self.from_number = from_number


class SimulatedEmailProvider(SimulatedProvider):
    channel = "email"
    failure_message = "Email delivery failed"

    def __init__(
        self,
        *,
        name: str = "mock",
        from_email: str | None = None,
        from_name: str | None = None,
        delay_seconds: float = 2.0,
        failure_rate: float = 0.03,
        cost: float = 0.001,
        **kwargs,
    ) -> None:
        super().__init__(name=name, delay_seconds=delay_seconds, failure_rate=failure_rate, cost=cost, **kwargs)
        self.from_email = from_email
        self.from_name = from_name
