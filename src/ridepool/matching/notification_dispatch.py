"""Notification delivery to drivers and passengers."""

import asyncio
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError

from ridepool.core.correlation import get_current_correlation_id
from ridepool.core.exceptions import (
    CollaboratorUnavailableError,
    ConfigurationError,
    RidepoolError,
)
from ridepool.utils.async_helpers import call_with_timeout

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from ridepool.matching.collaborators import Notifier

logger = logging.getLogger(__name__)

CHANNEL_DRIVER_NOTIFICATIONS = "ride-requests.driver-notifications"
CHANNEL_PASSENGER_NOTIFICATIONS = "ride-requests.passenger-notifications"

ALL_CHANNELS = [
    CHANNEL_DRIVER_NOTIFICATIONS,
    CHANNEL_PASSENGER_NOTIFICATIONS,
]


class RedisNotifier:
    """Publishes notifications on a Redis pub/sub channel.

    Delivery to the device is the subscriber's job; this side only
    guarantees the message reached Redis.
    """

    def __init__(self, client: "Redis", channel: str):
        if channel not in ALL_CHANNELS:
            raise ConfigurationError(
                f"Channel '{channel}' is not a valid channel. Valid channels: {ALL_CHANNELS}"
            )
        self._client = client
        self.channel = channel

    async def notify(
        self, recipient: str, message: str, extra: dict[str, Any] | None = None
    ) -> None:
        payload = {
            "recipient": recipient,
            "message": message,
            "extra": extra or {},
            "correlation_id": get_current_correlation_id(),
            "timestamp": datetime.now(UTC).isoformat(),
        }
        try:
            await self._client.publish(self.channel, json.dumps(payload, default=str))
        except RedisError as e:
            raise CollaboratorUnavailableError(
                f"Failed to publish notification to {self.channel}",
                details={"recipient": recipient, "error": str(e)},
            ) from e


@dataclass(frozen=True)
class NotificationResult:
    recipient: str
    delivered: bool
    error: str | None = None


async def notify_best_effort(
    notifier: "Notifier",
    recipient: str,
    message: str,
    extra: dict[str, Any] | None = None,
    timeout: float | None = None,
) -> NotificationResult:
    """Send one notification; failures are logged and returned, never raised."""
    try:
        await call_with_timeout(notifier.notify(recipient, message, extra), timeout, "notifier")
    except RidepoolError as e:
        logger.warning(f"Notification to {recipient} failed: {e.message}")
        return NotificationResult(recipient=recipient, delivered=False, error=e.message)
    return NotificationResult(recipient=recipient, delivered=True)


async def fan_out(
    notifier: "Notifier",
    recipients: Iterable[str],
    message: str,
    extra: dict[str, Any] | None = None,
    timeout: float | None = None,
) -> list[NotificationResult]:
    """Notify every recipient concurrently; one failure never blocks the rest."""
    return list(
        await asyncio.gather(
            *(
                notify_best_effort(notifier, recipient, message, extra, timeout)
                for recipient in recipients
            )
        )
    )
