"""Notification dispatcher with per-message retry and re-authentication."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from prometheus_client import Counter

from alertmanager_rocketchat.relay.errors import (
    ChannelResolutionError,
    RetryExhaustedError,
)
from alertmanager_rocketchat.relay.formatter import format_message

if TYPE_CHECKING:
    from alertmanager_rocketchat.relay.models import (
        Alert,
        AlertBatch,
        ChannelResolutionPolicy,
        FormattedMessage,
        SeverityColorMap,
    )
    from alertmanager_rocketchat.relay.transport.base import ChatTransport

logger = logging.getLogger(__name__)

# Retry defaults: 3 retries after the first attempt, 3 seconds apart
DEFAULT_RETRIES = 3
DEFAULT_RETRY_INTERVAL = 3.0


# Prometheus metrics
MESSAGES_SENT = Counter(
    "rocketchat_webhook_messages_sent_total",
    "Number of alert messages delivered to Rocket.Chat",
)

SEND_RETRIES = Counter(
    "rocketchat_webhook_send_retries_total",
    "Number of failed send attempts that were retried",
)

REAUTH_FAILURES = Counter(
    "rocketchat_webhook_reauth_failures_total",
    "Number of failed re-authentication attempts during retries",
)

BATCHES_FAILED = Counter(
    "rocketchat_webhook_batches_failed_total",
    "Number of alert batches that could not be fully delivered",
    ["stage"],
)


class NotificationDispatcher:
    """Delivers alert batches to a chat channel.

    Each batch resolves its channel once, then formats and sends its alerts
    strictly in order. Every message gets its own retry budget; a failed
    send is followed by a re-login before the next attempt. Calls to
    send_notification are serialized so that login and send sequences
    never interleave on the shared transport.
    """

    def __init__(
        self,
        transport: ChatTransport,
        channel_policy: ChannelResolutionPolicy,
        severity_colors: SeverityColorMap,
        *,
        retries: int = DEFAULT_RETRIES,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            transport: Chat transport to deliver through.
            channel_policy: Default channel and per-batch override rule.
            severity_colors: Severity to attachment color mapping.
            retries: Retries after the first failed send of a message.
            retry_interval: Seconds to wait between attempts.
        """
        if retries < 0:
            raise ValueError("retries must not be negative")

        self.transport = transport
        self.channel_policy = channel_policy
        self.severity_colors = severity_colors
        self.retries = retries
        self.retry_interval = retry_interval

        self._lock = asyncio.Lock()

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    async def _reauthenticate(self) -> None:
        """Log in again, absorbing failures."""
        try:
            await self.transport.login()
        except Exception as e:
            REAUTH_FAILURES.inc()
            logger.warning("Cannot re-authenticate in Rocket.Chat: %s", e)

    async def send_with_retries(self, message: FormattedMessage) -> None:
        """Send one message, retrying with re-authentication on failure.

        Args:
            message: Message to deliver.

        Raises:
            RetryExhaustedError: If all attempts failed. Wraps the last
                send error.
            asyncio.CancelledError: If the calling task is cancelled while
                waiting between attempts.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.transport.send_message(message)
            except Exception as e:
                logger.warning(
                    "Send attempt %d/%d failed: %s", attempt, self.max_attempts, e
                )
                # The session may have expired
                await self._reauthenticate()
                if attempt == self.max_attempts:
                    raise RetryExhaustedError(self.max_attempts, e) from e
            else:
                MESSAGES_SENT.inc()
                return

            SEND_RETRIES.inc()
            await asyncio.sleep(self.retry_interval)

    def _build_message(self, alert: Alert, receiver: str, channel_id: str) -> FormattedMessage:
        formatted = format_message(alert, receiver, channel_id, self.severity_colors)
        draft = self.transport.new_message(channel_id, formatted.text)
        return replace(draft, attachments=formatted.attachments)

    async def send_notification(self, batch: AlertBatch) -> None:
        """Deliver every alert of a batch to its channel.

        Alerts sent before a failure stay sent; the remaining ones are not
        attempted.

        Args:
            batch: Decoded Alertmanager webhook payload.

        Raises:
            ChannelResolutionError: If the channel could not be resolved.
            RetryExhaustedError: If a message could not be delivered.
        """
        async with self._lock:
            channel_name = self.channel_policy.resolve(batch.common_labels)

            try:
                channel_id = await self.transport.resolve_channel_by_name(channel_name)
            except ChannelResolutionError:
                BATCHES_FAILED.labels(stage="resolve").inc()
                raise
            except Exception as e:
                BATCHES_FAILED.labels(stage="resolve").inc()
                raise ChannelResolutionError(channel_name, str(e)) from e

            logger.info(
                "Alerts: Status=%s, GroupLabels=%s, CommonLabels=%s",
                batch.status,
                batch.group_labels,
                batch.common_labels,
            )

            for position, alert in enumerate(batch.alerts, start=1):
                message = self._build_message(alert, batch.receiver, channel_id)
                try:
                    await self.send_with_retries(message)
                except RetryExhaustedError:
                    BATCHES_FAILED.labels(stage="send").inc()
                    logger.error(
                        "Giving up on batch for %s after alert %d/%d",
                        channel_name,
                        position,
                        len(batch.alerts),
                    )
                    raise

            logger.info(
                "Delivered %d alert(s) to channel %s", len(batch.alerts), channel_name
            )
