"""Error types raised by the notification relay."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay errors."""


class InvalidPayloadError(RelayError):
    """Raised when a webhook body is not a valid Alertmanager payload."""


class AuthenticationError(RelayError):
    """Raised when the chat transport rejects the configured credentials."""


class DeliveryError(RelayError):
    """Base class for errors that abort delivery of a batch."""


class ChannelResolutionError(DeliveryError):
    """Raised when a channel name cannot be mapped to a channel ID."""

    def __init__(self, channel_name: str, reason: str) -> None:
        self.channel_name = channel_name
        super().__init__(f"cannot get room ID for channel {channel_name!r}: {reason}")


class MessageSendError(DeliveryError):
    """Raised when a single send attempt fails."""


class RetryExhaustedError(DeliveryError):
    """Raised when every send attempt for a message has failed.

    The last send error is available both as ``last_error`` and as the
    exception's ``__cause__``.
    """

    def __init__(self, attempts: int, last_error: Exception) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"cannot send message: after {attempts} attempts, last error: {last_error}"
        )
