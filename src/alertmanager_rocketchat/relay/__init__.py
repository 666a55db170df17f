"""Relay layer - alert formatting and Rocket.Chat delivery."""

from alertmanager_rocketchat.relay.dispatcher import NotificationDispatcher
from alertmanager_rocketchat.relay.errors import (
    AuthenticationError,
    ChannelResolutionError,
    DeliveryError,
    InvalidPayloadError,
    MessageSendError,
    RelayError,
    RetryExhaustedError,
)
from alertmanager_rocketchat.relay.formatter import format_message
from alertmanager_rocketchat.relay.models import (
    Alert,
    AlertBatch,
    Attachment,
    AttachmentField,
    ChannelResolutionPolicy,
    FormattedMessage,
    SeverityColorMap,
)
from alertmanager_rocketchat.relay.transport import ChatTransport, RocketChatTransport

__all__ = [
    "Alert",
    "AlertBatch",
    "Attachment",
    "AttachmentField",
    "AuthenticationError",
    "ChannelResolutionError",
    "ChannelResolutionPolicy",
    "ChatTransport",
    "DeliveryError",
    "FormattedMessage",
    "InvalidPayloadError",
    "MessageSendError",
    "NotificationDispatcher",
    "RelayError",
    "RetryExhaustedError",
    "RocketChatTransport",
    "SeverityColorMap",
    "format_message",
]
