"""Chat transport implementations."""

from alertmanager_rocketchat.relay.transport.base import ChatTransport
from alertmanager_rocketchat.relay.transport.rocketchat import RocketChatTransport

__all__ = [
    "ChatTransport",
    "RocketChatTransport",
]
