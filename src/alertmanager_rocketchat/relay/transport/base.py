"""Chat transport protocol used by the dispatcher."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from alertmanager_rocketchat.relay.models import FormattedMessage


class ChatTransport(Protocol):
    """Capabilities the dispatcher needs from a chat platform.

    Implementations raise AuthenticationError, ChannelResolutionError and
    MessageSendError respectively when an operation fails.
    """

    async def login(self) -> dict[str, Any]:
        """Authenticate and return the session identity."""
        ...

    async def resolve_channel_by_name(self, name: str) -> str:
        """Map a channel name to its channel ID."""
        ...

    async def send_message(self, message: FormattedMessage) -> dict[str, Any]:
        """Post a message and return the platform's confirmation."""
        ...

    def new_message(self, channel_id: str, text: str) -> FormattedMessage:
        """Create a message draft bound to a channel."""
        ...
