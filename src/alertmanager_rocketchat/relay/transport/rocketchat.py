"""Rocket.Chat REST API transport implementation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from alertmanager_rocketchat.relay.errors import (
    AuthenticationError,
    ChannelResolutionError,
    MessageSendError,
)
from alertmanager_rocketchat.relay.models import FormattedMessage

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
DEFAULT_TIMEOUT = 10.0


def _error_detail(response: httpx.Response) -> str:
    """Extract a readable error description from a Rocket.Chat response."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    if isinstance(body, dict):
        detail = body.get("error") or body.get("message")
        if detail:
            return f"HTTP {response.status_code}: {detail}"
    return f"HTTP {response.status_code}"


class RocketChatTransport:
    """Rocket.Chat transport over the REST API.

    Authenticates with username (or email) and password, then sends the
    returned token on every request. The session is kept on the shared
    httpx client, so callers must not interleave login and send from
    concurrent tasks.
    """

    def __init__(
        self,
        base_url: str,
        *,
        username: str,
        email: str,
        password: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Rocket.Chat server URL, e.g. https://chat.example.com.
            username: Account name used to log in.
            email: Account email, used to log in when username is empty.
            password: Account password.
            timeout: HTTP request timeout in seconds.
            client: Optional preconfigured client (used in tests).
        """
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.email = email
        self._password = password
        self.timeout = timeout
        self.user_id: str | None = None

        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def _url(self, method: str) -> str:
        return f"{self.base_url}{API_PREFIX}/{method}"

    async def login(self) -> dict[str, Any]:
        """Log in and store the auth token for subsequent requests.

        Returns:
            The "me" user object returned by the server.

        Raises:
            AuthenticationError: If the server rejects the login.
        """
        payload = {"user": self.username or self.email, "password": self._password}

        try:
            response = await self._client.post(self._url("login"), json=payload)
        except httpx.HTTPError as e:
            raise AuthenticationError(f"rocketchat login request failed: {e}") from e

        if response.status_code != 200:
            raise AuthenticationError(f"rocketchat login failed: {_error_detail(response)}")

        try:
            body = response.json()
        except ValueError as e:
            raise AuthenticationError(f"rocketchat login returned invalid JSON: {e}") from e
        if not isinstance(body, dict):
            raise AuthenticationError("rocketchat login failed: response is not a JSON object")
        data = body.get("data")
        if not isinstance(data, dict):
            data = {}
        token = data.get("authToken")
        user_id = data.get("userId")
        if body.get("status") != "success" or not token or not user_id:
            raise AuthenticationError("rocketchat login failed: no auth token in response")

        self._client.headers["X-Auth-Token"] = token
        self._client.headers["X-User-Id"] = user_id
        self.user_id = user_id

        logger.info("Logged in to Rocket.Chat as %s", payload["user"])
        me = data.get("me")
        return me if isinstance(me, dict) and me else {"_id": user_id}

    async def _room_info(self, method: str, key: str, name: str) -> str | None:
        response = await self._client.get(self._url(method), params={"roomName": name})
        if response.status_code != 200:
            logger.debug("%s for %s failed: %s", method, name, _error_detail(response))
            return None
        try:
            body = response.json()
        except ValueError:
            logger.debug("%s for %s returned a non-JSON body", method, name)
            return None
        room = body.get(key) if isinstance(body, dict) else None
        if not isinstance(room, dict):
            return None
        room_id = room.get("_id")
        return str(room_id) if room_id else None

    async def resolve_channel_by_name(self, name: str) -> str:
        """Resolve a public channel, or a private group, to its room ID.

        Raises:
            ChannelResolutionError: If neither lookup finds the room.
        """
        try:
            room_id = await self._room_info("channels.info", "channel", name)
            if room_id is None:
                room_id = await self._room_info("groups.info", "group", name)
        except httpx.HTTPError as e:
            raise ChannelResolutionError(name, str(e)) from e

        if room_id is None:
            raise ChannelResolutionError(name, "room not found")

        logger.debug("Resolved channel %s to room %s", name, room_id)
        return room_id

    def new_message(self, channel_id: str, text: str) -> FormattedMessage:
        return FormattedMessage(channel_id=channel_id, text=text)

    async def send_message(self, message: FormattedMessage) -> dict[str, Any]:
        """Post a message to its channel.

        Returns:
            The message object stored by the server.

        Raises:
            MessageSendError: On transport errors or a rejected request.
        """
        try:
            response = await self._client.post(
                self._url("chat.postMessage"),
                json=message.to_payload(),
            )
        except httpx.TimeoutException as e:
            raise MessageSendError(f"rocketchat request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise MessageSendError(f"rocketchat request failed: {e}") from e

        if response.status_code != 200:
            raise MessageSendError(f"rocketchat rejected message: {_error_detail(response)}")

        try:
            body = response.json()
        except ValueError as e:
            raise MessageSendError(f"rocketchat returned invalid JSON: {e}") from e
        if not isinstance(body, dict):
            raise MessageSendError("rocketchat returned a response that is not a JSON object")
        if not body.get("success"):
            raise MessageSendError(f"rocketchat rejected message: {_error_detail(response)}")

        sent = body.get("message")
        return sent if isinstance(sent, dict) else {}

    async def check_session(self) -> bool:
        """Return True if the stored session is still accepted by the server."""
        if not self.is_authenticated:
            return False
        try:
            response = await self._client.get(self._url("me"))
        except httpx.HTTPError as e:
            logger.warning("Rocket.Chat session check failed: %s", e)
            return False
        return response.status_code == 200

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RocketChatTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
