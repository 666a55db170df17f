"""Data models for the relay module."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from alertmanager_rocketchat.relay.errors import InvalidPayloadError

CHANNEL_NAME_LABEL = "channel_name"


def _parse_timestamp(value: object) -> datetime | None:
    """Parse an RFC 3339 timestamp, returning None when absent or invalid."""
    if not isinstance(value, str) or not value:
        return None
    # Alertmanager emits "Z" and nanosecond fractions, trim to what fromisoformat accepts
    text = value.replace("Z", "+00:00")
    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        for char in tail:
            if not char.isdigit():
                break
            digits += char
        text = f"{head}.{digits[:6].ljust(6, '0')}{tail[len(digits):]}"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _string_map(value: object) -> dict[str, str]:
    """Coerce a decoded JSON object into a str -> str mapping."""
    if not isinstance(value, Mapping):
        return {}
    return {str(k): "" if v is None else str(v) for k, v in value.items()}


@dataclass(frozen=True)
class Alert:
    """A single firing or resolved alert.

    Attributes:
        status: "firing" or "resolved", compared as an opaque string.
        labels: Alert labels.
        annotations: Alert annotations.
        starts_at: Time the alert started firing.
        ends_at: Time the alert resolved, if known.
        generator_url: Link back to the alert source.
        fingerprint: Alertmanager fingerprint.
    """

    status: str
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    generator_url: str = ""
    fingerprint: str = ""

    def label(self, name: str) -> str:
        """Return a label value, or an empty string when absent."""
        return self.labels.get(name, "")

    def annotation(self, name: str) -> str:
        """Return an annotation value, or an empty string when absent."""
        return self.annotations.get(name, "")

    def sorted_labels(self) -> list[tuple[str, str]]:
        return sorted(self.labels.items())

    def sorted_annotations(self) -> list[tuple[str, str]]:
        return sorted(self.annotations.items())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Alert:
        """Build an Alert from one entry of the webhook "alerts" list."""
        if not isinstance(data, Mapping):
            raise InvalidPayloadError("alert entry must be a JSON object")
        return cls(
            status=str(data.get("status") or ""),
            labels=_string_map(data.get("labels")),
            annotations=_string_map(data.get("annotations")),
            starts_at=_parse_timestamp(data.get("startsAt")),
            ends_at=_parse_timestamp(data.get("endsAt")),
            generator_url=str(data.get("generatorURL") or ""),
            fingerprint=str(data.get("fingerprint") or ""),
        )


@dataclass(frozen=True)
class AlertBatch:
    """One webhook delivery from Alertmanager."""

    receiver: str
    status: str
    alerts: tuple[Alert, ...] = ()
    group_labels: dict[str, str] = field(default_factory=dict)
    common_labels: dict[str, str] = field(default_factory=dict)
    common_annotations: dict[str, str] = field(default_factory=dict)
    external_url: str = ""
    group_key: str = ""

    @classmethod
    def from_dict(cls, data: object) -> AlertBatch:
        """Build a batch from a decoded Alertmanager webhook body.

        Absent keys become empty values.

        Raises:
            InvalidPayloadError: If the body is not an object or its
                "alerts" member is not a list.
        """
        if not isinstance(data, Mapping):
            raise InvalidPayloadError("webhook payload must be a JSON object")

        raw_alerts = data.get("alerts")
        if raw_alerts is None:
            raw_alerts = []
        if not isinstance(raw_alerts, list):
            raise InvalidPayloadError("webhook payload 'alerts' must be a list")

        return cls(
            receiver=str(data.get("receiver") or ""),
            status=str(data.get("status") or ""),
            alerts=tuple(Alert.from_dict(item) for item in raw_alerts),
            group_labels=_string_map(data.get("groupLabels")),
            common_labels=_string_map(data.get("commonLabels")),
            common_annotations=_string_map(data.get("commonAnnotations")),
            external_url=str(data.get("externalURL") or ""),
            group_key=str(data.get("groupKey") or ""),
        )


@dataclass(frozen=True)
class SeverityColorMap:
    """Severity label value to attachment color code.

    When ``case_insensitive`` is set, keys and lookups are lower-cased.
    """

    colors: Mapping[str, str] = field(default_factory=dict)
    case_insensitive: bool = False

    def __post_init__(self) -> None:
        colors = dict(self.colors)
        if self.case_insensitive:
            colors = {k.lower(): v for k, v in colors.items()}
        object.__setattr__(self, "colors", colors)

    def lookup(self, severity: str) -> str | None:
        """Return the color for a severity, or None if unmapped."""
        key = severity.lower() if self.case_insensitive else severity
        return self.colors.get(key)


@dataclass(frozen=True)
class ChannelResolutionPolicy:
    """Picks the destination channel name for a batch."""

    default_channel_name: str

    def __post_init__(self) -> None:
        if not self.default_channel_name:
            raise ValueError("default channel name must not be empty")

    def resolve(self, common_labels: Mapping[str, str]) -> str:
        """Return the "channel_name" common label if set, else the default."""
        override = common_labels.get(CHANNEL_NAME_LABEL, "")
        return override or self.default_channel_name


@dataclass(frozen=True)
class AttachmentField:
    """A title/value pair shown in a message attachment."""

    title: str
    value: str
    short: bool = True


@dataclass(frozen=True)
class Attachment:
    """Styled attachment carried by a chat message."""

    color: str
    text: str = ""
    fields: tuple[AttachmentField, ...] = ()


@dataclass(frozen=True)
class FormattedMessage:
    """A chat message ready for delivery.

    Attributes:
        channel_id: Resolved destination channel identifier.
        text: Message body.
        attachments: Exactly one attachment for alert messages.
    """

    channel_id: str
    text: str
    attachments: tuple[Attachment, ...] = ()

    @property
    def attachment(self) -> Attachment:
        """The single attachment of an alert message."""
        return self.attachments[0]

    def to_payload(self) -> dict[str, object]:
        """Render the Rocket.Chat chat.postMessage request body."""
        return {
            "roomId": self.channel_id,
            "text": self.text,
            "attachments": [
                {
                    "color": attachment.color,
                    "text": attachment.text,
                    "fields": [
                        {"short": f.short, "title": f.title, "value": f.value}
                        for f in attachment.fields
                    ],
                }
                for attachment in self.attachments
            ],
        }
