"""Alert message formatter for Rocket.Chat delivery.

This module turns a single Alertmanager alert into a chat message: a
markdown body line, plus one attachment colored by severity that lists the
remaining labels and annotations as fields.
"""

from __future__ import annotations

from collections.abc import Iterable

from alertmanager_rocketchat.relay.models import (
    Alert,
    Attachment,
    AttachmentField,
    FormattedMessage,
    SeverityColorMap,
)

RESOLVED_STATUS = "resolved"

ALERT_NAME_LABEL = "alertname"
SEVERITY_LABEL = "severity"

SUMMARY_ANNOTATION = "summary"
MESSAGE_ANNOTATION = "message"
DESCRIPTION_ANNOTATION = "description"

# Attachment colors
RESOLVED_COLOR = "#00994c"
DEFAULT_COLOR = "#ffffff"

# Consumed into the body/attachment text instead of being shown as fields
HIDDEN_LABELS = frozenset({ALERT_NAME_LABEL, SEVERITY_LABEL})
HIDDEN_ANNOTATIONS = frozenset(
    {DESCRIPTION_ANNOTATION, MESSAGE_ANNOTATION, SUMMARY_ANNOTATION}
)
# Applied to labels and annotations alike
HIDDEN_FIELDS = HIDDEN_LABELS | HIDDEN_ANNOTATIONS


def render_body(alert: Alert) -> str:
    """Render the message body line for an alert."""
    body = (
        f"**{alert.label(ALERT_NAME_LABEL)}**: "
        f"[**{alert.label(SEVERITY_LABEL)}**] "
        f"{alert.annotation(SUMMARY_ANNOTATION)} "
    )
    message = alert.annotation(MESSAGE_ANNOTATION)
    if message:
        body += f"| {message}"
    return body


def render_attachment_text(alert: Alert) -> str:
    """Render the attachment text (the description annotation, verbatim)."""
    return alert.annotation(DESCRIPTION_ANNOTATION)


def resolve_color(alert: Alert, severity_colors: SeverityColorMap) -> str:
    """Get the attachment color for an alert.

    Resolved alerts always use RESOLVED_COLOR. Otherwise the severity label
    is looked up in the configured map, falling back to DEFAULT_COLOR.
    """
    if alert.status == RESOLVED_STATUS:
        return RESOLVED_COLOR
    color = severity_colors.lookup(alert.label(SEVERITY_LABEL))
    return color if color is not None else DEFAULT_COLOR


def format_fields(
    pairs: Iterable[tuple[str, str]], hidden: frozenset[str]
) -> list[AttachmentField]:
    """Render name/value pairs as bold-titled fields, skipping hidden names."""
    return [
        AttachmentField(title=f"**{name}**", value=value, short=True)
        for name, value in pairs
        if name not in hidden
    ]


def format_message(
    alert: Alert,
    receiver: str,
    channel_id: str,
    severity_colors: SeverityColorMap,
) -> FormattedMessage:
    """Format one alert into a chat message bound to a channel.

    Args:
        alert: The alert to format.
        receiver: Receiver name of the batch the alert belongs to. Not
            rendered by the current templates.
        channel_id: Resolved destination channel ID.
        severity_colors: Configured severity color map.

    Returns:
        FormattedMessage carrying exactly one attachment.
    """
    fields = format_fields(alert.sorted_labels(), HIDDEN_FIELDS)
    fields += format_fields(alert.sorted_annotations(), HIDDEN_FIELDS)

    attachment = Attachment(
        color=resolve_color(alert, severity_colors),
        text=render_attachment_text(alert),
        fields=tuple(fields),
    )

    return FormattedMessage(
        channel_id=channel_id,
        text=render_body(alert),
        attachments=(attachment,),
    )
