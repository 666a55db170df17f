"""Tests for the alert message formatter."""

import pytest
from fakes import make_alert

from alertmanager_rocketchat.relay.formatter import (
    DEFAULT_COLOR,
    HIDDEN_ANNOTATIONS,
    HIDDEN_LABELS,
    RESOLVED_COLOR,
    format_fields,
    format_message,
    render_attachment_text,
    render_body,
    resolve_color,
)
from alertmanager_rocketchat.relay.models import AttachmentField, SeverityColorMap

HIDDEN_KEYS = {"alertname", "severity", "description", "message", "summary"}


# ============================================================================
# Body and attachment text
# ============================================================================


class TestRenderBody:
    """Tests for the message body line."""

    def test_body_without_message(self) -> None:
        """Body combines alert name, severity and summary."""
        alert = make_alert()
        assert render_body(alert) == "**CPUHigh**: [**warning**] CPU high "

    def test_body_with_message(self) -> None:
        """Message annotation is appended after a separator."""
        alert = make_alert(
            annotations={"summary": "CPU high", "message": "on node-1"},
        )
        assert render_body(alert) == "**CPUHigh**: [**warning**] CPU high | on node-1"

    def test_body_with_missing_values(self) -> None:
        """Absent labels and annotations render as empty strings."""
        alert = make_alert(labels={}, annotations={})
        assert render_body(alert) == "****: [****]  "


class TestRenderAttachmentText:
    """Tests for attachment text."""

    def test_description_verbatim(self) -> None:
        alert = make_alert(annotations={"description": "Load is *very* high\nsee graph"})
        assert render_attachment_text(alert) == "Load is *very* high\nsee graph"

    def test_missing_description(self) -> None:
        assert render_attachment_text(make_alert(annotations={})) == ""


# ============================================================================
# Colors
# ============================================================================


class TestResolveColor:
    """Tests for attachment color resolution."""

    def test_known_severity(self, severity_colors: SeverityColorMap) -> None:
        assert resolve_color(make_alert(), severity_colors) == "#f2e826"

    def test_unknown_severity_uses_default(self, severity_colors: SeverityColorMap) -> None:
        """Unmapped severity falls back to the default color."""
        alert = make_alert(labels={"alertname": "X", "severity": "unknown_sev"})
        assert resolve_color(alert, severity_colors) == DEFAULT_COLOR

    def test_missing_severity_uses_default(self, severity_colors: SeverityColorMap) -> None:
        alert = make_alert(labels={"alertname": "X"})
        assert resolve_color(alert, severity_colors) == DEFAULT_COLOR

    @pytest.mark.parametrize("severity", ["warning", "critical", "unknown_sev", ""])
    def test_resolved_overrides_severity(
        self, severity_colors: SeverityColorMap, severity: str
    ) -> None:
        """Resolved alerts always get the resolved color."""
        alert = make_alert(status="resolved", labels={"alertname": "X", "severity": severity})
        assert resolve_color(alert, severity_colors) == RESOLVED_COLOR

    def test_exact_match_is_case_sensitive(self, severity_colors: SeverityColorMap) -> None:
        alert = make_alert(labels={"severity": "Warning"})
        assert resolve_color(alert, severity_colors) == DEFAULT_COLOR

    def test_case_insensitive_map(self) -> None:
        colors = SeverityColorMap(colors={"Warning": "#f2e826"}, case_insensitive=True)
        alert = make_alert(labels={"severity": "WARNING"})
        assert resolve_color(alert, colors) == "#f2e826"


# ============================================================================
# Fields
# ============================================================================


class TestFormatFields:
    """Tests for attachment field rendering."""

    def test_hidden_names_skipped(self) -> None:
        fields = format_fields(
            [("alertname", "X"), ("instance", "node-1"), ("severity", "warning")],
            HIDDEN_LABELS,
        )
        assert fields == [AttachmentField(title="**instance**", value="node-1", short=True)]

    def test_titles_are_bold(self) -> None:
        fields = format_fields([("runbook_url", "http://runbook")], HIDDEN_ANNOTATIONS)
        assert fields[0].title == "**runbook_url**"
        assert fields[0].value == "http://runbook"


# ============================================================================
# format_message
# ============================================================================


class TestFormatMessage:
    """Tests for full message formatting."""

    def test_end_to_end_warning(self, severity_colors: SeverityColorMap) -> None:
        """Warning alert maps to configured color with all fields consumed."""
        message = format_message(make_alert(), "rocketchat", "room-1", severity_colors)

        assert message.channel_id == "room-1"
        assert "CPUHigh" in message.text
        assert "warning" in message.text
        assert "CPU high" in message.text
        assert len(message.attachments) == 1
        assert message.attachment.color == "#f2e826"
        assert message.attachment.fields == ()

    def test_end_to_end_unknown_severity(self, severity_colors: SeverityColorMap) -> None:
        alert = make_alert(labels={"alertname": "CPUHigh", "severity": "unknown_sev"})
        message = format_message(alert, "rocketchat", "room-1", severity_colors)
        assert message.attachment.color == "#ffffff"

    def test_end_to_end_resolved(self) -> None:
        colors = SeverityColorMap(colors={"warning": "#f2e826", "resolved": "#123456"})
        message = format_message(make_alert(status="resolved"), "rocketchat", "room-1", colors)
        assert message.attachment.color == RESOLVED_COLOR

    def test_fields_sorted_labels_before_annotations(
        self, severity_colors: SeverityColorMap
    ) -> None:
        """Visible fields are key-sorted, labels first."""
        alert = make_alert(
            labels={
                "alertname": "DiskFull",
                "severity": "critical",
                "job": "node",
                "instance": "node-1",
                "env": "prod",
            },
            annotations={
                "summary": "Disk full",
                "runbook_url": "http://runbook",
                "dashboard": "http://grafana",
                "description": "99% used",
            },
        )

        message = format_message(alert, "rocketchat", "room-1", severity_colors)

        titles = [f.title for f in message.attachment.fields]
        assert titles == [
            "**env**",
            "**instance**",
            "**job**",
            "**dashboard**",
            "**runbook_url**",
        ]
        assert message.attachment.text == "99% used"
        assert all(f.short for f in message.attachment.fields)

    def test_hidden_keys_never_visible(self, severity_colors: SeverityColorMap) -> None:
        alert = make_alert(
            labels={k: "l" for k in HIDDEN_KEYS} | {"zone": "a"},
            annotations={k: "a" for k in HIDDEN_KEYS} | {"team": "ops"},
        )

        message = format_message(alert, "rocketchat", "room-1", severity_colors)

        visible = [f.title.strip("*") for f in message.attachment.fields]
        assert visible == ["zone", "team"]

    def test_input_not_mutated(self, severity_colors: SeverityColorMap) -> None:
        alert = make_alert()
        labels_before = dict(alert.labels)
        annotations_before = dict(alert.annotations)

        format_message(alert, "rocketchat", "room-1", severity_colors)

        assert alert.labels == labels_before
        assert alert.annotations == annotations_before
