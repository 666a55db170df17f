"""Shared fixtures for relay tests."""

from __future__ import annotations

import pytest

from alertmanager_rocketchat.relay.models import ChannelResolutionPolicy, SeverityColorMap


@pytest.fixture
def severity_colors() -> SeverityColorMap:
    return SeverityColorMap(colors={"warning": "#f2e826", "critical": "#ff0000"})


@pytest.fixture
def channel_policy() -> ChannelResolutionPolicy:
    return ChannelResolutionPolicy(default_channel_name="alerts")
