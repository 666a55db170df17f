"""Alertmanager to Rocket.Chat webhook relay."""

__version__ = "0.1.0"
