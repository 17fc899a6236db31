"""Notification dispatch service: intake, durable queuing and per-channel delivery."""

__version__ = "0.1.0"
