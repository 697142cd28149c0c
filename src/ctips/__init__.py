"""CTips: tray client for a WebSocket notification service."""

__version__ = "0.1.0"
