"""plurcast credential storage and multi-account management."""

__version__ = "0.3.0"
