"""Automated TeleBox deployment for Debian / Ubuntu hosts."""

__version__ = "1.0.0"
