"""Shared error hierarchy.

Adapters compose these base types so retry and severity behavior stays
consistent across the code base.
"""

from __future__ import annotations

from typing import Optional


class BotError(Exception):
    """Base error for the bot runtime."""

    recoverable = False
    severity = "error"

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message


class TransientError(BotError):
    """Retryable failure (network, rate limits, temporary platform state)."""

    recoverable = True
    severity = "warning"


class PermanentError(BotError):
    """Non-retryable failure (validation, auth, configuration)."""

    recoverable = False
    severity = "error"


class ConfigError(PermanentError):
    """Raised when the bot configuration is invalid."""
