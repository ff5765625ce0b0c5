from __future__ import annotations

from typing import Iterable, Optional

from ...core.exceptions import BotError, PermanentError, TransientError


class DiscordError(BotError):
    """Base Discord integration error."""


class DiscordConfigError(DiscordError):
    """Discord integration configuration error."""


class DiscordAPIError(DiscordError):
    """Discord API request error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        user_message: Optional[str] = None,
    ) -> None:
        if user_message is None:
            user_message = "Discord API error. Please try again later."
        super().__init__(message, user_message=user_message)
        self.status_code = status_code
        self.error_code = error_code
        self.retry_after = retry_after


class DiscordTransientError(DiscordAPIError, TransientError):
    """Retryable Discord API error (rate limits, network issues)."""


class DiscordPermanentError(DiscordAPIError, PermanentError):
    """Non-retryable Discord API error (config errors, invalid requests)."""

    recoverable = PermanentError.recoverable
    severity = PermanentError.severity


class CommandNotFoundError(DiscordError):
    """No command descriptor is registered under the requested name."""

    def __init__(self, command_name: str) -> None:
        super().__init__(
            f"No command matching {command_name!r} was found",
            user_message="Sorry, this command is not available or may have been removed.",
        )
        self.command_name = command_name


class CommandRegistrationError(DiscordError):
    """A command descriptor could not be registered (e.g. duplicate name)."""


class CooldownActiveError(DiscordError):
    """The actor invoked the command again before its cooldown expired."""

    def __init__(self, command_name: str, remaining_seconds: float) -> None:
        super().__init__(
            f"Command {command_name!r} on cooldown for {remaining_seconds:.1f}s",
            user_message=(
                f"Please wait **{remaining_seconds:.1f}** more seconds before "
                f"using the `{command_name}` command again."
            ),
        )
        self.command_name = command_name
        self.remaining_seconds = remaining_seconds


class PermissionDeniedError(DiscordError):
    """The actor (or the bot itself) lacks required permissions."""

    def __init__(self, missing: Iterable[str], *, service: bool = False) -> None:
        self.missing = tuple(sorted(missing))
        self.service = service
        if service:
            user_message = "I don't have the required permissions to execute this command."
        else:
            user_message = "You don't have the required permissions to use this command."
        subject = "bot" if service else "actor"
        super().__init__(
            f"{subject} missing permissions: {', '.join(self.missing) or 'unknown'}",
            user_message=user_message,
        )


class CommandHandlerError(DiscordError):
    """A command body raised while executing."""

    def __init__(self, command_name: str, cause: BaseException) -> None:
        super().__init__(
            f"Error executing command {command_name!r}: {cause}",
            user_message="There was an error while executing this command!",
        )
        self.command_name = command_name
        self.__cause__ = cause


class PaginationStateError(DiscordError):
    """Page state could not be recovered from a rendered control row."""


class StatusPageError(DiscordError):
    """The Discord status page could not be read."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(
            message,
            user_message="Failed to fetch Discord service information. Please try again later.",
        )
        self.status_code = status_code
