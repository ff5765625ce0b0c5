from __future__ import annotations

import dataclasses
import importlib
import logging
import pkgutil
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Optional

from ...core.logging_utils import log_event
from .errors import CommandRegistrationError
from .permissions import normalize_permissions

if TYPE_CHECKING:
    from .context import InteractionContext

# Discord application command option types.
SUB_COMMAND = 1
SUB_COMMAND_GROUP = 2
STRING = 3
INTEGER = 4
BOOLEAN = 5
USER = 6
CHANNEL = 7
ROLE = 8
NUMBER = 10

CHAT_INPUT = 1
CATEGORY_PUBLIC = "public"
CATEGORY_PRIVATE = "private"
COMMAND_CATEGORIES = (CATEGORY_PUBLIC, CATEGORY_PRIVATE)
DEFAULT_COMMANDS_PACKAGE = "discord_bot_template.commands"

CommandHandler = Callable[["InteractionContext"], Awaitable[None]]


@dataclass(frozen=True)
class CommandDescriptor:
    name: str
    description: str
    handler: CommandHandler
    options: tuple[dict[str, Any], ...] = ()
    category: str = CATEGORY_PUBLIC
    group: Optional[str] = None
    cooldown_seconds: Optional[float] = None
    required_permissions: frozenset[str] = frozenset()
    bot_required_permissions: frozenset[str] = frozenset()
    autocomplete: Optional[CommandHandler] = None
    notes: Optional[str] = None
    guild_only: bool = False
    listeners: tuple[tuple[str, Callable[..., Any]], ...] = ()

    def __post_init__(self) -> None:
        # Accept names, bitflags or lists of either.
        object.__setattr__(
            self, "required_permissions", normalize_permissions(self.required_permissions)
        )
        object.__setattr__(
            self,
            "bot_required_permissions",
            normalize_permissions(self.bot_required_permissions),
        )
        object.__setattr__(self, "options", tuple(self.options))
        object.__setattr__(self, "listeners", tuple(self.listeners))

    @property
    def is_private(self) -> bool:
        return self.category == CATEGORY_PRIVATE

    def effective_cooldown(self, default_seconds: float) -> float:
        if self.cooldown_seconds is None:
            return default_seconds
        return self.cooldown_seconds

    def to_application_command(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": CHAT_INPUT,
            "name": self.name,
            "description": self.description[:100],
        }
        if self.options:
            payload["options"] = [dict(option) for option in self.options]
        if self.guild_only:
            payload["contexts"] = [0]
        return payload


def build_option(
    name: str,
    description: str,
    *,
    option_type: int = STRING,
    required: bool = False,
    autocomplete: bool = False,
    choices: Optional[list[dict[str, Any]]] = None,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> dict[str, Any]:
    option: dict[str, Any] = {
        "type": option_type,
        "name": name,
        "description": description[:100],
        "required": required,
    }
    if autocomplete:
        option["autocomplete"] = True
    if choices:
        option["choices"] = choices[:25]
    if min_value is not None:
        option["min_value"] = min_value
    if max_value is not None:
        option["max_value"] = max_value
    return option


class CommandRegistry:
    """Command descriptors by name, unique across categories."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandDescriptor] = {}

    def register(self, descriptor: CommandDescriptor) -> CommandDescriptor:
        if descriptor.category not in COMMAND_CATEGORIES:
            raise CommandRegistrationError(
                f"Command {descriptor.name!r} has unknown category {descriptor.category!r}"
            )
        existing = self._commands.get(descriptor.name)
        if existing is not None:
            raise CommandRegistrationError(
                f"Duplicate command name {descriptor.name!r} "
                f"({existing.category}/{existing.group} and "
                f"{descriptor.category}/{descriptor.group})"
            )
        self._commands[descriptor.name] = descriptor
        return descriptor

    def get(self, name: Optional[str]) -> Optional[CommandDescriptor]:
        if not name:
            return None
        return self._commands.get(name)

    def names(self) -> list[str]:
        return sorted(self._commands)

    def by_category(self, category: str) -> list[CommandDescriptor]:
        return [cmd for cmd in self if cmd.category == category]

    def __iter__(self) -> Iterator[CommandDescriptor]:
        return iter(sorted(self._commands.values(), key=lambda cmd: cmd.name))

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands


def build_application_commands(
    registry: CommandRegistry, *, category: Optional[str] = None
) -> list[dict[str, Any]]:
    commands = registry if category is None else registry.by_category(category)
    return [descriptor.to_application_command() for descriptor in commands]


def _iter_command_modules(package_name: str) -> Iterator[tuple[str, str, str]]:
    """Yield ``(module_name, category, group)`` for ``<category>.<group>.<module>``."""
    package = importlib.import_module(package_name)
    for module_info in pkgutil.walk_packages(package.__path__, prefix=package_name + "."):
        if module_info.ispkg:
            continue
        relative = module_info.name[len(package_name) + 1 :].split(".")
        if len(relative) != 3 or relative[0] not in COMMAND_CATEGORIES:
            continue
        yield module_info.name, relative[0], relative[1]


def load_commands(
    registry: CommandRegistry,
    *,
    package_name: str = DEFAULT_COMMANDS_PACKAGE,
    default_cooldown: Optional[float] = None,
    logger: logging.Logger,
) -> int:
    """Import every command module under ``package_name`` into ``registry``.

    Each module exposes ``build_command() -> CommandDescriptor``. Category and
    group come from the module's package path. Modules that fail to import or
    build are logged and skipped. Returns the number of commands loaded.
    """
    loaded = 0
    for module_name, category, group in _iter_command_modules(package_name):
        try:
            module = importlib.import_module(module_name)
            build_command = getattr(module, "build_command", None)
            if not callable(build_command):
                log_event(
                    logger,
                    logging.WARNING,
                    "discord.commands.load.missing_builder",
                    module=module_name,
                )
                continue
            descriptor = build_command()
            if not isinstance(descriptor, CommandDescriptor):
                log_event(
                    logger,
                    logging.WARNING,
                    "discord.commands.load.invalid_descriptor",
                    module=module_name,
                    descriptor_type=type(descriptor).__name__,
                )
                continue
            updates: dict[str, Any] = {"category": category, "group": group}
            if descriptor.cooldown_seconds is None and default_cooldown is not None:
                updates["cooldown_seconds"] = default_cooldown
            registry.register(dataclasses.replace(descriptor, **updates))
        except CommandRegistrationError as exc:
            log_event(
                logger,
                logging.ERROR,
                "discord.commands.load.rejected",
                module=module_name,
                exc=exc,
            )
            continue
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR,
                "discord.commands.load.failed",
                module=module_name,
                exc=exc,
            )
            continue
        loaded += 1
        log_event(
            logger,
            logging.DEBUG,
            "discord.commands.load.registered",
            command=descriptor.name,
            category=category,
            group=group,
        )
    log_event(logger, logging.INFO, "discord.commands.load.done", count=loaded)
    return loaded
