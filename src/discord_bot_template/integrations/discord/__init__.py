"""Discord integration: gateway, REST and interaction handling."""

from .command_registry import sync_commands
from .commands import (
    CommandDescriptor,
    CommandRegistry,
    build_application_commands,
    build_option,
    load_commands,
)
from .config import (
    DiscordBotConfig,
    DiscordBotConfigError,
    DiscordCommandRegistration,
    DiscordPresenceConfig,
)
from .context import InteractionContext
from .cooldowns import CooldownTracker
from .dispatcher import InteractionDispatcher
from .errors import DiscordAPIError, DiscordConfigError, DiscordError
from .events import BotEvent, EventEmitter, PaginationUpdate
from .gateway import DiscordGatewayClient
from .pagination import PageField, PaginationRegistry, Paginator
from .permissions import PermissionCheck, PermissionEvaluator
from .rest import DiscordRestClient
from .service import DiscordBotService, create_discord_bot_service
from .state import BotState

__all__ = [
    "BotEvent",
    "BotState",
    "CommandDescriptor",
    "CommandRegistry",
    "CooldownTracker",
    "DiscordAPIError",
    "DiscordBotConfig",
    "DiscordBotConfigError",
    "DiscordBotService",
    "DiscordCommandRegistration",
    "DiscordConfigError",
    "DiscordError",
    "DiscordGatewayClient",
    "DiscordPresenceConfig",
    "DiscordRestClient",
    "EventEmitter",
    "InteractionContext",
    "InteractionDispatcher",
    "PageField",
    "PaginationRegistry",
    "PaginationUpdate",
    "Paginator",
    "PermissionCheck",
    "PermissionEvaluator",
    "build_application_commands",
    "build_option",
    "create_discord_bot_service",
    "load_commands",
    "sync_commands",
]
