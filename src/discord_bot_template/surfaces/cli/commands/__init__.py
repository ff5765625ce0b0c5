from .discord import register_discord_commands
from .utils import raise_exit

__all__ = ["raise_exit", "register_discord_commands"]
