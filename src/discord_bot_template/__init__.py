"""Discord bot template: command dispatch, permissions, cooldowns and pagination."""

__version__ = "0.1.0"
