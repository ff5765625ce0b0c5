import copy
import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from ..integrations.discord.config import DiscordBotConfig, DiscordBotConfigError
from .exceptions import ConfigError

logger = logging.getLogger("discord_bot_template.core.config")

CONFIG_FILENAME = "discord-bot.yml"
OVERRIDE_FILENAME = "discord-bot.override.yml"

ENV_ENVIRONMENT = "BOT_ENV"
ENV_LOG_LEVEL = "BOT_LOG_LEVEL"
ENV_COOLDOWN_DEFAULT = "BOT_COOLDOWN_DEFAULT"
ENV_API_ENABLED = "BOT_API_ENABLED"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_CONFIG: Dict[str, Any] = {
    "environment": "production",
    "log": {
        "path": "logs/bot.log",
        "max_bytes": 5 * 1024 * 1024,
        "backup_count": 5,
        "level": "INFO",
        "console": True,
    },
    "app": {
        "cooldown_default": 3,
        "pagination": {
            "items_per_page": 5,
            "timeout_seconds": 300,
            "registry_max_entries": 1000,
            "registry_ttl_seconds": 900,
        },
        "housekeeping_interval_seconds": 60,
    },
    # Outbound calls to third-party APIs (discordstatus.com).
    "api": {"enabled": False, "timeout_seconds": 8},
    "discord_bot": {"enabled": True},
}


@dataclasses.dataclass
class LogConfig:
    path: Optional[Path]
    max_bytes: int
    backup_count: int
    level: int = logging.INFO
    console: bool = True


@dataclasses.dataclass
class PaginationConfig:
    items_per_page: int
    timeout_seconds: float
    registry_max_entries: int
    registry_ttl_seconds: float


@dataclasses.dataclass
class AppConfig:
    cooldown_default: int
    pagination: PaginationConfig
    housekeeping_interval_seconds: float


@dataclasses.dataclass
class ApiConfig:
    enabled: bool = False
    timeout_seconds: float = 8.0


@dataclasses.dataclass
class BotConfig:
    root: Path
    environment: str
    log: LogConfig
    app: AppConfig
    discord: DiscordBotConfig
    raw: Dict[str, Any]
    api: ApiConfig = dataclasses.field(default_factory=ApiConfig)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def load_dotenv_for_root(root: Path) -> None:
    """Best-effort load of ``.env`` from the bot root.

    Values in the file win over inherited process env so a stale shell export
    does not shadow the bot's own token.
    """
    try:
        candidate = root.resolve() / ".env"
        if candidate.exists():
            load_dotenv(dotenv_path=candidate, override=True)
    except OSError as exc:
        logger.debug("Failed to load .env file: %s", exc)


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def _merge_defaults(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge_defaults(current, value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(cfg: Dict[str, Any], env: Mapping[str, str]) -> None:
    environment = env.get(ENV_ENVIRONMENT)
    if environment:
        cfg["environment"] = environment.strip()
    level = env.get(ENV_LOG_LEVEL)
    if level:
        cfg["log"]["level"] = level.strip()
    cooldown = env.get(ENV_COOLDOWN_DEFAULT)
    if cooldown:
        cfg["app"]["cooldown_default"] = cooldown.strip()
    api_enabled = env.get(ENV_API_ENABLED)
    if api_enabled:
        if not isinstance(cfg.get("api"), dict):
            cfg["api"] = {}
        cfg["api"]["enabled"] = api_enabled.strip()


def _parse_log_level(value: Any) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    if not isinstance(resolved, int):
        raise ConfigError(f"log.level must be a logging level name, got {value!r}")
    return resolved


def _parse_int(value: Any, *, key: str, minimum: int = 0) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer") from exc
    if parsed < minimum:
        raise ConfigError(f"{key} must be >= {minimum}")
    return parsed


def _parse_float(value: Any, *, key: str, minimum: float = 0.0) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number") from exc
    if parsed < minimum:
        raise ConfigError(f"{key} must be >= {minimum}")
    return parsed


def _parse_bool(value: Any, *, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean, got {value!r}")


def _parse_api_config(raw: Any) -> ApiConfig:
    api_cfg = raw if isinstance(raw, dict) else {}
    return ApiConfig(
        enabled=_parse_bool(api_cfg.get("enabled", False), key="api.enabled"),
        timeout_seconds=_parse_float(
            api_cfg.get("timeout_seconds", 8), key="api.timeout_seconds", minimum=0.1
        ),
    )


def _parse_log_config(root: Path, raw: Dict[str, Any]) -> LogConfig:
    path_value = raw.get("path")
    path: Optional[Path] = None
    if path_value:
        path = Path(str(path_value))
        if not path.is_absolute():
            path = root / path
    return LogConfig(
        path=path,
        max_bytes=_parse_int(raw.get("max_bytes"), key="log.max_bytes", minimum=1),
        backup_count=_parse_int(raw.get("backup_count"), key="log.backup_count"),
        level=_parse_log_level(raw.get("level", "INFO")),
        console=bool(raw.get("console", True)),
    )


def _parse_app_config(raw: Dict[str, Any]) -> AppConfig:
    pagination_raw = raw.get("pagination")
    pagination_cfg = pagination_raw if isinstance(pagination_raw, dict) else {}
    return AppConfig(
        cooldown_default=_parse_int(
            raw.get("cooldown_default"), key="app.cooldown_default"
        ),
        pagination=PaginationConfig(
            items_per_page=_parse_int(
                pagination_cfg.get("items_per_page"),
                key="app.pagination.items_per_page",
                minimum=1,
            ),
            timeout_seconds=_parse_float(
                pagination_cfg.get("timeout_seconds"),
                key="app.pagination.timeout_seconds",
            ),
            registry_max_entries=_parse_int(
                pagination_cfg.get("registry_max_entries"),
                key="app.pagination.registry_max_entries",
                minimum=1,
            ),
            registry_ttl_seconds=_parse_float(
                pagination_cfg.get("registry_ttl_seconds"),
                key="app.pagination.registry_ttl_seconds",
            ),
        ),
        housekeeping_interval_seconds=_parse_float(
            raw.get("housekeeping_interval_seconds"),
            key="app.housekeeping_interval_seconds",
            minimum=1.0,
        ),
    )


def load_bot_config_data(root: Path) -> Dict[str, Any]:
    data = _merge_defaults(
        copy.deepcopy(DEFAULT_CONFIG), _load_yaml_dict(root / CONFIG_FILENAME)
    )
    return _merge_defaults(data, _load_yaml_dict(root / OVERRIDE_FILENAME))


def load_bot_config(
    root: Path, *, env: Optional[Mapping[str, str]] = None
) -> BotConfig:
    root = root.resolve()
    if env is None:
        load_dotenv_for_root(root)
        env = os.environ
    cfg = load_bot_config_data(root)
    _apply_env_overrides(cfg, env)

    environment = str(cfg.get("environment") or "production").strip().lower()
    discord_raw = cfg.get("discord_bot")
    try:
        discord_cfg = DiscordBotConfig.from_raw(
            root=root,
            raw=discord_raw if isinstance(discord_raw, dict) else {},
            env=env,
        )
    except DiscordBotConfigError as exc:
        raise ConfigError(str(exc)) from exc

    return BotConfig(
        root=root,
        environment=environment,
        log=_parse_log_config(root, cfg["log"]),
        app=_parse_app_config(cfg["app"]),
        discord=discord_cfg,
        raw=cfg,
        api=_parse_api_config(cfg.get("api")),
    )
