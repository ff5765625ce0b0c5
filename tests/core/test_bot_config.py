from __future__ import annotations

import logging
from pathlib import Path

import pytest

from discord_bot_template.core.config import (
    CONFIG_FILENAME,
    OVERRIDE_FILENAME,
    load_bot_config,
)
from discord_bot_template.core.exceptions import ConfigError

ENV = {"DISCORD_TOKEN": "token", "DISCORD_CLIENT_ID": "app-1"}


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_bot_config(tmp_path, env=ENV)

    assert config.environment == "production"
    assert config.is_development is False
    assert config.app.cooldown_default == 3
    assert config.app.pagination.items_per_page == 5
    assert config.app.pagination.timeout_seconds == 300
    assert config.log.level == logging.INFO
    assert config.log.path == tmp_path.resolve() / "logs" / "bot.log"
    assert config.discord.application_id == "app-1"
    assert config.api.enabled is False
    assert config.api.timeout_seconds == 8


def test_yaml_override_file_and_env_layering(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        "environment: test\n"
        "app:\n"
        "  cooldown_default: 10\n"
        "  pagination:\n"
        "    items_per_page: 8\n",
        encoding="utf-8",
    )
    (tmp_path / OVERRIDE_FILENAME).write_text(
        "app:\n  pagination:\n    timeout_seconds: 60\n", encoding="utf-8"
    )

    config = load_bot_config(
        tmp_path,
        env={**ENV, "BOT_ENV": "Development", "BOT_LOG_LEVEL": "debug", "BOT_COOLDOWN_DEFAULT": "7"},
    )

    assert config.environment == "development"
    assert config.is_development is True
    assert config.log.level == logging.DEBUG
    assert config.app.cooldown_default == 7
    assert config.app.pagination.items_per_page == 8
    assert config.app.pagination.timeout_seconds == 60
    assert config.app.pagination.registry_max_entries == 1000


def test_dotenv_file_is_loaded_when_env_not_given(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    # Registered with monkeypatch so the values dotenv writes are undone.
    monkeypatch.setenv("DISCORD_TOKEN", "stale")
    monkeypatch.setenv("DISCORD_CLIENT_ID", "stale")
    monkeypatch.delenv("BOT_ENV", raising=False)
    (tmp_path / ".env").write_text(
        "DISCORD_TOKEN=from-dotenv\nDISCORD_CLIENT_ID=app-dotenv\n", encoding="utf-8"
    )

    config = load_bot_config(tmp_path)

    assert config.discord.bot_token == "from-dotenv"
    assert config.discord.application_id == "app-dotenv"


@pytest.mark.parametrize(
    ("yaml_text", "message"),
    [
        ("app:\n  cooldown_default: soon\n", "app.cooldown_default"),
        ("app:\n  pagination:\n    items_per_page: 0\n", "items_per_page"),
        ("log:\n  level: LOUD\n", "log.level"),
        ("- just\n- a list\n", "mapping"),
        ("app: [unclosed\n", "Invalid YAML"),
        ("api:\n  enabled: sometimes\n", "api.enabled"),
    ],
)
def test_invalid_config_raises_config_error(
    tmp_path: Path, yaml_text: str, message: str
) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(yaml_text, encoding="utf-8")
    with pytest.raises(ConfigError, match=message):
        load_bot_config(tmp_path, env=ENV)


def test_missing_credentials_surface_as_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="DISCORD_TOKEN"):
        load_bot_config(tmp_path, env={})


def test_api_switch_from_yaml_and_env(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        "api:\n  enabled: true\n  timeout_seconds: 3\n", encoding="utf-8"
    )

    from_yaml = load_bot_config(tmp_path, env=ENV)
    from_env = load_bot_config(tmp_path, env={**ENV, "BOT_API_ENABLED": "false"})

    assert from_yaml.api.enabled is True
    assert from_yaml.api.timeout_seconds == 3
    assert from_env.api.enabled is False
