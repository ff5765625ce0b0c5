from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import pytest
from typer.testing import CliRunner

from discord_bot_template import __version__
from discord_bot_template.cli import app
from discord_bot_template.core.config import load_bot_config
from discord_bot_template.integrations.discord.service import build_bot_state
from discord_bot_template.surfaces.cli.commands.discord import (
    _sync_application_commands,
    format_command_table,
)

ENV = {"DISCORD_TOKEN": "token", "DISCORD_CLIENT_ID": "app-1"}


@pytest.fixture
def bot_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)
    for name in ("BOT_ENV", "ADMIN_GUILD_ID", "BOT_COOLDOWN_DEFAULT"):
        monkeypatch.delenv(name, raising=False)
    (tmp_path / "discord-bot.yml").write_text("log:\n  path: null\n", encoding="utf-8")
    return tmp_path


def test_version_flag() -> None:
    result = CliRunner().invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == f"discord-bot-template {__version__}"


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("start", "register-commands", "list-commands"):
        assert name in result.stdout


def test_list_commands_prints_loaded_table(bot_root: Path) -> None:
    result = CliRunner().invoke(app, ["list-commands", "--path", str(bot_root)])

    assert result.exit_code == 0
    lines = result.stdout.strip().splitlines()
    assert len(lines) == 6
    assert lines[0].startswith("/discord-status")
    assert any("permissions=Administrator" in line for line in lines)


def test_missing_credentials_exit_with_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "")
    monkeypatch.setenv("DISCORD_CLIENT_ID", "")

    result = CliRunner().invoke(app, ["list-commands", "--path", str(tmp_path)])

    assert result.exit_code == 1


def test_format_command_table_shows_effective_cooldown(bot_root: Path) -> None:
    config = load_bot_config(bot_root, env=ENV)
    state = build_bot_state(config, logger=logging.getLogger("test"))

    lines = format_command_table(state.commands, default_cooldown=3)

    ping_line = next(line for line in lines if line.startswith("/ping"))
    assert "public/general" in ping_line
    assert "cooldown=3s" in ping_line


class _FakeRestClient:
    instances: list["_FakeRestClient"] = []

    def __init__(self, *, bot_token: str) -> None:
        self.bot_token = bot_token
        self.calls: list[Optional[str]] = []
        _FakeRestClient.instances.append(self)

    async def __aenter__(self) -> "_FakeRestClient":
        return self

    async def __aexit__(self, *_exc: Any) -> None:
        return None

    async def bulk_overwrite_application_commands(
        self, *, application_id: str, commands: list[dict[str, Any]], guild_id: Optional[str] = None
    ) -> list[dict[str, Any]]:
        self.calls.append(guild_id)
        return commands


@pytest.mark.anyio
async def test_sync_application_commands_uses_factory(bot_root: Path) -> None:
    config = load_bot_config(bot_root, env={**ENV, "ADMIN_GUILD_ID": "admin"})
    logger = logging.getLogger("test")
    state = build_bot_state(config, logger=logger)
    _FakeRestClient.instances.clear()

    await _sync_application_commands(
        config, state.commands, logger=logger, rest_client_factory=_FakeRestClient
    )

    (client,) = _FakeRestClient.instances
    assert client.bot_token == "token"
    assert client.calls == [None, "admin"]
