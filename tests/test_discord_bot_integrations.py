"""Smoke tests for Discord bot wiring."""
from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import pytest

from wikilink.adapters.discord.bot import BotCredentials
from wikilink.discord_bot import build_bot
from wikilink.state import BotState


def test_credentials_from_env(monkeypatch):
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("DISCORD_APP_ID", "12345")

    credentials = BotCredentials.from_env()

    assert credentials.token == "token"
    assert credentials.application_id == 12345


def test_invalid_app_id_is_ignored(monkeypatch):
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    monkeypatch.setenv("DISCORD_APP_ID", "not-a-number")

    credentials = BotCredentials.from_env()

    assert credentials.token is None
    assert credentials.application_id is None


@pytest.mark.asyncio
async def test_build_bot_registers_commands(monkeypatch, settings):
    monkeypatch.delenv("DISCORD_APP_ID", raising=False)
    fetcher = Mock()
    fetcher.close = AsyncMock()
    state = BotState(settings)

    bot = build_bot(settings, state=state, fetcher=fetcher)

    names = {command.name for command in bot.tree.get_commands()}
    assert names == {"wiki", "interwiki", "wiki_admin"}
    assert bot.wiki_state is state
    assert bot.resolver.fetcher is fetcher

    await bot.close()

    fetcher.close.assert_awaited_once()
    assert state.closed


@pytest.mark.asyncio
async def test_bot_resolver_shares_state_registries(monkeypatch, settings):
    monkeypatch.delenv("DISCORD_APP_ID", raising=False)
    fetcher = Mock()
    fetcher.close = AsyncMock()
    state = BotState(settings)

    bot = build_bot(settings, state=state, fetcher=fetcher)

    assert bot.resolver.projects is state.projects
    assert bot.resolver.trackers is state.trackers

    await bot.close()
