"""Tests for process-wide bot state."""
from __future__ import annotations

from dataclasses import replace

from wikilink.config import GuildSettings
from wikilink.models import Tier
from wikilink.state import BotState


def _state(settings):
    guilds = {
        "1": GuildSettings(
            wiki="https://minecraft.wiki/",
            prefix="!mc ",
            allow_list=("https://minecraft.wiki/",),
            patreon=True,
            prefixes={"fandom": "!f "},
        ),
        "2": GuildSettings(),
    }
    return BotState(replace(settings, guilds=guilds))


def test_guild_tiers_and_prefixes(settings):
    state = _state(settings)

    assert state.tier("1") is Tier.PATREON
    assert state.tier("2") is Tier.DEFAULT
    assert state.tier(None) is Tier.DEFAULT
    assert state.prefix("1") == "!mc "
    assert state.prefix("2") == settings.default_prefix
    assert state.patreon_guilds == {"1": "!mc "}


def test_wiki_for_guild(settings):
    state = _state(settings)

    assert state.wiki_for_guild("1").to_link("Creeper") == "https://minecraft.wiki/w/Creeper"
    assert state.wiki_for_guild(None).to_link("Foo") == "https://en.wikipedia.org/wiki/Foo"


def test_pause_and_resume(settings):
    state = _state(settings)

    state.pause("2")
    assert state.is_paused("2")
    assert state.caller("2").paused is True

    state.resume("2")
    assert not state.is_paused("2")


def test_caller_context(settings):
    state = _state(settings)

    caller = state.caller("1", is_message=False, lang="de", interwiki_command_id=7)

    assert caller.guild_id == "1"
    assert caller.tier is Tier.PATREON
    assert caller.allow_list == ("https://minecraft.wiki/",)
    assert caller.prefixes == {"fandom": "!f "}
    assert caller.is_message is False
    assert caller.lang == "de"
    assert caller.interwiki_command_id == 7
    assert caller.permits("https://minecraft.wiki/")
    assert not caller.permits("https://en.wikipedia.org/w/")


def test_close_clears_state(settings):
    state = _state(settings)
    state.pause("1")

    state.close()

    assert state.closed
    assert state.paused_guilds == set()
    assert state.patreon_guilds == {}
