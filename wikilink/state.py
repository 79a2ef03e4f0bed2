"""Process-wide bot state: guild tiers, pauses and registries."""
from __future__ import annotations

import logging
from typing import Dict, Optional, Set

from .config import GuildSettings, Settings
from .models import CallerContext, Tier
from .projects import ProjectRegistry, load_projects
from .trackers import TrackerRegistry
from .wiki import Wiki

logger = logging.getLogger(__name__)


class BotState:
    """Explicit holder for state that lives from process start to shutdown."""

    def __init__(self, settings: Settings, projects: Optional[ProjectRegistry] = None) -> None:
        self.settings = settings
        self.projects = projects if projects is not None else load_projects(settings.projects_path)
        self.trackers = TrackerRegistry(settings.phabricator_sites, settings.jira_sites)
        self.paused_guilds: Set[str] = set()
        self.patreon_guilds: Dict[str, str] = {
            guild_id: guild.prefix or settings.default_prefix
            for guild_id, guild in settings.guilds.items()
            if guild.patreon
        }
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def guild(self, guild_id: Optional[str]) -> GuildSettings:
        if guild_id is None:
            return GuildSettings()
        return self.settings.guilds.get(str(guild_id), GuildSettings())

    def tier(self, guild_id: Optional[str]) -> Tier:
        if guild_id is not None and str(guild_id) in self.patreon_guilds:
            return Tier.PATREON
        return Tier.DEFAULT

    def pause(self, guild_id: str) -> None:
        logger.info("Pausing guild %s", guild_id)
        self.paused_guilds.add(str(guild_id))

    def resume(self, guild_id: str) -> None:
        logger.info("Resuming guild %s", guild_id)
        self.paused_guilds.discard(str(guild_id))

    def is_paused(self, guild_id: Optional[str]) -> bool:
        return guild_id is not None and str(guild_id) in self.paused_guilds

    def prefix(self, guild_id: Optional[str]) -> str:
        return self.guild(guild_id).prefix or self.settings.default_prefix

    def wiki_for_guild(self, guild_id: Optional[str]) -> Wiki:
        """A fresh wiki reference for the guild's default wiki."""

        return self.projects.wiki_for_url(self.guild(guild_id).wiki or self.settings.default_wiki)

    def caller(
        self,
        guild_id: Optional[str],
        *,
        is_message: bool = True,
        lang: str = "en",
        interwiki_command_id: Optional[int] = None,
    ) -> CallerContext:
        guild = self.guild(guild_id)
        return CallerContext(
            guild_id=str(guild_id) if guild_id is not None else None,
            allow_list=guild.allow_list,
            tier=self.tier(guild_id),
            lang=lang,
            is_message=is_message,
            paused=self.is_paused(guild_id),
            prefixes=dict(guild.prefixes),
            interwiki_command_id=interwiki_command_id,
        )

    def emoji(self, name: str) -> str:
        return self.settings.emoji.get(name, "")

    def close(self) -> None:
        self.paused_guilds.clear()
        self.patreon_guilds.clear()
        self._closed = True
        logger.info("Bot state closed")


__all__ = ["BotState"]
