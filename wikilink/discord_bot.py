"""Discord bot entry point for the wiki link resolver."""
from __future__ import annotations

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from .adapters.discord.bot import BotCredentials
from .adapters.discord.builders import build_reply
from .adapters.discord.handlers import parse_invocation, respond, send_reply
from .config import Settings, get_settings
from .fetcher import PageInfoFetcher
from .models import CallerContext, ResolutionResult
from .resolver import InterwikiResolver
from .state import BotState
from .usage import track_command
from .wiki import Wiki

logger = logging.getLogger(__name__)


def _locale(value: Optional[object]) -> str:
    if value is None:
        return "en"
    return str(value).split("-")[0] or "en"


class WikiLinkBot(commands.Bot):
    """``commands.Bot`` that releases the HTTP session and state on close."""

    def __init__(
        self,
        *args,
        fetcher: PageInfoFetcher,
        state: BotState,
        resolver: InterwikiResolver,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.fetcher = fetcher
        self.wiki_state = state
        self.resolver = resolver

    async def close(self) -> None:
        await self.fetcher.close()
        self.wiki_state.close()
        await super().close()


def build_bot(
    settings: Optional[Settings] = None,
    *,
    state: Optional[BotState] = None,
    fetcher: Optional[PageInfoFetcher] = None,
    intents: Optional[discord.Intents] = None,
) -> commands.Bot:
    settings = settings or get_settings()
    state = state or BotState(settings)
    fetcher = fetcher or PageInfoFetcher(user_agent=settings.user_agent, timeout=settings.request_timeout)
    if intents is None:
        intents = discord.Intents.default()
        intents.message_content = True
    credentials = BotCredentials.from_env()
    resolver = InterwikiResolver(fetcher, state.projects, settings, trackers=state.trackers)
    bot = WikiLinkBot(
        command_prefix=commands.when_mentioned,
        intents=intents,
        application_id=credentials.application_id,
        fetcher=fetcher,
        state=state,
        resolver=resolver,
    )
    interwiki_command_id: Optional[int] = None

    def _interaction_caller(interaction: discord.Interaction) -> CallerContext:
        guild_id = str(interaction.guild_id) if interaction.guild_id else None
        return state.caller(
            guild_id,
            is_message=False,
            lang=_locale(interaction.locale),
            interwiki_command_id=interwiki_command_id,
        )

    async def _resolve(title: str, wiki: Wiki, caller: CallerContext) -> ResolutionResult:
        result = await resolver.resolve(title, wiki, caller)
        logger.debug("Resolved %r on %s as %s", title, wiki.href, result.kind.value)
        return result

    @bot.event
    async def on_ready() -> None:
        nonlocal interwiki_command_id
        logger.info("Wiki link bot connected as %s", bot.user)
        try:
            synced = await bot.tree.sync()
            logger.info("Synced %d commands", len(synced))
        except Exception as exc:  # pragma: no cover - logging only
            logger.exception("Failed to sync commands: %s", exc)
            return
        for command in synced:
            if command.name == "interwiki":
                interwiki_command_id = command.id

    @bot.listen("on_message")
    async def on_message(message: discord.Message) -> None:
        if message.author.bot:
            return
        guild_id = str(message.guild.id) if message.guild else None
        invocation = parse_invocation(message.content, state.prefix(guild_id))
        if invocation is None or (not invocation.title and invocation.host is None):
            return
        if invocation.host is not None:
            wiki = state.projects.wiki_for_host(invocation.host)
        else:
            wiki = state.wiki_for_guild(guild_id)
        lang = _locale(message.guild.preferred_locale) if message.guild else "en"
        result = await _resolve(invocation.title, wiki, state.caller(guild_id, is_message=True, lang=lang))
        reply = build_reply(
            result,
            spoiler=invocation.spoiler,
            no_embed=invocation.no_embed,
            description_length=settings.description_length,
        )
        await send_reply(message, reply)

    @app_commands.command(name="wiki", description="Link a page on this server's wiki")
    @track_command
    @app_commands.describe(
        title="Page title, link, or a command such as 'search <term>'",
        private="Only show the answer to you",
    )
    async def wiki(interaction: discord.Interaction, title: str, private: bool = False) -> None:
        await interaction.response.defer(thinking=True, ephemeral=private)
        guild_id = str(interaction.guild_id) if interaction.guild_id else None
        result = await _resolve(title, state.wiki_for_guild(guild_id), _interaction_caller(interaction))
        reply = build_reply(result, description_length=settings.description_length)
        await respond(interaction, reply, ephemeral=private)

    @app_commands.command(name="interwiki", description="Link a page on any wiki")
    @track_command
    @app_commands.describe(
        wiki="Wiki host, for example en.wikipedia.org or minecraft.wiki",
        title="Page title, link, or a command such as 'search <term>'",
        private="Only show the answer to you",
    )
    async def interwiki(
        interaction: discord.Interaction,
        wiki: str,
        title: str = "",
        private: bool = False,
    ) -> None:
        await interaction.response.defer(thinking=True, ephemeral=private)
        try:
            target = state.projects.wiki_for_host(wiki)
        except ValueError:
            await interaction.followup.send(f"{wiki} is not a valid wiki.", ephemeral=True)
            return
        result = await _resolve(title, target, _interaction_caller(interaction))
        reply = build_reply(result, description_length=settings.description_length)
        await respond(interaction, reply, ephemeral=private)

    wiki_admin = app_commands.Group(
        name="wiki_admin",
        description="Administrative commands for the wiki link bot",
    )

    @wiki_admin.command(name="pause", description="Stop following interwiki links on this server")
    @track_command
    async def admin_pause(interaction: discord.Interaction) -> None:
        if interaction.guild_id is None or not interaction.user.guild_permissions.administrator:
            await interaction.response.send_message(
                "This command requires administrator permissions.",
                ephemeral=True,
            )
            return
        state.pause(str(interaction.guild_id))
        await interaction.response.send_message("Interwiki links are paused.", ephemeral=True)

    @wiki_admin.command(name="resume", description="Follow interwiki links on this server again")
    @track_command
    async def admin_resume(interaction: discord.Interaction) -> None:
        if interaction.guild_id is None or not interaction.user.guild_permissions.administrator:
            await interaction.response.send_message(
                "This command requires administrator permissions.",
                ephemeral=True,
            )
            return
        state.resume(str(interaction.guild_id))
        await interaction.response.send_message("Interwiki links are resumed.", ephemeral=True)

    bot.tree.add_command(wiki)
    bot.tree.add_command(interwiki)
    bot.tree.add_command(wiki_admin)
    return bot


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    credentials = BotCredentials.from_env()
    if not credentials.token:
        raise RuntimeError("DISCORD_TOKEN environment variable must be set")
    bot = build_bot()
    bot.run(credentials.token)


__all__ = ["WikiLinkBot", "build_bot", "main"]
