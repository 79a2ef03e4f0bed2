"""Discord message helpers and formatting utilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

import discord

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .builders import Reply

logger = logging.getLogger(__name__)

_MAX_MESSAGE_LENGTH = 1900


def _clamp_text(text: str, limit: int = _MAX_MESSAGE_LENGTH) -> str:
    """Ensure Discord-compatible message length."""

    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def _format_message(lines: Iterable[str]) -> str:
    """Join message lines and clamp to Discord limits."""

    message = "\n".join(line for line in lines if line is not None)
    return _clamp_text(message)


@dataclass(frozen=True)
class Invocation:
    """A wiki request found in a chat message."""

    title: str
    host: Optional[str] = None
    spoiler: str = ""
    no_embed: bool = False


def parse_invocation(content: str, prefix: str) -> Optional[Invocation]:
    """Recognise ``<prefix><title>`` and ``!!<host> <title>`` messages."""

    content = content.strip()
    host: Optional[str] = None
    if prefix and content.lower().startswith(prefix.lower()):
        title = content[len(prefix):]
    elif content.startswith("!!") and len(content) > 2 and not content[2].isspace():
        host, _, title = content[2:].partition(" ")
    else:
        return None
    title = title.strip()
    spoiler = ""
    if len(title) > 4 and title.startswith("||") and title.endswith("||"):
        spoiler = "||"
        title = title[2:-2].strip()
    no_embed = False
    if len(title) > 2 and title.startswith("<") and title.endswith(">"):
        no_embed = True
        title = title[1:-1].strip()
    return Invocation(title=title, host=host, spoiler=spoiler, no_embed=no_embed)


def _send_kwargs(reply: "Reply") -> Dict[str, Any]:
    return {"view": reply.view} if reply.view is not None else {}


async def send_reply(message: discord.Message, reply: "Reply") -> None:
    """Answer a chat message; send failures are logged, not raised."""

    if reply.empty:
        return
    try:
        if reply.content:
            await message.channel.send(reply.content, **_send_kwargs(reply))
        if reply.reaction:
            await message.add_reaction(reply.reaction)
    except discord.HTTPException:
        logger.exception("Failed to reply to message %s", message.id)


async def respond(interaction: discord.Interaction, reply: "Reply", *, ephemeral: bool = False) -> None:
    """Answer a deferred slash command interaction."""

    content = reply.content
    if reply.reaction:
        content = _clamp_text(f"{reply.reaction} {content}".strip())
    try:
        await interaction.followup.send(content or "…", ephemeral=ephemeral, **_send_kwargs(reply))
    except discord.HTTPException:
        logger.exception("Failed to respond to interaction %s", interaction.id)


__all__ = [
    "Invocation",
    "parse_invocation",
    "respond",
    "send_reply",
]
