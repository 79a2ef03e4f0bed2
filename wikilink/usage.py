"""Command usage logging."""
from __future__ import annotations

import functools
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional

import discord

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .wiki import Wiki

usage_logger = logging.getLogger("wikilink.usage")


def log_usage(wiki: "Wiki", guild_id: Optional[str], *notes: str) -> None:
    """Record which wiki feature a guild used."""

    usage_logger.info("%s %s %s", guild_id or "dm", wiki.href, " ".join(notes))


def track_command(func: Callable) -> Callable:
    """Decorator to log Discord command usage and duration."""

    @functools.wraps(func)
    async def wrapper(interaction: discord.Interaction, *args, **kwargs) -> Any:
        command_name = func.__name__
        guild_id = str(interaction.guild_id) if interaction.guild_id else "dm"
        start_time = time.time()
        success = False

        try:
            result = await func(interaction, *args, **kwargs)
            success = True
            return result

        except Exception as e:
            usage_logger.warning(
                "Command %s failed in %s: %s: %s",
                command_name,
                guild_id,
                type(e).__name__,
                e,
            )
            raise

        finally:
            duration_ms = (time.time() - start_time) * 1000
            usage_logger.info(
                "Command %s in %s %s after %.1f ms",
                command_name,
                guild_id,
                "succeeded" if success else "failed",
                duration_ms,
            )

    return wrapper


__all__ = ["log_usage", "track_command", "usage_logger"]
