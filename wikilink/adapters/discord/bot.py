"""Discord credentials read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotCredentials:
    """Token and application id used to log in and register slash commands."""

    token: Optional[str]
    application_id: Optional[int]

    @staticmethod
    def from_env() -> "BotCredentials":
        app_id_raw = os.environ.get("DISCORD_APP_ID")
        application_id: Optional[int] = None
        if app_id_raw:
            try:
                application_id = int(app_id_raw)
            except ValueError:
                logger.warning("Invalid DISCORD_APP_ID: %s", app_id_raw)
        return BotCredentials(
            token=os.environ.get("DISCORD_TOKEN") or None,
            application_id=application_id,
        )


__all__ = ["BotCredentials"]
