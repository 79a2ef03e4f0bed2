"""Configuration loading utilities for the wiki link bot."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .models import Tier


DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"


class SettingsError(RuntimeError):
    """Raised when the settings file cannot be used."""


@dataclass(frozen=True)
class GuildSettings:
    """Per-guild overrides: wiki, prefix, allow-list and tier."""

    wiki: Optional[str] = None
    prefix: Optional[str] = None
    allow_list: tuple[str, ...] = ()
    patreon: bool = False
    prefixes: Dict[str, str] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "GuildSettings":
        return GuildSettings(
            wiki=data.get("wiki"),
            prefix=data.get("prefix"),
            allow_list=tuple(data.get("allow_list") or ()),
            patreon=bool(data.get("patreon", False)),
            prefixes={str(k): str(v) for k, v in (data.get("prefixes") or {}).items()},
        )


@dataclass(frozen=True)
class Settings:
    """Typed view over the settings YAML file."""

    default_wiki: str
    default_prefix: str
    interwiki_limits: Dict[str, int]
    search_limits: Dict[str, int]
    title_length: int
    description_length: int
    user_agent: str
    request_timeout: float
    emoji: Dict[str, str]
    aliases: Dict[str, str]
    phabricator_sites: List[str]
    jira_sites: List[str]
    guilds: Dict[str, GuildSettings]
    projects_path: Optional[Path] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        limits = data.get("limits", {})
        interwiki = limits.get("interwiki", {})
        search = limits.get("search", {})
        http_cfg = data.get("http", {})
        trackers = data.get("trackers", {})
        guilds_cfg = data.get("guilds") or {}
        projects_path = data.get("projects_path")
        try:
            return Settings(
                default_wiki=os.getenv("WIKILINK_DEFAULT_WIKI", data["default_wiki"]),
                default_prefix=str(data.get("default_prefix", "!wiki ")),
                interwiki_limits={
                    Tier.DEFAULT.value: int(interwiki.get("default", 5)),
                    Tier.PATREON.value: int(interwiki.get("patreon", 10)),
                },
                search_limits={
                    Tier.DEFAULT.value: int(search.get("default", 10)),
                    Tier.PATREON.value: int(search.get("patreon", 25)),
                },
                title_length=int(limits.get("title_length", 250)),
                description_length=int(limits.get("description_length", 1000)),
                user_agent=str(http_cfg.get("user_agent", "wikilink-bot")),
                request_timeout=float(http_cfg.get("timeout", 10.0)),
                emoji={str(k): str(v) for k, v in (data.get("emoji") or {}).items()},
                aliases={str(k).lower(): str(v) for k, v in (data.get("aliases") or {}).items()},
                phabricator_sites=list(trackers.get("phabricator", [])),
                jira_sites=list(trackers.get("jira", [])),
                guilds={str(k): GuildSettings.from_dict(v or {}) for k, v in guilds_cfg.items()},
                projects_path=Path(projects_path) if projects_path else None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SettingsError(f"Invalid settings: {exc}") from exc

    def interwiki_limit(self, tier: Tier) -> int:
        return self.interwiki_limits[tier.value]

    def search_limit(self, tier: Tier) -> int:
        return self.search_limits[tier.value]


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        env_path = os.getenv("WIKILINK_SETTINGS")
        self._path = path or (Path(env_path) if env_path else DEFAULT_SETTINGS_PATH)
        self._cache: Settings | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        if not isinstance(data, dict):
            raise SettingsError(f"{self._path} does not contain a mapping")
        self._cache = Settings.from_dict(data)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


__all__ = ["GuildSettings", "Settings", "SettingsError", "SettingsLoader", "get_settings"]
