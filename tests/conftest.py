"""Shared fixtures for the wiki link tests."""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest

from wikilink.config import DEFAULT_SETTINGS_PATH, SettingsLoader
from wikilink.models import Missing, PageInfo, PageRecord
from wikilink.projects import ProjectPattern, ProjectRegistry, load_projects


class FakeFetcher:
    """Answers page lookups from a ``{(host, title): PageInfo}`` table."""

    def __init__(self, pages: Optional[Dict[Tuple[str, str], PageInfo]] = None) -> None:
        self.pages = pages or {}
        self.calls: List[dict] = []

    async def fetch_page(self, wiki, title, *, uselang="content", redirects=True, random=False):
        self.calls.append(
            {"wiki": wiki.href, "title": title, "uselang": uselang, "redirects": redirects, "random": random}
        )
        return self.pages.get((wiki.host, title), Missing(PageRecord(title=title, missing=True)))

    async def query(self, wiki, params, *, purpose):
        return None


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.delenv("WIKILINK_DEFAULT_WIKI", raising=False)
    return SettingsLoader(DEFAULT_SETTINGS_PATH).load(force=True)


@pytest.fixture
def projects():
    return load_projects()


@pytest.fixture
def test_projects():
    """Registry for the *.wiki.test family plus a few single-host wikis."""

    return ProjectRegistry(
        [
            ProjectPattern(name="test", regex=r"([a-z]+\.wiki\.test)", article_path="/wiki/", script_path="/w/"),
            ProjectPattern(name="other", regex=r"(other\.wiki)", article_path="/wiki/", script_path="/"),
            ProjectPattern(name="allowed", regex=r"(allowed\.wiki)", article_path="/wiki/", script_path="/"),
        ]
    )


@pytest.fixture
def make_fetcher():
    return FakeFetcher
