"""Discord message builders.

Pure construction helpers turning a :class:`ResolutionResult` into message
content, a link button view and an optional reaction. Keeping these apart
from the send helpers makes them easy to unit test.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import discord

from ...models import PageRecord, ResolutionResult, ResultKind, SearchResults
from .handlers import _clamp_text, _format_message

_HTML_TAG = re.compile(r"<[^>]+>")

DEFAULT_DESCRIPTION_LENGTH = 1000


@dataclass
class Reply:
    """What to send back for one resolution."""

    content: str
    view: Optional[discord.ui.View] = None
    reaction: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.content and self.reaction is None


def _escape(text: str) -> str:
    return discord.utils.escape_markdown(text)


def _wrap_link(link: str, spoiler: str = "", *, embed: bool = False) -> str:
    return spoiler + (link if embed else f"<{link}>") + spoiler


def build_link_view(link: str, *, main_page: bool = False) -> discord.ui.View:
    """A view holding a single link button."""

    view = discord.ui.View()
    view.add_item(
        discord.ui.Button(
            style=discord.ButtonStyle.link,
            label="Open Wiki Main Page" if main_page else "Open Wiki Page",
            url=link,
        )
    )
    return view


def _category_line(page: PageRecord) -> Optional[str]:
    info = page.categoryinfo or {}
    counts = [
        f"{label}: {info[key]}"
        for key, label in (("pages", "Pages"), ("subcats", "Subcategories"), ("files", "Files"))
        if info.get(key)
    ]
    return ", ".join(counts) if counts else None


def build_page_lines(
    result: ResolutionResult,
    *,
    description_length: int = DEFAULT_DESCRIPTION_LENGTH,
) -> List[str]:
    """Title, display title, summary and category counts of a resolved page."""

    page = result.page
    title = page.title if page is not None else result.title
    lines = [f"**{_escape(title)}**"]
    if result.redirect_source:
        lines.append(f"_(redirected from {_escape(result.redirect_source)})_")
    if page is None:
        return lines
    if page.displaytitle:
        display = _HTML_TAG.sub("", page.displaytitle)
        if display and display != page.title:
            lines.append(f"_{_escape(display)}_")
    summary = page.extract or page.description
    if summary:
        lines.append(_clamp_text(_escape(summary.strip()), description_length))
    categories = _category_line(page)
    if categories:
        lines.append(categories)
    return lines


_STATISTICS = (
    ("pages", "Pages"),
    ("articles", "Articles"),
    ("edits", "Edits"),
    ("images", "Files"),
    ("users", "Users"),
    ("activeusers", "Active users"),
    ("admins", "Admins"),
)


def build_overview_lines(details: Dict[str, Any]) -> List[str]:
    statistics = details.get("statistics") or {}
    sitename = details.get("sitename") or "Wiki overview"
    lines = [f"**{_escape(sitename)}**"]
    lines.extend(
        f"{label}: {statistics[key]:,}"
        for key, label in _STATISTICS
        if isinstance(statistics.get(key), int)
    )
    return lines


def build_search_lines(search: SearchResults, *, limit: Optional[int] = None) -> List[str]:
    """Bullet list of search entries with section and redirect annotations."""

    header = f"Search results for **{_escape(search.term)}**"
    if search.total_hits is not None:
        header += f" ({search.total_hits} total)"
    lines = [header]
    entries = search.entries if limit is None else search.entries[:limit]
    if not entries:
        lines.append("No results.")
    for entry in entries:
        line = f"• {'**' + _escape(entry.title) + '**' if entry.exact else _escape(entry.title)}"
        if entry.section:
            line += f" § {_escape(entry.section)}"
        if entry.redirect:
            line += f" (redirected from {_escape(entry.redirect)})"
        if entry.url:
            line += f" <{entry.url}>"
        lines.append(line)
    if search.truncated:
        lines.append("_The search term was shortened._")
    return lines


def build_reply(
    result: ResolutionResult,
    *,
    spoiler: str = "",
    no_embed: bool = False,
    description_length: int = DEFAULT_DESCRIPTION_LENGTH,
) -> Reply:
    """Format a resolution result as Discord message content."""

    if result.suppressed:
        return Reply(content="")

    lines: List[str] = []
    view: Optional[discord.ui.View] = None
    link = result.link
    kind = result.kind

    if kind is ResultKind.UNRESOLVED_INTERWIKI_FALLBACK:
        if link:
            lines.append(_wrap_link(link, spoiler, embed=not no_embed))
        if result.limit_reached:
            lines.append("_Stopped following interwiki links here._")
    elif kind is ResultKind.NOT_PERMITTED:
        lines.append("That wiki is not on this server's list of allowed wikis.")
        if link:
            lines.append("You can still open it through the current wiki:")
            lines.append(_wrap_link(link, spoiler))
    elif kind is ResultKind.SERVER_ERROR:
        lines.append("The wiki could not be reached right now.")
        if link:
            lines.append(_wrap_link(link, spoiler))
    elif kind is ResultKind.NOT_FOUND:
        if result.details.get("no_wiki"):
            lines.append("This wiki does not exist.")
        else:
            if link:
                lines.append(_wrap_link(link, spoiler))
            lines.append(f"**{_escape(result.title)}** does not exist.")
    elif result.special == "issue":
        lines.append(_wrap_link(link or "", spoiler, embed=not no_embed))
    elif result.search is not None:
        lines.append(_wrap_link(result.search.link, spoiler))
        lines.extend(build_search_lines(result.search))
    else:
        if link:
            lines.append(_wrap_link(link, spoiler))
        if result.special == "overview":
            lines.extend(build_overview_lines(result.details))
        elif result.special == "diff":
            diff = result.details.get("diff")
            lines.append(f"**Diff** {_escape(str(diff))}" if diff else "**Diff**")
        else:
            lines.extend(build_page_lines(result, description_length=description_length))

    if link and not no_embed and kind in {
        ResultKind.RESOLVED_PAGE,
        ResultKind.RESOLVED_REDIRECT,
        ResultKind.RESOLVED_SPECIAL_PAGE,
    } and result.special != "issue":
        view = build_link_view(link, main_page=bool(result.page and result.page.main_page))

    return Reply(content=_format_message(lines), view=view, reaction=result.reaction)


__all__ = [
    "Reply",
    "build_link_view",
    "build_overview_lines",
    "build_page_lines",
    "build_reply",
    "build_search_lines",
]
