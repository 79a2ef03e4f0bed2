"""Splitting raw user input into title, fragment and query parameters."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Match, Optional, Tuple

from .models import QueryString

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .wiki import Wiki

MAX_TITLE_LENGTH = 250

_ESCAPE_RUN = re.compile(r"(?:%[0-9A-Fa-f]{2})+")
_QUERY_START = re.compile(r"\?\w+=")
_MENTION = re.compile(r"@(here|everyone)")


def _next_char(raw: bytes, index: int) -> Tuple[Optional[str], int]:
    # UTF-8 sequences are at most four bytes long
    for size in (1, 2, 3, 4):
        try:
            return raw[index:index + size].decode("utf-8"), size
        except UnicodeDecodeError:
            continue
    return None, 1


def _decode_run(match: Match[str]) -> str:
    escaped = match.group(0)
    raw = bytes.fromhex(escaped.replace("%", ""))
    decoded = []
    index = 0
    while index < len(raw):
        char, size = _next_char(raw, index)
        decoded.append(char if char is not None else escaped[index * 3:index * 3 + 3])
        index += size
    return "".join(decoded)


def partial_unquote(text: str) -> str:
    """Decode well-formed percent escapes and leave everything else alone."""

    return _ESCAPE_RUN.sub(_decode_run, text)


def sanitize_link(text: str) -> str:
    """Escape characters that must not survive into a parsed URL."""

    return _MENTION.sub(r"%40\1", text.replace("\\", "%5C"))


def looks_like_url(text: str) -> bool:
    return text.startswith(("https://", "http://")) and len(text.split("/")) > 3


@dataclass(frozen=True)
class NormalizedTitle:
    title: str
    fragment: str
    query: QueryString
    truncated: bool = False


def _title_from_article_url(wiki: "Wiki", query: QueryString) -> tuple[str, QueryString]:
    title = ""
    for name, template in wiki.article_url_query:
        if "$1" not in template or not query.has(name):
            continue
        title = query.get(name) or ""
        query = query.without(name)
        if template != "$1":
            pattern = "^" + re.escape(template).replace(re.escape("$1"), "(.*?)") + "$"
            title = re.sub(pattern, r"\1", title)
    return title, query


def normalize_title(
    raw: str,
    wiki: "Wiki",
    query: Optional[QueryString] = None,
    fragment: str = "",
    *,
    max_length: int = MAX_TITLE_LENGTH,
) -> NormalizedTitle:
    """Split ``raw`` into a page title, a fragment and query parameters."""

    query = query or QueryString()
    title = raw
    if "#" in title:
        title, _, rest = title.partition("#")
        fragment = partial_unquote(rest.strip())
    start = _QUERY_START.search(title)
    if start:
        query = query.extend(QueryString.parse(title[start.start() + 1:]))
        title = title[: start.start()]
    if not title:
        title, query = _title_from_article_url(wiki, query)
    if not title and query.has("title"):
        title = query.get("title") or ""
        query = query.without("title")
    title = partial_unquote(title)
    truncated = False
    if len(title) > max_length:
        title = title[:max_length]
        truncated = True
    return NormalizedTitle(title=title, fragment=fragment, query=query, truncated=truncated)


__all__ = [
    "MAX_TITLE_LENGTH",
    "NormalizedTitle",
    "looks_like_url",
    "normalize_title",
    "partial_unquote",
    "sanitize_link",
]
