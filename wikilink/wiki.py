"""Wiki references: where a wiki lives and how its links are built."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import parse_qsl, quote, urlencode, urlsplit

from .models import QueryString

logger = logging.getLogger(__name__)

_TITLE_SAFE = "/:@!$'()*,;~"
_SECTION_SAFE = "!$'()*,/:;=?@~"

_NO_WIKI_MARKERS = (
    "Special:NotAValidWiki",
    "community.fandom.com/wiki/Community_Central:Not_a_valid_community",
    "ENOTFOUND",
    "Name or service not known",
)


@dataclass(frozen=True)
class Namespace:
    id: int
    name: str
    canonical: str = ""
    content: bool = False


class Wiki:
    """A MediaWiki installation identified by its script path URL."""

    def __init__(
        self,
        base: str,
        *,
        article_path: Optional[str] = None,
        space_replacement: str = "_",
    ) -> None:
        parts = urlsplit(base)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            raise ValueError(f"Not a wiki URL: {base!r}")
        path = parts.path or "/"
        if not path.endswith("/"):
            path += "/"
        self.server = f"{parts.scheme}://{parts.netloc}"
        self.script_path = path
        self.articlepath = article_path or path + "index.php?title=$1"
        self.space_replacement = space_replacement or "_"
        self.mainpage = "Main Page"
        self.sitename = ""
        self.wikifarm: Optional[str] = None
        self.namespaces: Dict[int, Namespace] = {
            -1: Namespace(-1, "Special", "Special"),
            0: Namespace(0, "", "", content=True),
            2: Namespace(2, "User", "User"),
        }
        self.namespace_aliases: Dict[str, int] = {}

    def __repr__(self) -> str:
        return f"Wiki({self.href!r})"

    def __str__(self) -> str:
        return self.href

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Wiki):
            return self.href == other.href
        return NotImplemented

    @property
    def href(self) -> str:
        return self.server + self.script_path

    @property
    def name(self) -> str:
        return self.href

    @property
    def host(self) -> str:
        return urlsplit(self.server).netloc

    @property
    def hostname(self) -> str:
        return urlsplit(self.server).hostname or ""

    @property
    def api_url(self) -> str:
        return self.href + "api.php"

    @property
    def article_prefix(self) -> str:
        return self.articlepath.split("?")[0].replace("$1", "")

    @property
    def article_url_query(self) -> List[Tuple[str, str]]:
        """Query parameters of the article path template, ``$1`` intact."""

        _, _, query = self.articlepath.partition("?")
        return parse_qsl(query, keep_blank_values=True)

    @property
    def content_namespaces(self) -> List[Namespace]:
        return [ns for ns in self.namespaces.values() if ns.content]

    def namespace_name(self, ns_id: int) -> str:
        namespace = self.namespaces.get(ns_id)
        return namespace.name if namespace else ""

    def update_from_siteinfo(
        self,
        general: Dict[str, Any],
        namespaces: Iterable[Dict[str, Any]] = (),
        aliases: Iterable[Dict[str, Any]] = (),
    ) -> None:
        """Refresh the reference from ``meta=siteinfo`` data."""

        previous = self.href
        server = general.get("server")
        if server:
            if server.startswith("//"):
                server = urlsplit(self.server).scheme + ":" + server
            self.server = server.rstrip("/")
        scriptpath = general.get("scriptpath")
        if scriptpath is not None:
            self.script_path = scriptpath.rstrip("/") + "/"
        if self.href != previous:
            logger.debug("Wiki %s reports canonical location %s", previous, self.href)
        self.articlepath = general.get("articlepath", self.articlepath)
        self.mainpage = general.get("mainpage", self.mainpage)
        self.sitename = general.get("sitename", self.sitename)
        table: Dict[int, Namespace] = {}
        for entry in namespaces:
            ns_id = int(entry["id"])
            table[ns_id] = Namespace(
                id=ns_id,
                name=entry.get("name", entry.get("*", "")),
                canonical=entry.get("canonical", ""),
                content="content" in entry and entry["content"] is not False,
            )
        if table:
            self.namespaces = table
        alias_table = {
            entry.get("alias", entry.get("*", "")): int(entry["id"])
            for entry in aliases
            if "id" in entry
        }
        if alias_table:
            self.namespace_aliases = alias_table

    def to_link(
        self,
        title: str = "",
        query: Union[QueryString, Dict[str, Any], str, None] = None,
        fragment: str = "",
    ) -> str:
        """Build an absolute article URL for ``title``."""

        encoded = quote(title.replace(" ", self.space_replacement), safe=_TITLE_SAFE)
        link = self.server + self.articlepath.replace("$1", encoded)
        if isinstance(query, QueryString):
            querystring = query.encode()
        elif isinstance(query, dict):
            querystring = urlencode(query)
        else:
            querystring = query or ""
        if querystring:
            link += ("&" if "?" in link else "?") + querystring
        if fragment:
            link += self.to_section(fragment, self.space_replacement)
        return link

    @staticmethod
    def to_section(fragment: str, space_replacement: str = "_") -> str:
        return "#" + quote(fragment.replace(" ", space_replacement or "_"), safe=_SECTION_SAFE)

    def no_wiki(self, url: str = "", status: Optional[int] = None) -> bool:
        """Whether a failed request means the wiki does not exist."""

        if status in {404, 410}:
            return True
        return any(marker in url for marker in _NO_WIKI_MARKERS)


__all__ = ["Namespace", "Wiki"]
