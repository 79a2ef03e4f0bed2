"""Core data models for wiki link resolution."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .wiki import Wiki


class ResultKind(str, Enum):
    RESOLVED_PAGE = "resolved-page"
    RESOLVED_REDIRECT = "resolved-redirect"
    RESOLVED_SPECIAL_PAGE = "resolved-special-page"
    NOT_FOUND = "not-found"
    NOT_PERMITTED = "not-permitted"
    SERVER_ERROR = "server-error"
    UNRESOLVED_INTERWIKI_FALLBACK = "unresolved-interwiki-fallback"


class Tier(str, Enum):
    DEFAULT = "default"
    PATREON = "patreon"


@dataclass(frozen=True)
class QueryString:
    """Immutable ordered multi-map of query parameters."""

    pairs: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def parse(cls, raw: str) -> "QueryString":
        raw = raw[1:] if raw.startswith("?") else raw
        return cls(tuple(parse_qsl(raw, keep_blank_values=True)))

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> "QueryString":
        return cls(tuple((str(name), str(value)) for name, value in values.items()))

    def __bool__(self) -> bool:
        return bool(self.pairs)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def names(self) -> List[str]:
        seen: List[str] = []
        for name, _ in self.pairs:
            if name not in seen:
                seen.append(name)
        return seen

    def has(self, name: str) -> bool:
        return any(key == name for key, _ in self.pairs)

    def get(self, name: str) -> Optional[str]:
        for key, value in self.pairs:
            if key == name:
                return value
        return None

    def get_all(self, name: str) -> List[str]:
        return [value for key, value in self.pairs if key == name]

    def get_last(self, name: str) -> Optional[str]:
        values = self.get_all(name)
        return values[-1] if values else None

    def without(self, name: str) -> "QueryString":
        return QueryString(tuple((key, value) for key, value in self.pairs if key != name))

    def extend(self, other: Union["QueryString", Iterable[Tuple[str, str]]]) -> "QueryString":
        return QueryString(self.pairs + tuple(other))

    def encode(self) -> str:
        return urlencode(self.pairs)


@dataclass
class PageRecord:
    """A page entry from an ``action=query`` response."""

    title: str
    ns: int = 0
    pageid: Optional[int] = None
    missing: bool = False
    invalid: bool = False
    known: bool = False
    special: bool = False
    contentmodel: str = "wikitext"
    displaytitle: Optional[str] = None
    description: Optional[str] = None
    extract: Optional[str] = None
    categoryinfo: Optional[Dict[str, int]] = None
    main_page: bool = False
    uselang: str = "content"
    no_redirect: bool = False

    @staticmethod
    def from_api(data: Dict[str, Any]) -> "PageRecord":
        pageprops = data.get("pageprops") or {}
        return PageRecord(
            title=data.get("title", ""),
            ns=int(data.get("ns", 0)),
            pageid=data.get("pageid"),
            missing="missing" in data,
            invalid="invalid" in data,
            known="known" in data,
            special="special" in data,
            contentmodel=data.get("contentmodel", "wikitext"),
            displaytitle=pageprops.get("displaytitle"),
            description=pageprops.get("description"),
            extract=data.get("extract"),
            categoryinfo=data.get("categoryinfo"),
        )


# Page info variants produced by the fetcher.


@dataclass(frozen=True)
class Found:
    page: PageRecord


@dataclass(frozen=True)
class Redirect:
    page: PageRecord
    source: str
    fragment: str = ""


@dataclass(frozen=True)
class Special:
    page: PageRecord
    kind: str = "special"
    username: Optional[str] = None


@dataclass(frozen=True)
class Interwiki:
    prefix: str
    url: str
    title: str


@dataclass(frozen=True)
class Missing:
    page: PageRecord


@dataclass(frozen=True)
class FetchError:
    status: Optional[int] = None
    info: Optional[str] = None
    no_wiki: bool = False


PageInfo = Union[Found, Redirect, Special, Interwiki, Missing, FetchError]


@dataclass(frozen=True)
class CallerContext:
    """Who is asking, and what they are allowed to reach."""

    guild_id: Optional[str] = None
    allow_list: Tuple[str, ...] = ()
    tier: Tier = Tier.DEFAULT
    lang: str = "en"
    is_message: bool = True
    paused: bool = False
    prefixes: Dict[str, str] = field(default_factory=dict)
    interwiki_command_id: Optional[int] = None

    def permits(self, wiki_href: str) -> bool:
        return not self.allow_list or wiki_href in self.allow_list


@dataclass(frozen=True)
class ResolutionRequest:
    """State carried from one resolution step to the next."""

    title: str
    wiki: "Wiki"
    query: QueryString = QueryString()
    fragment: str = ""
    depth: int = 0
    interwiki: str = ""
    command: str = ""
    visited: FrozenSet[Tuple[str, str]] = frozenset()

    def hop(self, **changes: Any) -> "ResolutionRequest":
        return replace(self, **changes)


@dataclass
class SearchEntry:
    title: str
    pageid: Optional[int] = None
    section: Optional[str] = None
    redirect: Optional[str] = None
    exact: bool = False
    url: Optional[str] = None


@dataclass
class SearchResults:
    term: str
    link: str
    entries: List[SearchEntry] = field(default_factory=list)
    total_hits: Optional[int] = None
    truncated: bool = False


@dataclass
class ResolutionResult:
    """Terminal outcome of a resolution chain."""

    kind: ResultKind
    wiki: Optional["Wiki"] = None
    title: str = ""
    link: Optional[str] = None
    fragment: str = ""
    page: Optional[PageRecord] = None
    special: Optional[str] = None
    reaction: Optional[str] = None
    warning: bool = False
    limit_reached: bool = False
    suppressed: bool = False
    command: str = ""
    depth: int = 0
    search: Optional[SearchResults] = None
    redirect_source: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.kind in {
            ResultKind.RESOLVED_PAGE,
            ResultKind.RESOLVED_REDIRECT,
            ResultKind.RESOLVED_SPECIAL_PAGE,
        }


__all__ = [
    "CallerContext",
    "FetchError",
    "Found",
    "Interwiki",
    "Missing",
    "PageInfo",
    "PageRecord",
    "QueryString",
    "Redirect",
    "ResolutionRequest",
    "ResolutionResult",
    "ResultKind",
    "SearchEntry",
    "SearchResults",
    "Special",
    "Tier",
]
