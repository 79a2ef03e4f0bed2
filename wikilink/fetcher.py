"""MediaWiki API access and classification of page query responses."""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from .models import FetchError, Found, Interwiki, Missing, PageInfo, PageRecord, Redirect, Special
from .wiki import Wiki

logger = logging.getLogger(__name__)

USER_NAMESPACES = {2, 200, 202, 1200}

_IP_RANGE = re.compile(r"^(?:(?:\d{1,3}\.){3}\d{1,3}/\d{2}|(?:[\dA-F]{1,4}:){1,2}[\dA-F]{1,4})$")

# Warnings every wiki without TextExtracts or PageImages sends back.
_COMMON_WARNINGS = {
    "main": {
        "Unrecognized parameters: exlimit, explaintext, exsectionformat, piprop.",
        "Unrecognized parameters: piprop, explaintext, exsectionformat, exlimit.",
        "Unrecognized parameters: explaintext, exsectionformat, exlimit.",
        "Unrecognized parameters: exlimit, explaintext, exsectionformat.",
        "Unrecognized parameters: exintro, explaintext, exsentences, exlimit.",
        "Unrecognized parameter: piprop.",
        "Unrecognized parameter: rvslots.",
    },
    "query": {
        'Unrecognized values for parameter "prop": pageimages, extracts.',
        'Unrecognized values for parameter "prop": pageimages, extracts',
        'Unrecognized value for parameter "prop": extracts.',
        'Unrecognized value for parameter "prop": extracts',
        'Unrecognized value for parameter "prop": pageimages.',
        'Unrecognized value for parameter "prop": pageimages',
    },
    "extracts": {
        "Extract for a title in File namespace was requested, none returned.",
    },
}

_SITEINFO_PROPS = "general|namespaces|namespacealiases|specialpagealiases"
_PAGE_PROPS = {
    "prop": "info|pageprops|extracts|categoryinfo",
    "ppprop": "description|displaytitle|disambiguation",
    "explaintext": "true",
    "exintro": "true",
    "exsentences": "10",
    "exlimit": "1",
}


def log_api_warnings(warnings: Dict[str, Any]) -> List[str]:
    """Log API warnings that are not routine noise; return their modules."""

    remaining = []
    for module, payload in warnings.items():
        text = payload.get("*") if isinstance(payload, dict) else payload
        if text in _COMMON_WARNINGS.get(module, ()):
            continue
        remaining.append(module)
    if remaining:
        logger.warning("API warning: %s", ", ".join(remaining))
        logger.debug("API warning details: %s", warnings)
    return remaining


def _is_valid(status: int, body: Any) -> bool:
    return status == 200 and isinstance(body, dict) and "batchcomplete" in body and "query" in body


def _error_info(body: Any) -> Optional[str]:
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("info")
    return None


def _special_alias(query: Dict[str, Any], realname: str, default: str) -> str:
    for entry in query.get("specialpagealiases") or []:
        if entry.get("realname") == realname and entry.get("aliases"):
            return entry["aliases"][0]
    return default


def contributions_prefix(wiki: Wiki, query: Dict[str, Any]) -> str:
    return wiki.namespace_name(-1) + ":" + _special_alias(query, "Contributions", "Contributions") + "/"


def is_user_page(page: PageRecord) -> bool:
    if page.ns not in USER_NAMESPACES:
        return False
    if "/" not in page.title:
        return True
    _, _, name = page.title.partition(":")
    return bool(_IP_RANGE.match(name))


def _my_page_redirect(wiki: Wiki, query: Dict[str, Any], page: PageRecord) -> Optional[Special]:
    redirects = query.get("redirects") or []
    if not redirects:
        return None
    source = redirects[0].get("from", "")
    namespace, _, rest = source.partition(":")
    if namespace != wiki.namespace_name(-1):
        return None
    realnames = {entry.get("realname") for entry in query.get("specialpagealiases") or []}
    if not realnames & {"Mypage", "Mytalk", "MyLanguage"}:
        return None
    my_language = _special_alias(query, "MyLanguage", "MyLanguage")
    special = PageRecord(
        title=source,
        ns=-1,
        special=True,
        no_redirect=my_language == rest.split("/")[0].replace(" ", wiki.space_replacement),
    )
    return Special(page=special, kind="special")


def classify_response(status: int, body: Any, wiki: Wiki, url: str = "") -> PageInfo:
    """Turn one ``action=query`` response into a :data:`PageInfo` variant."""

    if isinstance(body, dict) and body.get("warnings"):
        log_api_warnings(body["warnings"])
    if not _is_valid(status, body):
        return FetchError(status=status, info=_error_info(body), no_wiki=wiki.no_wiki(url, status))
    query = body["query"]
    if "general" in query:
        wiki.update_from_siteinfo(
            query["general"],
            (query.get("namespaces") or {}).values(),
            query.get("namespacealiases") or [],
        )
    pages = query.get("pages") or {}
    if pages and (pages.get("-1") or {}).get("title") != "%1F":
        page = PageRecord.from_api(next(iter(pages.values())))
        special = _my_page_redirect(wiki, query, page)
        if special is not None:
            return special
        if is_user_page(page):
            return Special(page=page, kind="user")
        contribs = contributions_prefix(wiki, query)
        if page.ns == -1 and page.title.startswith(contribs) and len(page.title) > len(contribs):
            return Special(page=page, kind="contributions", username=page.title.split("/", 1)[1])
        if page.ns == -1:
            return Special(page=page, kind="special")
        if (page.missing and not page.known) or page.invalid:
            return Missing(page=page)
        redirects = query.get("redirects") or []
        if redirects:
            return Redirect(
                page=page,
                source=redirects[0].get("from", ""),
                fragment=redirects[0].get("tofragment", ""),
            )
        return Found(page=page)
    interwiki = query.get("interwiki") or []
    if interwiki:
        entry = interwiki[0]
        return Interwiki(prefix=entry.get("iw", ""), url=entry.get("url", ""), title=entry.get("title", ""))
    return Found(page=PageRecord(title=wiki.mainpage, main_page=True))


class PageInfoFetcher:
    """Issues MediaWiki API queries over a shared aiohttp session."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        user_agent: str = "wikilink-bot",
        timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._user_agent = user_agent
        self._timeout = timeout

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={"User-Agent": self._user_agent},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    async def request(self, wiki: Wiki, params: Dict[str, str]) -> Tuple[int, Any, str]:
        """GET ``api.php``; returns status, decoded JSON (or None) and final URL."""

        params = {"format": "json", **params}
        async with self._get_session().get(wiki.api_url, params=params) as response:
            try:
                body = await response.json(content_type=None)
            except ValueError:
                body = None
            return response.status, body, str(response.url)

    async def query(self, wiki: Wiki, params: Dict[str, str], *, purpose: str) -> Optional[Dict[str, Any]]:
        """Run a query and return its body, or ``None`` after logging a failure."""

        try:
            status, body, _ = await self.request(wiki, {"action": "query", **params})
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Error while getting the %s: %s", purpose, exc)
            return None
        if isinstance(body, dict) and body.get("warnings"):
            log_api_warnings(body["warnings"])
        if not _is_valid(status, body):
            logger.warning("%s: Error while getting the %s: %s", status, purpose, _error_info(body))
            return None
        return body

    async def fetch_page(
        self,
        wiki: Wiki,
        title: str,
        *,
        uselang: str = "content",
        redirects: bool = True,
        random: bool = False,
    ) -> PageInfo:
        params = {
            "action": "query",
            "uselang": uselang,
            "meta": "siteinfo",
            "siprop": _SITEINFO_PROPS,
            "iwurl": "true",
            "converttitles": "true",
            **_PAGE_PROPS,
        }
        if redirects:
            params["redirects"] = "true"
        if random:
            params.update({"generator": "random", "grnnamespace": "0", "grnlimit": "1"})
        elif title:
            params["titles"] = title
        try:
            status, body, url = await self.request(wiki, params)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Error while getting the search results: %s", exc)
            return FetchError(info=str(exc), no_wiki=wiki.no_wiki(str(exc)))
        info = classify_response(status, body, wiki, url)
        if isinstance(info, FetchError):
            logger.info("%s: Error while getting the search results: %s", info.status, info.info)
        elif isinstance(info, Special) and info.kind == "contributions":
            info = await self._fetch_contributions(wiki, info, uselang=uselang)
        elif isinstance(info, Found) and info.page.main_page:
            info = await self._fetch_main_page(wiki, info, uselang=uselang, redirects=redirects)
        return info

    async def _fetch_contributions(self, wiki: Wiki, info: Special, *, uselang: str) -> PageInfo:
        username = info.username or ""
        body = await self.query(wiki, {"titles": "User:" + username}, purpose="user")
        if body is None:
            return FetchError(info="user lookup failed")
        pages = body["query"].get("pages") or {}
        user = PageRecord.from_api(next(iter(pages.values()), {}))
        if user.ns != 2:
            return FetchError(info=f"{username} is not a user")
        username = user.title.split(":", 1)[1]
        prefix = info.page.title[: len(info.page.title) - len(info.username or "")]
        page = PageRecord(title=prefix + username, ns=-1, special=True, uselang=uselang)
        return Special(page=page, kind="contributions", username=username)

    async def _fetch_main_page(self, wiki: Wiki, info: Found, *, uselang: str, redirects: bool) -> Found:
        params = {"uselang": uselang, "titles": wiki.mainpage, **_PAGE_PROPS}
        if redirects:
            params["redirects"] = "true"
        body = await self.query(wiki, params, purpose="main page")
        if body is None:
            return info
        pages = body["query"].get("pages") or {}
        if not pages:
            return info
        page = PageRecord.from_api(next(iter(pages.values())))
        page.main_page = True
        page.uselang = uselang
        return Found(page=page)


__all__ = [
    "PageInfoFetcher",
    "USER_NAMESPACES",
    "classify_response",
    "contributions_prefix",
    "is_user_page",
    "log_api_warnings",
]
