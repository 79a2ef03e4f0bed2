"""Wiki search: title search topped up with full-text results."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .fetcher import PageInfoFetcher
from .models import Interwiki, PageInfo, PageRecord, Redirect, SearchEntry, SearchResults
from .normalize import MAX_TITLE_LENGTH
from .wiki import Wiki

logger = logging.getLogger(__name__)

_SEARCH_NAMESPACES = (4, 12, 14)


def merge_search_results(
    primary: List[Dict[str, Any]],
    fallback: List[Dict[str, Any]],
    limit: int,
) -> List[Dict[str, Any]]:
    """Append fallback hits not already present (by page id), up to ``limit``."""

    seen = {result.get("pageid") for result in primary}
    extra = [result for result in fallback if result.get("pageid") not in seen]
    return list(primary) + extra[: max(0, limit - len(primary))]


def _same_title(result_title: str, page_title: str) -> bool:
    left = result_title.replace("_", " ").replace("-", " ").lower()
    return left == page_title.replace("-", " ").lower()


class WikiSearch:
    """Runs searches through a :class:`PageInfoFetcher`."""

    def __init__(self, fetcher: PageInfoFetcher) -> None:
        self.fetcher = fetcher

    def _params(self, wiki: Wiki, term: str, page: Optional[PageRecord], limit: int) -> Dict[str, str]:
        namespaces = list(_SEARCH_NAMESPACES)
        if page is not None and page.ns >= 0:
            namespaces.append(page.ns)
        namespaces.extend(ns.id for ns in wiki.content_namespaces)
        return {
            "list": "search",
            "srinfo": "totalhits",
            "srprop": "redirecttitle|sectiontitle",
            "srnamespace": "|".join(str(ns) for ns in dict.fromkeys(namespaces)),
            "srlimit": str(limit),
            "srsearch": term,
        }

    async def search(
        self,
        wiki: Wiki,
        term: str,
        info: Optional[PageInfo] = None,
        *,
        limit: int = 10,
        max_length: int = MAX_TITLE_LENGTH,
    ) -> SearchResults:
        truncated = False
        if len(term) > max_length:
            term = term[:max_length].strip()
            truncated = True
        page: Optional[PageRecord] = getattr(info, "page", None)
        redirect = info if isinstance(info, Redirect) else None
        interwiki = info if isinstance(info, Interwiki) else None
        results = SearchResults(
            term=term,
            link=wiki.to_link("Special:Search", {"search": term, "fulltext": 1}),
            truncated=truncated,
        )

        params = self._params(wiki, term, page, limit)
        body = await self.fetcher.query(wiki, {"titles": "Special:Search", **params}, purpose="search results")
        if body is None or "search" not in body["query"]:
            return results
        query = body["query"]
        hits = list(query["search"])
        total = (query.get("searchinfo") or {}).get("totalhits")
        if len(hits) < limit:
            fallback = await self.fetcher.query(wiki, {"srwhat": "text", **params}, purpose="text search results")
            if fallback is not None and "search" in fallback["query"]:
                hits = merge_search_results(hits, fallback["query"]["search"], limit)
                fallback_total = (fallback["query"].get("searchinfo") or {}).get("totalhits")
                if total is not None and fallback_total is not None:
                    total += fallback_total
        special = (query.get("pages") or {}).get("-1") or {}
        if special.get("title"):
            results.link = wiki.to_link(special["title"], {"search": term, "fulltext": 1})
        results.total_hits = total

        exact_found = False
        for hit in hits:
            entry = SearchEntry(
                title=hit.get("title", ""),
                pageid=hit.get("pageid"),
                section=hit.get("sectiontitle"),
                redirect=hit.get("redirecttitle"),
            )
            if page is not None and _same_title(entry.title, page.title):
                entry.exact = True
                exact_found = True
                if redirect is not None:
                    if redirect.fragment and not entry.section:
                        entry.section = redirect.fragment
                    if not entry.redirect:
                        entry.redirect = redirect.source
            results.entries.append(entry)

        if not exact_found:
            if interwiki is not None:
                results.entries.insert(0, SearchEntry(title=interwiki.title, exact=True, url=interwiki.url))
            elif page is not None and page.title and not page.invalid and (not page.missing or page.known):
                entry = SearchEntry(title=page.title, pageid=page.pageid, exact=True)
                if redirect is not None:
                    entry.section = redirect.fragment or None
                    entry.redirect = redirect.source
                results.entries.insert(0, entry)
        logger.debug("Search for %r on %s returned %d entries", term, wiki.href, len(results.entries))
        return results


__all__ = ["WikiSearch", "merge_search_results"]
