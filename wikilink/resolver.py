"""Resolution of titles, links and interwiki references to wiki pages.

A resolution is a chain of steps. Each step takes an immutable
:class:`ResolutionRequest` and either finishes with a
:class:`ResolutionResult` or hands a new request to the next step:

* a pasted link is matched against the project registry (a cross-wiki hop,
  which costs one unit of depth) or against the current wiki's own article
  path (a same-wiki hop, which is free);
* otherwise the title is normalised and queried; when the wiki answers with
  an interwiki reference, the reference is followed the same way as long as
  the depth limit for the caller's tier allows it.

Every followed target (a wiki and a title) is remembered on the request, so
a chain that comes back to a page it has already reached, or that follows
too many links, ends with the fallback result instead of looping. Nothing
raises out of :meth:`InterwikiResolver.resolve`.
"""
from __future__ import annotations

import logging
import re
from typing import Optional, Tuple, Union
from urllib.parse import SplitResult, urljoin, urlsplit

from .config import Settings
from .fetcher import PageInfoFetcher
from .models import (
    CallerContext,
    FetchError,
    Found,
    Interwiki,
    Missing,
    PageInfo,
    QueryString,
    Redirect,
    ResolutionRequest,
    ResolutionResult,
    ResultKind,
    Special,
)
from .normalize import looks_like_url, normalize_title, partial_unquote, sanitize_link
from .projects import ProjectMatch, ProjectRegistry, match_same_wiki
from .search import WikiSearch
from .trackers import IssueTrackerHandler, LinkTrackerHandler, TrackerRegistry
from .usage import log_usage
from .wiki import Wiki

logger = logging.getLogger(__name__)

Step = Union[ResolutionRequest, ResolutionResult]

_DIFF_PARAMS = {"diff", "oldid", "curid", "title"}
_MAX_LINKS = 25


class InterwikiResolver:
    """Resolves user input to a page on the right wiki."""

    def __init__(
        self,
        fetcher: PageInfoFetcher,
        projects: ProjectRegistry,
        settings: Settings,
        *,
        trackers: Optional[TrackerRegistry] = None,
        tracker_handler: Optional[IssueTrackerHandler] = None,
        search: Optional[WikiSearch] = None,
    ) -> None:
        self.fetcher = fetcher
        self.projects = projects
        self.settings = settings
        self.trackers = trackers or TrackerRegistry(settings.phabricator_sites, settings.jira_sites)
        self.tracker_handler = tracker_handler or LinkTrackerHandler()
        self.search = search or WikiSearch(fetcher)

    async def resolve(
        self,
        title: str,
        wiki: Wiki,
        caller: CallerContext,
        *,
        query: Optional[QueryString] = None,
        fragment: str = "",
        command: str = "",
    ) -> ResolutionResult:
        request = ResolutionRequest(
            title=title,
            wiki=wiki,
            query=query or QueryString(),
            fragment=fragment,
            command=command,
        )
        while True:
            try:
                step = await self._step(request, caller)
            except Exception:
                logger.exception("Failed to resolve %r on %s", request.title, request.wiki.href)
                return ResolutionResult(
                    kind=ResultKind.SERVER_ERROR,
                    wiki=request.wiki,
                    title=request.title,
                    link=request.interwiki or request.wiki.to_link(request.title, request.query, request.fragment),
                    reaction=self.settings.emoji.get("error"),
                    command=request.command,
                    depth=request.depth,
                )
            if isinstance(step, ResolutionResult):
                return step
            logger.debug(
                "Following %s to %r on %s (depth %d)",
                step.interwiki,
                step.title,
                step.wiki.href,
                step.depth,
            )
            request = step

    async def _step(self, request: ResolutionRequest, caller: CallerContext) -> Step:
        if request.depth == 0 and looks_like_url(request.title):
            step = await self._follow_link(request.title, request, caller)
            if step is not None:
                return step

        wiki = request.wiki
        normalized = normalize_title(
            request.title,
            wiki,
            request.query,
            request.fragment,
            max_length=self.settings.title_length,
        )
        title, query, fragment = normalized.title, normalized.query, normalized.fragment
        result = await self._query(request, caller, title, query, fragment)
        if isinstance(result, ResolutionResult) and (normalized.truncated or result.warning):
            result.warning = True
            result.reaction = result.reaction or self.settings.emoji.get("warning")
        return result

    async def _query(
        self,
        request: ResolutionRequest,
        caller: CallerContext,
        title: str,
        query: QueryString,
        fragment: str,
    ) -> Step:
        wiki = request.wiki
        invoke, _, rest = request.title.partition(" ")
        command = self.settings.aliases.get(invoke.lower(), invoke.lower()) if not request.visited else ""
        args = rest.strip()
        plain = not query and not fragment

        if command == "random" and not args and plain:
            log_usage(wiki, caller.guild_id, "random")
            info = await self.fetcher.fetch_page(wiki, "", uselang=caller.lang, random=True)
            return self._page_result(info, request, query, fragment)
        if command == "overview" and not args and plain:
            return await self._overview(request, caller)
        if command == "page":
            page_title = title.partition(" ")[2]
            return self._result(
                ResultKind.RESOLVED_PAGE,
                request,
                title=page_title,
                link=wiki.to_link(page_title, query, fragment),
                fragment=fragment,
            )
        if command == "diff" and args and plain:
            diff, _, oldid = args.partition(" ")
            return self._diff_result(request, caller, diff, oldid.strip())
        if query.has("diff") and set(query.names()) <= _DIFF_PARAMS and not fragment:
            return self._diff_result(request, caller, query.get("diff") or "", query.get("oldid") or "")

        no_redirect = query.get_last("redirect") == "no" or (
            query.has("action") and query.get_last("action") != "view"
        )
        uselang = query.get_last("variant") or query.get_last("uselang") or caller.lang
        searching = command == "search"
        if searching and not args:
            return await self._search(request, caller, "", None)
        info = await self.fetcher.fetch_page(
            wiki,
            args if searching else title,
            uselang=uselang,
            redirects=not no_redirect,
        )

        if isinstance(info, FetchError):
            return self._fetch_error(info, request, title, query, fragment)
        if searching:
            return await self._search(request, caller, args, info)
        if isinstance(info, Interwiki):
            if caller.paused:
                logger.info("Guild %s is paused; not following %s", caller.guild_id, info.url)
                return self._result(
                    ResultKind.UNRESOLVED_INTERWIKI_FALLBACK,
                    request,
                    title=info.title,
                    link=info.url,
                    suppressed=True,
                )
            current = request.hop(query=query, fragment=fragment)
            step = await self._follow_link(info.url, current, caller, interwiki=info)
            if step is None:
                return self._interwiki_fallback(current, caller, info, info.url)
            return step
        log_usage(wiki, caller.guild_id, "general")
        result = self._page_result(info, request, query, fragment)
        if result.page is not None:
            result.page.uselang = uselang
            result.page.no_redirect = result.page.no_redirect or no_redirect
        return result

    # Link following

    def _parse_link(self, link: str, request: ResolutionRequest) -> Tuple[SplitResult, QueryString, str]:
        parts = urlsplit(urljoin(request.wiki.href, sanitize_link(link)))
        if parts.port == 0:
            raise ValueError(f"Invalid port in {link!r}")
        query = QueryString.parse(parts.query).extend(request.query)
        if request.fragment:
            fragment = request.fragment
            section = Wiki.to_section(fragment, request.wiki.space_replacement)[1:]
        else:
            fragment = partial_unquote(parts.fragment)
            section = parts.fragment
        return parts._replace(query=query.encode(), fragment=section), query, fragment

    async def _follow_link(
        self,
        link: str,
        request: ResolutionRequest,
        caller: CallerContext,
        *,
        interwiki: Optional[Interwiki] = None,
    ) -> Optional[Step]:
        """Try ``link`` as a redirecting link; ``None`` means it does not match."""

        try:
            parts, query, fragment = self._parse_link(link, request)
        except ValueError:
            logger.debug("Not a usable link: %r", link)
            return None

        tracker = self.trackers.match(parts)
        if tracker is not None:
            log_usage(request.wiki, caller.guild_id, "issue", tracker.kind)
            return await self.tracker_handler.handle(tracker, request, caller)

        web = parts.scheme in {"http", "https"}
        if interwiki is None:
            return self._hop(parts, query, fragment, request, caller) if web else None

        log_usage(request.wiki, caller.guild_id, "interwiki")
        limit = self.settings.interwiki_limit(caller.tier)
        if request.depth < limit and web:
            step = self._hop(parts, query, fragment, request, caller, interwiki=interwiki)
            if step is not None:
                return step
        return self._interwiki_fallback(request, caller, interwiki, parts.geturl())

    def _hop(
        self,
        parts: SplitResult,
        query: QueryString,
        fragment: str,
        request: ResolutionRequest,
        caller: CallerContext,
        *,
        interwiki: Optional[Interwiki] = None,
    ) -> Optional[Step]:
        href = parts.geturl()
        try:
            match = self.projects.match_project(parts, request.wiki)
            same_wiki = None if match is not None else match_same_wiki(parts, request.wiki)
        except (ValueError, re.error):
            logger.debug("Failed to match %s against the project registry", href, exc_info=True)
            return None
        if match is None and same_wiki is None:
            return None
        if match is not None:
            key = (match.wiki.href, match.title or query.get("title") or "")
        else:
            key = (request.wiki.href, same_wiki or query.get("title") or "")
        if key in request.visited or len(request.visited) >= _MAX_LINKS:
            logger.info("Link loop at %s after %d hops", href, len(request.visited))
            return self._result(
                ResultKind.UNRESOLVED_INTERWIKI_FALLBACK,
                request,
                title=interwiki.title if interwiki else request.title,
                link=href,
                limit_reached=True,
                reaction=self.settings.emoji.get("warning"),
            )
        visited = request.visited | {key}

        if match is None:
            return request.hop(
                title=same_wiki,
                query=query,
                fragment=fragment,
                interwiki=href,
                visited=visited,
            )
        if not caller.permits(match.wiki.href):
            return self._not_permitted(request, interwiki, target=match.wiki)
        return request.hop(
            title=match.title,
            wiki=match.wiki,
            query=query,
            fragment=fragment,
            depth=request.depth + 1,
            interwiki=href,
            command=self._command_hint(match, request, caller, interwiki),
            visited=visited,
        )

    def _command_hint(
        self,
        match: ProjectMatch,
        request: ResolutionRequest,
        caller: CallerContext,
        interwiki: Optional[Interwiki],
    ) -> str:
        if caller.is_message:
            if match.wiki.href in caller.prefixes:
                return caller.prefixes[match.wiki.href]
            if match.project.name in caller.prefixes:
                return caller.prefixes[match.project.name] + match.host_id + " "
            return "!!" + match.host_id + " "
        if caller.interwiki_command_id is not None:
            return f"</interwiki:{caller.interwiki_command_id}> wiki:{match.host_id} title:"
        if interwiki is not None:
            return request.command + interwiki.prefix + ":"
        return request.command

    # Terminal results

    def _result(self, kind: ResultKind, request: ResolutionRequest, **fields) -> ResolutionResult:
        fields.setdefault("wiki", request.wiki)
        fields.setdefault("command", request.command)
        fields.setdefault("depth", request.depth)
        return ResolutionResult(kind=kind, **fields)

    def _interwiki_fallback(
        self,
        request: ResolutionRequest,
        caller: CallerContext,
        interwiki: Interwiki,
        link: str,
    ) -> ResolutionResult:
        if caller.allow_list:
            return self._not_permitted(request, interwiki)
        limit_reached = request.depth >= self.settings.interwiki_limit(caller.tier)
        return self._result(
            ResultKind.UNRESOLVED_INTERWIKI_FALLBACK,
            request,
            title=interwiki.title,
            link=link,
            limit_reached=limit_reached,
            reaction=self.settings.emoji.get("warning") if limit_reached else None,
        )

    def _not_permitted(
        self,
        request: ResolutionRequest,
        interwiki: Optional[Interwiki],
        *,
        target: Optional[Wiki] = None,
    ) -> ResolutionResult:
        link = None
        if interwiki is not None:
            link = request.wiki.to_link("Special:GoToInterwiki/" + interwiki.title)
        return self._result(
            ResultKind.NOT_PERMITTED,
            request,
            title=interwiki.title if interwiki else request.title,
            link=link,
            special="gotointerwiki" if interwiki else None,
            details={"target": target.href} if target else {},
        )

    def _fetch_error(
        self,
        info: FetchError,
        request: ResolutionRequest,
        title: str,
        query: QueryString,
        fragment: str,
    ) -> ResolutionResult:
        if request.interwiki:
            return self._result(
                ResultKind.UNRESOLVED_INTERWIKI_FALLBACK,
                request,
                title=title,
                link=request.interwiki,
                details={"status": info.status},
            )
        if info.no_wiki:
            logger.info("%s does not exist", request.wiki.href)
            return self._result(
                ResultKind.NOT_FOUND,
                request,
                title=title,
                reaction=self.settings.emoji.get("nowiki"),
                details={"no_wiki": True},
            )
        if query or fragment or not title:
            link = request.wiki.to_link(title, query, fragment)
        else:
            link = request.wiki.to_link("Special:Search", {"search": title}, fragment)
        return self._result(
            ResultKind.SERVER_ERROR,
            request,
            title=title,
            link=link,
            fragment=fragment,
            reaction=self.settings.emoji.get("error"),
            details={"status": info.status, "info": info.info},
        )

    def _page_result(
        self,
        info: PageInfo,
        request: ResolutionRequest,
        query: QueryString,
        fragment: str,
    ) -> ResolutionResult:
        wiki = request.wiki
        if isinstance(info, FetchError):
            return self._fetch_error(info, request, "", query, fragment)
        if isinstance(info, Interwiki):
            return self._result(
                ResultKind.UNRESOLVED_INTERWIKI_FALLBACK,
                request,
                title=info.title,
                link=info.url,
            )
        page = info.page
        if isinstance(info, Redirect):
            fragment = fragment or info.fragment
            return self._result(
                ResultKind.RESOLVED_REDIRECT,
                request,
                title=page.title,
                link=wiki.to_link(page.title, query, fragment),
                fragment=fragment,
                page=page,
                redirect_source=info.source,
            )
        if isinstance(info, Special):
            return self._result(
                ResultKind.RESOLVED_SPECIAL_PAGE,
                request,
                title=page.title,
                link=wiki.to_link(page.title, query, fragment),
                fragment=fragment,
                page=page,
                special=info.kind,
                details={"username": info.username} if info.username else {},
            )
        if isinstance(info, Missing):
            return self._result(
                ResultKind.NOT_FOUND,
                request,
                title=page.title,
                link=wiki.to_link(page.title, query, fragment),
                fragment=fragment,
                page=page,
            )
        assert isinstance(info, Found)
        return self._result(
            ResultKind.RESOLVED_PAGE,
            request,
            title=page.title,
            link=wiki.to_link(page.title, query, fragment),
            fragment=fragment,
            page=page,
        )

    def _diff_result(
        self,
        request: ResolutionRequest,
        caller: CallerContext,
        diff: str,
        oldid: str,
    ) -> ResolutionResult:
        log_usage(request.wiki, caller.guild_id, "diff")
        title = "Special:Diff/" + (f"{oldid}/{diff}" if oldid else diff)
        return self._result(
            ResultKind.RESOLVED_SPECIAL_PAGE,
            request,
            title=title,
            link=request.wiki.to_link(title),
            special="diff",
            details={"diff": diff, "oldid": oldid or None},
        )

    async def _overview(self, request: ResolutionRequest, caller: CallerContext) -> ResolutionResult:
        wiki = request.wiki
        log_usage(wiki, caller.guild_id, "overview")
        link = wiki.to_link("Special:Statistics")
        body = await self.fetcher.query(
            wiki,
            {"meta": "siteinfo", "siprop": "general|statistics", "uselang": caller.lang},
            purpose="site statistics",
        )
        if body is None:
            return self._result(
                ResultKind.SERVER_ERROR,
                request,
                title="Special:Statistics",
                link=link,
                reaction=self.settings.emoji.get("error"),
            )
        info = body["query"]
        return self._result(
            ResultKind.RESOLVED_SPECIAL_PAGE,
            request,
            title="Special:Statistics",
            link=link,
            special="overview",
            details={
                "sitename": (info.get("general") or {}).get("sitename", ""),
                "statistics": info.get("statistics") or {},
            },
        )

    async def _search(
        self,
        request: ResolutionRequest,
        caller: CallerContext,
        term: str,
        info: Optional[PageInfo],
    ) -> ResolutionResult:
        wiki = request.wiki
        log_usage(wiki, caller.guild_id, "search")
        if not term:
            return self._result(
                ResultKind.RESOLVED_SPECIAL_PAGE,
                request,
                title="Special:Search",
                link=wiki.to_link("Special:Search"),
                special="search",
            )
        results = await self.search.search(
            wiki,
            term,
            info,
            limit=self.settings.search_limit(caller.tier),
            max_length=self.settings.title_length,
        )
        return self._result(
            ResultKind.RESOLVED_SPECIAL_PAGE,
            request,
            title="Special:Search",
            link=results.link,
            special="search",
            search=results,
            warning=results.truncated,
        )


__all__ = ["InterwikiResolver"]
