"""Issue tracker links that bypass general wiki resolution."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Protocol
from urllib.parse import SplitResult

from .models import ResolutionResult, ResultKind

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import CallerContext, ResolutionRequest

logger = logging.getLogger(__name__)

_JIRA_ISSUE = re.compile(r"^/browse/([A-Z]{2,6}-\d+)$")


@dataclass(frozen=True)
class TrackerMatch:
    kind: str  # "phabricator" or "jira"
    hostname: str
    url: str
    issue: Optional[str] = None


class IssueTrackerHandler(Protocol):
    async def handle(
        self,
        match: TrackerMatch,
        request: "ResolutionRequest",
        caller: "CallerContext",
    ) -> ResolutionResult:
        ...


class TrackerRegistry:
    """Hostnames routed to a dedicated issue tracker handler."""

    def __init__(self, phabricator: Iterable[str] = (), jira: Iterable[str] = ()) -> None:
        self.phabricator = frozenset(phabricator)
        self.jira = frozenset(jira)

    def match(self, url: SplitResult) -> Optional[TrackerMatch]:
        hostname = url.hostname or ""
        if hostname in self.phabricator:
            return TrackerMatch("phabricator", hostname, url.geturl())
        if hostname in self.jira and not url.query and not url.fragment:
            issue = _JIRA_ISSUE.match(url.path)
            if issue:
                return TrackerMatch("jira", hostname, url.geturl(), issue.group(1))
        return None


class LinkTrackerHandler:
    """Answer tracker links with the link itself."""

    async def handle(
        self,
        match: TrackerMatch,
        request: "ResolutionRequest",
        caller: "CallerContext",
    ) -> ResolutionResult:
        logger.debug("Tracker link %s on %s for guild %s", match.issue or match.url, match.hostname, caller.guild_id)
        return ResolutionResult(
            kind=ResultKind.RESOLVED_SPECIAL_PAGE,
            wiki=request.wiki,
            title=match.issue or match.url,
            link=match.url,
            special="issue",
            depth=request.depth,
            details={"tracker": match.kind, "hostname": match.hostname},
        )


__all__ = ["IssueTrackerHandler", "LinkTrackerHandler", "TrackerMatch", "TrackerRegistry"]
