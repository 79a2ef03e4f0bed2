"""Registry of wiki hosting projects and URL matching against it."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Match, Optional, Pattern
from urllib.parse import SplitResult

import yaml

from .normalize import partial_unquote
from .wiki import Wiki

logger = logging.getLogger(__name__)

DEFAULT_PROJECTS_PATH = Path(__file__).parent / "data" / "projects.yaml"

_PLACEHOLDER = re.compile(r"\$(\d)")


def _strip_title_slot(template: str) -> str:
    """Drop a trailing ``$1`` title slot from a path template."""

    return template[:-2] if template.endswith("$1") else template


@dataclass(frozen=True)
class ProjectPattern:
    """How to recognise and canonicalise URLs of one wiki family."""

    name: str
    regex: str
    article_path: str = "/wiki/"
    script_path: str = "/w/"
    regex_paths: bool = False
    wikifarm: Optional[str] = None
    host: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ProjectPattern":
        return ProjectPattern(
            name=str(data["name"]),
            regex=str(data["regex"]),
            article_path=str(data.get("article_path", "/wiki/")),
            script_path=str(data.get("script_path", "/w/")),
            regex_paths=bool(data.get("regex_paths", False)),
            wikifarm=data.get("wikifarm"),
            host=data.get("host"),
        )

    @property
    def article_prefix(self) -> str:
        return _strip_title_slot(self.article_path.split("?")[0])

    def host_regex(self) -> Pattern[str]:
        return re.compile(self.host or self.regex)

    def url_regex(self) -> Pattern[str]:
        article = re.escape("/" if self.regex_paths else self.article_prefix)
        return re.compile("^" + self.regex + "(?:" + article + "|/?$)")

    def fill(self, template: str, groups: List[Optional[str]]) -> str:
        template = _strip_title_slot(template)
        if not self.regex_paths:
            return template
        return _PLACEHOLDER.sub(lambda m: groups[int(m.group(1))] or "", template)


@dataclass(frozen=True)
class ProjectMatch:
    title: str
    wiki: Wiki
    project: ProjectPattern
    host_id: str


class ProjectRegistry:
    """Read-only collection of :class:`ProjectPattern` entries."""

    def __init__(self, projects: List[ProjectPattern]) -> None:
        self._projects = list(projects)
        self._host_patterns = [(project, project.host_regex()) for project in self._projects]

    def __len__(self) -> int:
        return len(self._projects)

    @property
    def projects(self) -> List[ProjectPattern]:
        return list(self._projects)

    def get_project(self, hostname: str) -> Optional[ProjectPattern]:
        for project, pattern in self._host_patterns:
            if pattern.match(hostname):
                return project
        return None

    def match_project(self, url: SplitResult, current: Wiki) -> Optional[ProjectMatch]:
        """Interpret ``url`` as a link into a registered project."""

        project = self.get_project(url.hostname or "")
        if project is None:
            return None
        location = url.netloc + url.path
        match = project.url_regex().match(location)
        if match is None:
            return None
        title = partial_unquote(location[match.end():]).replace(current.space_replacement, " ")
        wiki = _project_wiki(project, match, current.space_replacement)
        return ProjectMatch(title=title, wiki=wiki, project=project, host_id=match.group(1))

    def wiki_for_host(self, host_id: str) -> Wiki:
        """Build a wiki reference for a bare ``host[/path]`` identifier."""

        host_id = host_id.strip().strip("/")
        project = self.get_project(host_id.split("/")[0])
        if project is not None:
            match = project.url_regex().match(host_id)
            if match is not None:
                return _project_wiki(project, match)
        return Wiki("https://" + host_id + "/")

    def wiki_for_url(self, base: str) -> Wiki:
        """Build a wiki reference for a script path URL, using project defaults."""

        wiki = Wiki(base)
        project = self.get_project(wiki.hostname)
        if project is None or project.regex_paths:
            return wiki
        match = re.match("^" + project.regex, wiki.host + wiki.script_path)
        if match is not None:
            wiki.articlepath = _base_path(match.group(1)) + project.article_prefix + "$1"
            wiki.wikifarm = project.wikifarm
        return wiki


def _base_path(host_id: str) -> str:
    _, slash, path = host_id.partition("/")
    return slash + path if slash else ""


def _project_wiki(project: ProjectPattern, match: Match[str], space_replacement: str = "_") -> Wiki:
    groups = [match.group(0)] + list(match.groups())
    host_id = match.group(1)
    article_path = _base_path(host_id) + project.fill(project.article_path, groups)
    wiki = Wiki(
        "https://" + host_id + project.fill(project.script_path, groups),
        article_path=article_path + "$1",
        space_replacement=space_replacement,
    )
    wiki.wikifarm = project.wikifarm
    return wiki


def match_same_wiki(url: SplitResult, current: Wiki) -> Optional[str]:
    """Return the bare title if ``url`` points into ``current`` itself."""

    if url.netloc != current.host:
        return None
    if url.path == current.script_path + "index.php":
        # the title comes from the query string
        return ""
    prefix = current.article_prefix
    if not url.path.startswith(prefix):
        return None
    return partial_unquote(url.path[len(prefix):]).replace(current.space_replacement, " ")


def load_projects(path: Optional[Path] = None) -> ProjectRegistry:
    """Load the project registry from YAML."""

    path = path or DEFAULT_PROJECTS_PATH
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    projects = [ProjectPattern.from_dict(entry) for entry in data.get("projects", [])]
    logger.debug("Loaded %d wiki projects from %s", len(projects), path)
    return ProjectRegistry(projects)


__all__ = [
    "DEFAULT_PROJECTS_PATH",
    "ProjectMatch",
    "ProjectPattern",
    "ProjectRegistry",
    "load_projects",
    "match_same_wiki",
]
