"""Tests for wiki references."""
from __future__ import annotations

import pytest

from wikilink.models import QueryString
from wikilink.wiki import Wiki


def test_wiki_defaults():
    wiki = Wiki("https://a.wiki.test/w")

    assert wiki.href == "https://a.wiki.test/w/"
    assert wiki.api_url == "https://a.wiki.test/w/api.php"
    assert wiki.articlepath == "/w/index.php?title=$1"
    assert wiki.host == "a.wiki.test"
    assert wiki.namespace_name(-1) == "Special"


def test_wiki_rejects_non_web_urls():
    with pytest.raises(ValueError):
        Wiki("ftp://a.wiki.test/")
    with pytest.raises(ValueError):
        Wiki("not a url")


def test_to_link_with_query_and_fragment():
    wiki = Wiki("https://a.wiki.test/w/", article_path="/wiki/$1")

    link = wiki.to_link("Foo Bar", QueryString.parse("oldid=5"), "Some section")

    assert link == "https://a.wiki.test/wiki/Foo_Bar?oldid=5#Some_section"


def test_to_link_on_index_php_wiki_uses_ampersand():
    wiki = Wiki("https://a.wiki.test/w/")

    assert wiki.to_link("Foo", {"action": "history"}) == "https://a.wiki.test/w/index.php?title=Foo&action=history"


def test_update_from_siteinfo():
    wiki = Wiki("http://a.wiki.test/w/")

    wiki.update_from_siteinfo(
        {
            "server": "//a.wiki.test",
            "scriptpath": "",
            "articlepath": "/$1",
            "mainpage": "Start",
            "sitename": "Test Wiki",
        },
        [
            {"id": -1, "name": "Spezial", "canonical": "Special"},
            {"id": 0, "name": "", "content": ""},
            {"id": 4, "name": "Project", "canonical": "Project"},
        ],
        [{"id": 4, "alias": "TW"}],
    )

    assert wiki.href == "http://a.wiki.test/"
    assert wiki.to_link("Foo") == "http://a.wiki.test/Foo"
    assert wiki.mainpage == "Start"
    assert wiki.namespace_name(-1) == "Spezial"
    assert [ns.id for ns in wiki.content_namespaces] == [0]
    assert wiki.namespace_aliases == {"TW": 4}


def test_no_wiki_detection():
    wiki = Wiki("https://a.wiki.test/w/")

    assert wiki.no_wiki(status=404)
    assert wiki.no_wiki("https://community.fandom.com/wiki/Community_Central:Not_a_valid_community?from=x")
    assert not wiki.no_wiki("https://a.wiki.test/w/api.php", 500)


def test_wiki_equality_by_href():
    assert Wiki("https://a.wiki.test/w") == Wiki("https://a.wiki.test/w/")
    assert Wiki("https://a.wiki.test/w/") != Wiki("https://b.wiki.test/w/")
