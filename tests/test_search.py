"""Tests for wiki search and result merging."""
from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import pytest

from wikilink.models import Interwiki, Missing, PageRecord, Redirect
from wikilink.search import WikiSearch, merge_search_results
from wikilink.wiki import Wiki


def _wiki() -> Wiki:
    return Wiki("https://a.wiki.test/w/", article_path="/wiki/$1")


def _search_body(hits, total):
    return {
        "batchcomplete": "",
        "query": {
            "searchinfo": {"totalhits": total},
            "search": hits,
            "pages": {"-1": {"ns": -1, "title": "Special:Search", "special": ""}},
        },
    }


def test_merge_appends_new_pages_up_to_limit():
    primary = [{"pageid": 1, "title": "A"}, {"pageid": 2, "title": "B"}]
    fallback = [{"pageid": 2, "title": "B"}, {"pageid": 3, "title": "C"}, {"pageid": 4, "title": "D"}]

    merged = merge_search_results(primary, fallback, limit=3)

    assert [hit["pageid"] for hit in merged] == [1, 2, 3]


def test_merge_never_drops_primary_results():
    primary = [{"pageid": 1}, {"pageid": 2}]

    assert merge_search_results(primary, [{"pageid": 3}], limit=1) == primary


@pytest.mark.asyncio
async def test_search_tops_up_with_text_results():
    fetcher = Mock()
    fetcher.query = AsyncMock(
        side_effect=[
            _search_body([{"pageid": 1, "title": "Cat"}], 1),
            _search_body([{"pageid": 1, "title": "Cat"}, {"pageid": 2, "title": "Kitten", "sectiontitle": "Care"}], 2),
        ]
    )
    search = WikiSearch(fetcher)

    results = await search.search(_wiki(), "cat", Missing(PageRecord(title="Cat", missing=True)), limit=5)

    assert [entry.title for entry in results.entries] == ["Cat", "Kitten"]
    assert results.entries[1].section == "Care"
    assert results.total_hits == 3
    assert results.link == "https://a.wiki.test/wiki/Special:Search?search=cat&fulltext=1"
    fallback_params = fetcher.query.await_args_list[1].args[1]
    assert fallback_params["srwhat"] == "text"
    assert fallback_params["srnamespace"].startswith("4|12|14|0")


@pytest.mark.asyncio
async def test_exact_match_inherits_redirect():
    fetcher = Mock()
    fetcher.query = AsyncMock(return_value=_search_body([{"pageid": 1, "title": "Feline"}], 1))
    search = WikiSearch(fetcher)
    info = Redirect(PageRecord(title="Feline", pageid=1), source="Cat", fragment="Biology")

    results = await search.search(_wiki(), "cat", info, limit=1)

    entry = results.entries[0]
    assert entry.exact is True
    assert entry.redirect == "Cat"
    assert entry.section == "Biology"


@pytest.mark.asyncio
async def test_interwiki_result_is_listed_first():
    fetcher = Mock()
    fetcher.query = AsyncMock(return_value=_search_body([{"pageid": 1, "title": "Dog"}], 1))
    search = WikiSearch(fetcher)
    info = Interwiki(prefix="de", url="https://de.wiki.test/wiki/Katze", title="de:Katze")

    results = await search.search(_wiki(), "de:Katze", info, limit=1)

    assert results.entries[0].title == "de:Katze"
    assert results.entries[0].url == "https://de.wiki.test/wiki/Katze"
    assert results.entries[1].title == "Dog"


@pytest.mark.asyncio
async def test_failed_search_returns_link_only():
    fetcher = Mock()
    fetcher.query = AsyncMock(return_value=None)
    search = WikiSearch(fetcher)

    results = await search.search(_wiki(), "x" * 300, limit=10)

    assert results.entries == []
    assert results.truncated is True
    assert len(results.term) == 250
