#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for wiki link resolution and category extraction."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio

import pytest

from lorevault.markup import Viewer
from lorevault.markup.links import Category, extract_categories, render_links


ANON = Viewer.anonymous()


# ── Links ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_missing_page_becomes_create_link(store):
    result = await render_links("[[New Page|Hello!]]", store, ANON)
    assert result.text == '<a href="/create?title=New%20Page" class="new">Hello!</a>'
    assert result.links[0].page is None
    assert result.links[0].title == "New Page"


@pytest.mark.asyncio
async def test_existing_page_link(store):
    page = store.add("Test Page")
    result = await render_links("See [[Test Page|Hello!]].", store, ANON)
    assert result.text == 'See <a href="/test-page" title="Test Page">Hello!</a>.'
    link = result.links[0]
    assert link.page is page
    assert link.text == "Hello!"
    assert link.secret is False


@pytest.mark.asyncio
async def test_link_without_alias_uses_title(store):
    store.add("Test Page")
    result = await render_links("[[Test Page]]", store, ANON)
    assert result.text == '<a href="/test-page" title="Test Page">Test Page</a>'


@pytest.mark.asyncio
async def test_title_lookup_ignores_case(store):
    store.add("Test Page")
    result = await render_links("[[test page]]", store, ANON)
    assert result.links[0].page is not None


@pytest.mark.asyncio
async def test_leading_colon_is_dropped(store):
    store.add("Test Page")
    result = await render_links("[[:Test Page|x]]", store, ANON)
    assert result.text == '<a href="/test-page" title="Test Page">x</a>'


@pytest.mark.asyncio
async def test_trailing_letters_join_the_anchor(store):
    store.add("Save")
    result = await render_links("[[Save]]d and [[Bob]]'s", store, ANON)
    assert result.text == (
        '<a href="/save" title="Save">Saved</a> and '
        '<a href="/create?title=Bob" class="new">Bob\'s</a>'
    )


@pytest.mark.asyncio
async def test_reserved_prefixes_are_left_alone(store):
    text = "[[Category:Lore]] [[File:Map]] [[Image:Face|alt]]"
    result = await render_links(text, store, ANON)
    assert result.text == text
    assert result.links == []


@pytest.mark.asyncio
async def test_links_report_enclosing_secret(store):
    text = 'Open [[A]] <secret codename="X">[[B]]</secret>'
    result = await render_links(text, store, ANON)
    assert [link.secret for link in result.links] == [False, "X"]


@pytest.mark.asyncio
async def test_secret_page_is_not_linked_for_anonymous(store):
    store.add("Lich Lair", is_secret=True)
    anon = await render_links("[[Lich Lair]]", store, ANON)
    assert 'class="new"' in anon.text
    gm = await render_links("[[Lich Lair]]", store, Viewer.loremaster())
    assert 'href="/lich-lair"' in gm.text


@pytest.mark.asyncio
async def test_each_title_is_looked_up_once(store):
    await render_links("[[A]] [[A|again]] [[B]]", store, ANON)
    assert store.lookups == ["A", "B"]


@pytest.mark.asyncio
async def test_slow_lookup_resolves_as_missing(store, caplog):
    async def slow(title, viewer):
        await asyncio.sleep(1)

    store.find_by_title = slow
    result = await render_links("[[Far Away]]", store, ANON, timeout=0.01)
    assert 'class="new"' in result.text
    assert "timed out" in caplog.text


# ── Categories ────────────────────────────────────────────────────────────────

def test_extract_categories():
    text, categories = extract_categories(
        "Text [[Category:Elves|Sylvan]] more [[Category:Lore]][[Category:elves]]"
    )
    assert text == "Text  more "
    assert categories == [Category("Elves", "Sylvan"), Category("Lore", "Lore")]


def test_extract_categories_none():
    assert extract_categories("plain [[Link]]") == ("plain [[Link]]", [])
