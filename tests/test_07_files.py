#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for file embeds: media kinds, sizes, renderers and SVG fetching."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import httpx
import pytest

from lorevault.markup import FileInfo, Viewer
from lorevault.markup.files import (
    RENDERERS, MediaKind, clean_svg, fetch_svg, format_size, media_kind, render_file, render_files,
)


ANON = Viewer.anonymous()


async def _no_fetch(url, timeout):
    raise AssertionError("no fetch expected")


# ── Helpers ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("size, expected", [
    (500,           "0.5 kB"),
    (1000,          "1 kB"),
    (12_345,        "12.3 kB"),
    (12_345_678,    "12.3 MB"),
    (2_500_000_000, "2.5 GB"),
])
def test_format_size(size, expected):
    assert format_size(size) == expected


@pytest.mark.parametrize("mimetype, kind", [
    ("image/png",               MediaKind.IMAGE),
    ("image/svg+xml",           MediaKind.SVG),
    ("audio/mpeg; codecs=mp3",  MediaKind.AUDIO),
    ("VIDEO/MP4",               MediaKind.VIDEO),
    ("text/plain",              MediaKind.DOWNLOAD),
    (None,                      MediaKind.DOWNLOAD),
])
def test_media_kind(mimetype, kind):
    assert media_kind(mimetype) == kind


def test_every_media_kind_has_a_renderer():
    assert set(RENDERERS) == set(MediaKind)


def test_clean_svg_strips_prolog_and_doctype():
    doc = '<?xml version="1.0"?>\n<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN">\n<svg><g/></svg>\n'
    assert clean_svg(doc) == "<svg><g/></svg>"


# ── Renderers ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_download_markup():
    info = FileInfo("https://example.com/test.txt", "plain/text", 12_345)
    assert await render_file(info, "Test Text File", _no_fetch) == (
        '<a href="https://example.com/test.txt" class="download">\n'
        '<span class="name">Test Text File</span>\n'
        '<small>plain/text; 12.3 kB</small>\n'
        '</a>'
    )


@pytest.mark.asyncio
async def test_audio_and_video_fall_back_to_download_link():
    audio = await render_file(FileInfo("https://x/a.ogg", "audio/ogg", 10), "Song", _no_fetch)
    video = await render_file(FileInfo("https://x/v.mp4", "video/mp4", 10), "Clip", _no_fetch)
    assert audio.startswith('<audio controls src="https://x/a.ogg">')
    assert 'class="download"' in audio
    assert '<source src="https://x/v.mp4" type="video/mp4" />' in video
    assert 'class="download"' in video


@pytest.mark.asyncio
async def test_svg_is_inlined():
    async def fetcher(url, timeout):
        assert url == "https://x/map.svg"
        return '<?xml version="1.0"?>\n<svg></svg>'

    info = FileInfo("https://x/map.svg", "image/svg+xml", 10)
    assert await render_file(info, "Map", fetcher) == "<svg></svg>"


@pytest.mark.asyncio
async def test_failed_svg_fetch_renders_nothing():
    async def fetcher(url, timeout):
        return None

    info = FileInfo("https://x/map.svg", "image/svg+xml", 10)
    assert await render_file(info, "Map", fetcher) == ""


# ── Transform ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_image_embed(store):
    store.add("File:Map", file=FileInfo("https://example.com/map.png", "image/png", 1000))
    out = await render_files("Look: [[File:Map|The map]]", store, ANON, fetcher=_no_fetch)
    assert out == 'Look: <img src="https://example.com/map.png" alt="The map" />'


@pytest.mark.asyncio
async def test_image_prefix_and_default_alt(store):
    store.add("Image:Portrait", file=FileInfo("https://example.com/p.jpg", "image/jpeg", 1))
    out = await render_files("[[Image:Portrait]]", store, ANON, fetcher=_no_fetch)
    assert out == '<img src="https://example.com/p.jpg" alt="Portrait" />'


@pytest.mark.asyncio
async def test_download_embed(store):
    store.add("File:Test Text File",
              file=FileInfo("https://example.com/test.txt", "plain/text", 12_345))
    out = await render_files("[[File:Test Text File]]", store, ANON, fetcher=_no_fetch)
    assert '<span class="name">Test Text File</span>' in out
    assert "<small>plain/text; 12.3 kB</small>" in out


@pytest.mark.asyncio
async def test_missing_file_is_left_as_typed(store):
    store.add("File:Empty")
    text = "[[File:Nowhere]] [[File:Empty]]"
    assert await render_files(text, store, ANON, fetcher=_no_fetch) == text


@pytest.mark.asyncio
async def test_blob_store_supplies_the_file(store):
    store.add("File:Map")

    class Blobs:
        async def file_for(self, page):
            return FileInfo(f"https://blobs/{page.path}.png", "image/png", 1)

    out = await render_files("[[File:Map]]", store, ANON, blobs=Blobs(), fetcher=_no_fetch)
    assert out == '<img src="https://blobs/file-map.png" alt="Map" />'


# ── Fetching ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fetch_svg_returns_body():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<svg/>"))
    assert await fetch_svg("https://x/map.svg", transport=transport) == "<svg/>"


@pytest.mark.asyncio
async def test_fetch_svg_error_returns_none():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    assert await fetch_svg("https://x/map.svg", transport=transport) is None
