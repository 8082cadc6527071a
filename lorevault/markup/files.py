#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
File embedding
==============
``[[File:Name|alt]]`` and ``[[Image:Name|alt]]`` embed the file attached to
the page titled ``File:Name`` / ``Image:Name``.  How it is embedded depends
on the file's media kind:

  IMAGE     <img src="..." alt="..." />
  SVG       the SVG document itself, inlined
  AUDIO     <audio controls> with a download link fallback
  VIDEO     <video controls> with a download link fallback
  DOWNLOAD  a download link with the MIME type and a human-readable size

References to pages that do not exist, or carry no file, are left as typed.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import html
import logging
import math
import re
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

from .secrets import Viewer
from .store import BlobStore, FileInfo, PageRecord, PageStore, bounded

log = logging.getLogger(__name__)

SvgFetcher = Callable[[str, Optional[float]], Awaitable[Optional[str]]]
_Fetch     = Callable[[], Awaitable[Optional[str]]]


_FILE_RE    = re.compile(r"\[\[\s*(File|Image):(.*?)(?:\|(.*?))?\]\]", re.DOTALL | re.IGNORECASE)
_PROLOG_RE  = re.compile(r"<\?xml.*?\?>", re.DOTALL)
_DOCTYPE_RE = re.compile(r"<!DOCTYPE.*?>", re.DOTALL | re.IGNORECASE)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Media kinds
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class MediaKind(str, Enum):
    IMAGE    = "image"
    SVG      = "svg"
    AUDIO    = "audio"
    VIDEO    = "video"
    DOWNLOAD = "download"


MEDIA_KINDS: dict[str, MediaKind] = {
    "image/gif":       MediaKind.IMAGE,
    "image/jpeg":      MediaKind.IMAGE,
    "image/png":       MediaKind.IMAGE,
    "image/webp":      MediaKind.IMAGE,
    "image/avif":      MediaKind.IMAGE,
    "image/svg+xml":   MediaKind.SVG,
    "audio/aac":       MediaKind.AUDIO,
    "audio/mpeg":      MediaKind.AUDIO,
    "audio/ogg":       MediaKind.AUDIO,
    "audio/wav":       MediaKind.AUDIO,
    "audio/webm":      MediaKind.AUDIO,
    "video/mp4":       MediaKind.VIDEO,
    "video/mpeg":      MediaKind.VIDEO,
    "video/ogg":       MediaKind.VIDEO,
    "video/webm":      MediaKind.VIDEO,
}


def media_kind(mimetype: Optional[str]) -> MediaKind:
    key = (mimetype or "").split(";", 1)[0].strip().lower()
    return MEDIA_KINDS.get(key, MediaKind.DOWNLOAD)


# -----------------------------------------------------------------------------

def format_size(size: int) -> str:
    """Human-readable byte count, base 1000, one decimal rounded half-up."""
    k = size / 1000
    m = k / 1000
    g = m / 1000
    if g > 1:
        value, unit = g, "GB"
    elif m > 1:
        value, unit = m, "MB"
    else:
        value, unit = k, "kB"
    rounded = math.floor(value * 10 + 0.5) / 10
    if rounded == int(rounded):
        return f"{int(rounded)} {unit}"
    return f"{rounded} {unit}"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Renderers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _download_link(info: FileInfo, text: str) -> str:
    return (
        f'<a href="{html.escape(info.url)}" class="download">\n'
        f'<span class="name">{text}</span>\n'
        f'<small>{info.mimetype}; {format_size(info.size)}</small>\n'
        f'</a>'
    )


async def _download(info: FileInfo, text: str, fetch: _Fetch) -> str:
    return _download_link(info, text)


async def _image(info: FileInfo, text: str, fetch: _Fetch) -> str:
    return f'<img src="{html.escape(info.url)}" alt="{html.escape(text)}" />'


async def _audio(info: FileInfo, text: str, fetch: _Fetch) -> str:
    return f'<audio controls src="{html.escape(info.url)}">\n{_download_link(info, text)}\n</audio>'


async def _video(info: FileInfo, text: str, fetch: _Fetch) -> str:
    return (
        f'<video controls>\n'
        f'<source src="{html.escape(info.url)}" type="{info.mimetype}" />\n'
        f'{_download_link(info, text)}\n'
        f'</video>'
    )


def clean_svg(document: str) -> str:
    document = _PROLOG_RE.sub("", document)
    document = _DOCTYPE_RE.sub("", document)
    return document.strip()


async def _svg(info: FileInfo, text: str, fetch: _Fetch) -> str:
    document = await fetch()
    return clean_svg(document) if document else ""


RENDERERS: dict[MediaKind, Callable[[FileInfo, str, _Fetch], Awaitable[str]]] = {
    MediaKind.IMAGE:    _image,
    MediaKind.SVG:      _svg,
    MediaKind.AUDIO:    _audio,
    MediaKind.VIDEO:    _video,
    MediaKind.DOWNLOAD: _download,
}


# -----------------------------------------------------------------------------

async def fetch_svg(
    url: str,
    timeout: Optional[float] = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """GET an SVG document.  Any transport or HTTP error yields None."""
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            return resp.text
    except httpx.HTTPError as exc:
        log.warning("SVG fetch failed for %s: %s", url, exc)
        return None


async def render_file(
    info: FileInfo,
    text: str,
    fetcher: SvgFetcher = fetch_svg,
    timeout: Optional[float] = None,
) -> str:
    async def _fetch() -> Optional[str]:
        return await fetcher(info.url, timeout)
    return await RENDERERS[media_kind(info.mimetype)](info, text, _fetch)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Transform
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def render_files(
    text: str,
    store: PageStore,
    viewer: Viewer,
    blobs: Optional[BlobStore] = None,
    fetcher: SvgFetcher = fetch_svg,
    lookup_timeout: Optional[float] = None,
    fetch_timeout: Optional[float] = None,
) -> str:
    """Replace each file reference in *text* with its embed markup.

    The file comes from *blobs* when given, otherwise from the page record.
    """
    out: list[str] = []
    pos = 0
    for m in _FILE_RE.finditer(text):
        prefix, name = m.group(1), m.group(2).strip()
        title = f"{prefix.capitalize()}:{name}"
        page: Optional[PageRecord] = await bounded(
            store.find_by_title(title, viewer), lookup_timeout, what=f"file lookup {title!r}",
        )
        if page is None:
            continue
        info = await blobs.file_for(page) if blobs is not None else page.file
        if info is None:
            continue
        params = [p.strip() for p in (m.group(3) or "").split("|")]
        alt = params[0] if params[0] else name
        out.append(text[pos:m.start()])
        out.append(await render_file(info, alt, fetcher, fetch_timeout))
        pos = m.end()
    out.append(text[pos:])
    return "".join(out)


# -----------------------------------------------------------------------------
