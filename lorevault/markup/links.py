#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Link resolver
=============
Rewrites ``[[Target]]``, ``[[Target|Text]]`` and ``[[:Target|Text]]`` into
anchors, resolving each target against the pages the viewer may see.

  existing page  ->  <a href="/{path}" title="{title}">{text}</a>
  missing page   ->  <a href="/create?title={target}" class="new">{text}</a>

``Category:``, ``File:`` and ``Image:`` links are left for their own stages.
Letters directly after a link (``[[Save]]d``) are pulled inside the anchor.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import quote

from .secrets import Viewer, is_in_secret
from .spans import SpanMatch
from .store import PageRecord, PageStore, bounded

log = logging.getLogger(__name__)


_LINK_RE     = re.compile(r"\[\[(?!\s*(?:Category|File|Image):)(.*?)\]\]([A-Za-z'’]*)", re.DOTALL | re.IGNORECASE)
_CATEGORY_RE = re.compile(r"\[\[\s*Category:([^\]|]+)(?:\|([^\]]*))?\]\]", re.IGNORECASE)

# Characters encodeURIComponent leaves alone besides alphanumerics and -_.
_URI_SAFE = "!~*'()"


# -----------------------------------------------------------------------------

@dataclass
class LinkRef:
    title:  str
    page:   Optional[PageRecord]
    text:   str
    # codename of the enclosing secret, True for an unnamed one, else False
    secret: Union[str, bool] = False


@dataclass
class LinkResult:
    text:  str
    links: list[LinkRef] = field(default_factory=list)


@dataclass(frozen=True)
class Category:
    name: str
    sort: str


# -----------------------------------------------------------------------------

def _anchor(page: Optional[PageRecord], target: str, text: str) -> str:
    if page is not None:
        return f'<a href="/{page.path}" title="{html.escape(page.title)}">{text}</a>'
    return f'<a href="/create?title={quote(target.strip(), safe=_URI_SAFE)}" class="new">{text}</a>'


async def render_links(
    text: str,
    store: PageStore,
    viewer: Viewer,
    timeout: Optional[float] = None,
) -> LinkResult:
    """Resolve every plain wiki link in *text* for *viewer*.

    Secret wrappers must still be present in *text* so each link can report
    which secret (if any) it sits in.
    """
    result = LinkResult(text)
    resolved: dict[str, Optional[PageRecord]] = {}
    out: list[str] = []
    pos = 0

    for m in _LINK_RE.finditer(text):
        inside = m.group(1)
        raw_target, pipe, alias = inside.partition("|")
        title = raw_target[1:] if raw_target.startswith(":") else raw_target
        title = title.strip()
        label = (alias if pipe else title) + m.group(2)

        if title not in resolved:
            resolved[title] = await bounded(
                store.find_by_title(title, viewer), timeout, what=f"link lookup {title!r}",
            ) if title else None
        page = resolved[title]

        link_span = SpanMatch(m.group(0), m.start())
        result.links.append(LinkRef(title, page, label, is_in_secret(link_span, text)))

        out.append(text[pos:m.start()])
        out.append(_anchor(page, raw_target.lstrip(":"), label))
        pos = m.end()

    out.append(text[pos:])
    result.text = "".join(out)
    return result


# -----------------------------------------------------------------------------

def extract_categories(text: str) -> tuple[str, list[Category]]:
    """Strip ``[[Category:Name|sort]]`` markers and return them in order.

    The sort key defaults to the category name.  Repeated categories
    (compared case-insensitively) are reported once.
    """
    seen: set[str] = set()
    categories: list[Category] = []

    def _collect(m: re.Match) -> str:
        name = m.group(1).strip()
        sort = (m.group(2) or "").strip() or name
        if name and name.lower() not in seen:
            seen.add(name.lower())
            categories.append(Category(name, sort))
        return ""

    return _CATEGORY_RE.sub(_collect, text), categories


# -----------------------------------------------------------------------------
