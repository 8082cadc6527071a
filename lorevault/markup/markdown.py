#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Markdown renderer
=================
The last stage of the pipeline: fully expanded, secret-filtered and
link-resolved markup becomes HTML.

  - mistune 3 with the table, strikethrough and url plugins
  - raw HTML is sanitised with nh3; the allowlist keeps what the earlier
    stages emit (anchors, file embeds, secret placeholders)
  - fenced code is highlighted with Pygments
  - every heading gets a unique ``id`` for deep-linking
  - empty elements left behind by removed secrets are cleaned up
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import html as _html
import re

import mistune
import nh3
from mistune.plugins.formatting import strikethrough
from mistune.plugins.table import table
from mistune.plugins.url import url
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound


_HEADING_RE    = re.compile(r"<(h[1-6])>(.*?)</\1>", re.IGNORECASE | re.DOTALL)
_STRIP_TAGS_RE = re.compile(r"<[^>]+>")

_EMPTY_TAGS = ("p", "span", "strong", "em", "li", "ul", "ol", "section", "div", "blockquote")
_EMPTY_RE   = re.compile(r"<(" + "|".join(_EMPTY_TAGS) + r")(\s[^>]*)?>\s*</\1>", re.IGNORECASE)

ALLOWED_TAGS = {
    "h1", "h2", "h3", "h4", "h5", "h6",
    "p", "br", "hr", "a", "img", "span", "div", "small",
    "ul", "ol", "li", "dl", "dt", "dd", "blockquote",
    "em", "strong", "del", "code", "pre", "sup", "sub",
    "table", "thead", "tbody", "tr", "th", "td",
    "audio", "video", "source",
    "svg", "g", "path", "circle", "ellipse", "line", "polyline", "polygon", "rect",
    "text", "tspan", "title", "desc", "defs",
    "secret",
}

_SVG_ATTRS = {
    "viewBox", "width", "height", "fill", "stroke", "stroke-width", "transform",
    "d", "x", "y", "x1", "y1", "x2", "y2", "cx", "cy", "r", "rx", "ry", "points",
}

ALLOWED_ATTRIBUTES = {
    "a":      {"href", "title", "class"},
    "img":    {"src", "alt", "title"},
    "audio":  {"src", "controls"},
    "video":  {"controls"},
    "source": {"src", "type"},
    "span":   {"class"},
    "div":    {"class"},
    "code":   {"class"},
    "th":     {"align"},
    "td":     {"align"},
    "secret": {"codename", "conditions"},
    **{f"h{n}": {"id"} for n in range(1, 7)},
    **{tag: _SVG_ATTRS for tag in (
        "svg", "g", "path", "circle", "ellipse", "line", "polyline", "polygon", "rect", "text", "tspan",
    )},
}

ALLOWED_URL_SCHEMES = {"http", "https", "mailto"}


# -----------------------------------------------------------------------------

def highlight_code(code: str, lang: str) -> str:
    """Highlight *code* with Pygments; unknown languages render as plain text."""
    try:
        lexer = get_lexer_by_name(lang.strip(), stripall=True) if lang.strip() else TextLexer()
    except ClassNotFound:
        lexer = TextLexer()
    formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
    return highlight(code, lexer, formatter)


class _HighlightRenderer(mistune.HTMLRenderer):

    def codespan(self, code: str) -> str:
        return f"<code>{_html.escape(code)}</code>"

    def block_code(self, code: str, **kwargs) -> str:
        info = kwargs.get("info") or ""
        lang = info.split()[0] if info else ""
        if lang:
            return highlight_code(code, lang)
        return f"<pre><code>{_html.escape(code)}</code></pre>\n"


def _make_md_renderer():
    return mistune.create_markdown(
        renderer=_HighlightRenderer(escape=False),
        plugins=[table, strikethrough, url],
    )


_md_renderer = None


def _get_md_renderer():
    global _md_renderer
    if _md_renderer is None:
        _md_renderer = _make_md_renderer()
    return _md_renderer


# -----------------------------------------------------------------------------

def slugify_anchor(text: str) -> str:
    """Convert heading text to a URL-safe anchor ID."""
    text = _STRIP_TAGS_RE.sub("", _html.unescape(text))
    text = text.strip().lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-") or "section"


def add_heading_ids(markup: str) -> str:
    used: dict[str, int] = {}

    def _id(m: re.Match) -> str:
        base  = slugify_anchor(m.group(2))
        count = used.get(base, 0)
        used[base] = count + 1
        anchor = base if count == 0 else f"{base}-{count}"
        return f'<{m.group(1)} id="{anchor}">{m.group(2)}</{m.group(1)}>'

    return _HEADING_RE.sub(_id, markup)


def remove_empty_tags(markup: str) -> str:
    """Drop empty elements until none are left (removal can empty a parent)."""
    while True:
        cleaned = _EMPTY_RE.sub("", markup)
        if cleaned == markup:
            return cleaned
        markup = cleaned


# -----------------------------------------------------------------------------

def sanitize(markup: str) -> str:
    """Strip every tag and attribute that is not on the allowlists."""
    return nh3.clean(
        markup,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        url_schemes=ALLOWED_URL_SCHEMES,
        link_rel=None,
    )


def render_markdown(text: str) -> str:
    markup = _get_md_renderer()(text)
    markup = sanitize(markup)
    markup = add_heading_ids(markup)
    return remove_empty_tags(markup).strip()


# -----------------------------------------------------------------------------
