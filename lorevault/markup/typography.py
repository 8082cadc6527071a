#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Typography
==========
Straight quotes to typographic quotes, applied once when a page is saved so
every stored version keeps the punctuation it was saved with.

Code (fenced and inline), HTML tags, wiki links and template invocations are
left untouched: their quotes are syntax, not prose.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re

from .spans import extract_blocks, restore_blocks


_PROTECTED = [
    ("FENCE", re.compile(r"^(```|~~~).*?^\1[ \t]*$", re.MULTILINE | re.DOTALL)),
    ("CODE",  re.compile(r"`[^`\n]+`")),
    ("LINK",  re.compile(r"\[\[.*?\]\]", re.DOTALL)),
    ("TMPL",  re.compile(r"\{\{.*?\}\}", re.DOTALL)),
    ("HTML",  re.compile(r"<[^<>\n]+>")),
]

_OPENING = r"(^|[\s(\[{—–-])"

_DOUBLE_OPEN_RE  = re.compile(_OPENING + r'"', re.MULTILINE)
_SINGLE_OPEN_RE  = re.compile(_OPENING + r"'", re.MULTILINE)


# -----------------------------------------------------------------------------

def smarten(text: str) -> str:
    """Replace straight quotes in prose with curly ones.

    A quote at the start of a line or after whitespace or an opening bracket
    opens; every other quote closes.  Single closing quotes double as
    apostrophes (``don’t``, ``’90s``).
    """
    if '"' not in text and "'" not in text:
        return text

    layers = []
    for prefix, pattern in _PROTECTED:
        extracted = extract_blocks(text, pattern, prefix)
        text = extracted.text
        layers.append(extracted.blocks)

    text = _DOUBLE_OPEN_RE.sub(lambda m: m.group(1) + "“", text)
    text = text.replace('"', "”")
    text = _SINGLE_OPEN_RE.sub(lambda m: m.group(1) + "‘", text)
    text = text.replace("'", "’")

    for blocks in reversed(layers):
        text = restore_blocks(text, blocks)
    return text


# -----------------------------------------------------------------------------
