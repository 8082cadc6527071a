#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Tag stripping
=============
Remove, or unwrap, every ``<tag>...</tag>`` pair for one exact tag name.

Used for transclusion markers:

  <noinclude>   shown on the page itself, dropped when transcluded
  <includeonly> dropped on the page itself, kept when transcluded
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re


# -----------------------------------------------------------------------------

def render_tags(text: str, tag: str, unwrap: bool = False) -> str:
    """Strip every *tag* pair and its contents, or just the tags when *unwrap*.

    *tag* may be given bare (``noinclude``) or as its opening token
    (``<noinclude>``).  Matching is case-sensitive and non-greedy, and spans
    line breaks.
    """
    name  = tag.strip().lstrip("<").rstrip(">")
    if not name:
        return text
    regex = re.compile(f"<{re.escape(name)}>(.*?)</{re.escape(name)}>", re.DOTALL)
    return regex.sub(lambda m: m.group(1) if unwrap else "", text)


# -----------------------------------------------------------------------------
