#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Span helpers
============
Two primitives shared by every markup stage:

  - ``match_all``      : every non-overlapping match of a pattern, with its
                         start index, scanning left to right.
  - ``extract_blocks`` : swap matched spans for ``####PREFIX0001####``
                         sentinels so a later naive transform (``split('|')``
                         and friends) cannot see inside them.
                         ``restore_blocks`` puts them back.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Pattern, Union


PatternLike = Union[str, Pattern[str]]

_DEFAULT_FLAGS = re.MULTILINE | re.DOTALL


# -----------------------------------------------------------------------------

def compile_pattern(pattern: PatternLike) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern, _DEFAULT_FLAGS)
    return pattern


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class SpanMatch:
    text:  str
    index: int

    @property
    def end(self) -> int:
        return self.index + len(self.text)


# -----------------------------------------------------------------------------

def match_all(text: str, pattern: PatternLike) -> list[SpanMatch]:
    """Return every match of *pattern* in *text* with its start index.

    Matches never overlap; scanning resumes right after the end of the
    previous match, so abutting matches are all found.
    """
    regex = compile_pattern(pattern)
    return [SpanMatch(m.group(0), m.start()) for m in regex.finditer(text)]


# -----------------------------------------------------------------------------

@dataclass
class Blocks:
    text:   str
    blocks: list[tuple[str, str]] = field(default_factory=list)


def make_placeholder(prefix: str, num: int) -> str:
    return f"####{prefix}{num:04d}####"


# -----------------------------------------------------------------------------

def extract_blocks(text: str, pattern: PatternLike, prefix: str) -> Blocks:
    """Replace each match of *pattern* with a unique sentinel.

    Returns the rewritten text and the ordered ``(placeholder, original)``
    pairs needed by ``restore_blocks``.
    """
    regex  = compile_pattern(pattern)
    blocks: list[tuple[str, str]] = []

    def _swap(m: re.Match) -> str:
        placeholder = make_placeholder(prefix, len(blocks) + 1)
        blocks.append((placeholder, m.group(0)))
        return placeholder

    return Blocks(regex.sub(_swap, text), blocks)


# -----------------------------------------------------------------------------

def restore_blocks(text: str, blocks: list[tuple[str, str]]) -> str:
    """Exact inverse of ``extract_blocks``.

    When two passes were made (e.g. links first, then templates whose text
    already holds link sentinels), restore the later list first.
    """
    for placeholder, original in reversed(blocks):
        text = text.replace(placeholder, original)
    return text


# -----------------------------------------------------------------------------
