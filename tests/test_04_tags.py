#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for transclusion tag stripping."""
# -----------------------------------------------------------------------------

from __future__ import annotations

from lorevault.markup.tags import render_tags


def test_strip_removes_tag_and_content():
    assert render_tags("Hello<noinclude> world</noinclude>!", "<noinclude>") == "Hello!"


def test_unwrap_keeps_content():
    assert render_tags("Hello<noinclude> world</noinclude>!", "noinclude", unwrap=True) == "Hello world!"


def test_match_is_case_sensitive():
    text = "<NoInclude>x</NoInclude>"
    assert render_tags(text, "noinclude") == text


def test_match_is_non_greedy_and_multiline():
    assert render_tags("<a>1</a>2<a>\n3\n</a>", "a") == "2"


def test_other_tags_untouched():
    text = "<includeonly>a</includeonly><noinclude>b</noinclude>"
    assert render_tags(text, "includeonly") == "<noinclude>b</noinclude>"
