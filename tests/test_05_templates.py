#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for template parameters, conditionals and expansion."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging

import pytest

from lorevault.markup import Viewer
from lorevault.markup.templates import (
    TemplateEngine, TemplateInstance, TemplateParams,
    parse_instance, parse_instances, parse_params, render_conditionals, substitute,
)


ANON = Viewer.anonymous()
GM   = Viewer.loremaster()


# ── Parameters ────────────────────────────────────────────────────────────────

def test_explicit_order_wins():
    assert parse_params("  2=world\n  |1=hello").ordered == ["hello", "world"]


def test_positional_values_fill_gaps():
    assert parse_params("a|2=b|c").ordered == ["a", "b", "c"]


def test_unfilled_slots_are_none():
    params = parse_params("3=c")
    assert params.ordered == [None, None, "c"]
    assert params.get("1") is None
    assert params.get("3") == "c"


def test_repeated_key_keeps_last_value():
    assert parse_params("1=a|1=b").ordered == ["b"]
    assert parse_params("k=a|k=b").named == {"k": "b"}


def test_value_splits_on_first_equals():
    assert parse_params("expr=a=b").named == {"expr": "a=b"}


def test_pipes_inside_links_do_not_split():
    params = parse_params("link=[[Test Page | Alias]]")
    assert params.named == {"link": "[[Test Page | Alias]]"}


def test_pipes_inside_nested_invocations_do_not_split():
    params = parse_params("x={{Inner|1|2}}|y")
    assert params.named == {"x": "{{Inner|1|2}}"}
    assert params.ordered == ["y"]


def test_empty_params():
    assert parse_params(None) == TemplateParams()
    assert parse_params("") == TemplateParams()


# ── Instances ─────────────────────────────────────────────────────────────────

def test_parse_instance():
    inst = parse_instance("{{T|2=world|1=hello}}")
    assert inst.name == "T"
    assert inst.params.ordered == ["hello", "world"]


def test_parse_instances_positions():
    text = "a {{One}} b {{Two|x}} c"
    found = parse_instances(text)
    assert [i.name for i in found] == ["One", "Two"]
    assert [text[i.start:i.end] for i in found] == ["{{One}}", "{{Two|x}}"]


def test_parameter_references_are_not_instances():
    assert parse_instances("This is my {{{1}}}.") == []


def test_block_form_passes_content():
    found = parse_instances("{{Box|title=Hi}}inner text{{/Box}} after")
    assert len(found) == 1
    assert found[0].params.named == {"title": "Hi", "content": "inner text"}
    assert found[0].source == "{{Box|title=Hi}}inner text{{/Box}}"


def test_block_form_closer_matches_names_with_spaces():
    found = parse_instances("{{My Box}}inner{{/My Box}}")
    assert len(found) == 1
    assert found[0].params.named == {"content": "inner"}
    assert found[0].source == "{{My Box}}inner{{/My Box}}"
    assert parse_instance("{{My Box}}x{{ / My Box }}").params.named == {"content": "x"}


# ── Conditionals ──────────────────────────────────────────────────────────────

def test_if_with_fallback():
    body = "{{#IF|name}}Hi {{{name}}}{{#ELSIF}}Nobody{{#ENDIF}}"
    assert render_conditionals(body, TemplateParams(named={"name": "Bob"})) == "Hi {{{name}}}"
    assert render_conditionals(body, TemplateParams()) == "Nobody"


def test_elsif_chain_with_equality():
    body = "{{#IF|kind=orc}}Orc{{#ELSIF|kind=elf}}Elf{{#ELSE}}Other{{#ENDIF}}"
    assert render_conditionals(body, TemplateParams(named={"kind": "orc"})) == "Orc"
    assert render_conditionals(body, TemplateParams(named={"kind": "elf"})) == "Elf"
    assert render_conditionals(body, TemplateParams(named={"kind": "imp"})) == "Other"


def test_nested_conditionals():
    body = "{{#IF|a}}A{{#IF|b}}B{{#ENDIF}}{{#ENDIF}}"
    assert render_conditionals(body, TemplateParams(named={"a": "1"})) == "A"
    assert render_conditionals(body, TemplateParams(named={"a": "1", "b": "1"})) == "AB"
    assert render_conditionals(body, TemplateParams()) == ""


def test_numbered_condition():
    body = "{{#IF|1}}one{{#ENDIF}}"
    assert render_conditionals(body, TemplateParams(["x"])) == "one"


def test_unbalanced_directive_stays_literal():
    body = "{{#IF|a}}dangling"
    assert render_conditionals(body, TemplateParams(named={"a": "1"})) == body


# ── Substitution ──────────────────────────────────────────────────────────────

def test_substitute():
    assert substitute("This is my {{{1}}}.", TemplateParams(["template"])) == "This is my template."


def test_substitute_defaults():
    params = TemplateParams(named={"set": "yes"})
    assert substitute("{{{set|no}}} {{{missing|none}}} [{{{gone}}}]", params) == "yes none []"


def test_only_ascii_digits_are_positions():
    params = parse_params("²=x|1=a")
    assert params.named == {"²": "x"}
    assert params.ordered == ["a"]
    assert params.get("²") == "x"
    assert substitute("[{{{²}}}][{{{٣|d}}}]", TemplateParams()) == "[][d]"


# ── Expansion ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_expand_simple_template(store):
    store.add("Template:Test", "This is my {{{1}}}.")
    engine = TemplateEngine(store)
    assert await engine.expand("{{Test|template}}", ANON) == "This is my template."


@pytest.mark.asyncio
async def test_expand_transclusion_tags(store):
    store.add("Template:Doc", "<noinclude>Docs</noinclude><includeonly>Shown</includeonly>")
    engine = TemplateEngine(store)
    assert await engine.expand("[{{Doc}}]", ANON) == "[Shown]"


@pytest.mark.asyncio
async def test_expand_nested_templates(store):
    store.add("Template:Outer", "[{{Inner|{{{1}}}}}]")
    store.add("Template:Inner", "<{{{1}}}>")
    engine = TemplateEngine(store)
    assert await engine.expand("{{Outer|x}}", ANON) == "[<x>]"


@pytest.mark.asyncio
async def test_params_expand_in_callers_context(store):
    store.add("Template:Inner", "<{{{1}}}>")
    store.add("Template:Name", "Bob")
    engine = TemplateEngine(store)
    assert await engine.expand("{{Inner|{{Name}}}}", ANON) == "<Bob>"


@pytest.mark.asyncio
async def test_block_form_expansion(store):
    store.add("Template:Box", "<div>{{{content}}}</div>")
    engine = TemplateEngine(store)
    assert await engine.expand("{{Box}}hello{{/Box}}", ANON) == "<div>hello</div>"


@pytest.mark.asyncio
async def test_block_form_with_spaced_name(store):
    store.add("Template:My Box", "<div>{{{content}}}</div>")
    engine = TemplateEngine(store)
    assert await engine.expand("{{My Box}}inner{{/My Box}}", ANON) == "<div>inner</div>"


@pytest.mark.asyncio
async def test_missing_template_expands_to_nothing(store):
    engine = TemplateEngine(store)
    assert await engine.expand("a{{Nope}}b", ANON) == "ab"


@pytest.mark.asyncio
async def test_self_inclusion_is_cut_off(store, caplog):
    store.add("Template:Loop", "a{{Loop}}")
    engine = TemplateEngine(store)
    with caplog.at_level(logging.WARNING, logger="lorevault.markup.templates"):
        assert await engine.expand("{{Loop}}", ANON) == "a"
    assert "includes itself" in caplog.text


@pytest.mark.asyncio
async def test_depth_limit(store):
    store.add("Template:A", "1{{B}}")
    store.add("Template:B", "2{{C}}")
    store.add("Template:C", "3")
    assert await TemplateEngine(store, max_depth=2).expand("{{A}}", ANON) == "12"
    assert await TemplateEngine(store, max_depth=3).expand("{{A}}", ANON) == "123"


@pytest.mark.asyncio
async def test_each_template_is_looked_up_once_per_expansion(store):
    store.add("Template:A", "{{B}}{{B}}")
    store.add("Template:B", "{{C}}{{C}}")
    store.add("Template:C", "c")
    engine = TemplateEngine(store)
    assert await engine.expand("{{A}}", ANON) == "cccc"
    assert sorted(store.lookups) == ["Template:A", "Template:B", "Template:C"]


@pytest.mark.asyncio
async def test_expansion_count_is_capped(store, caplog):
    store.add("Template:A", "{{B}}{{B}}{{B}}")
    store.add("Template:B", "b")
    engine = TemplateEngine(store, max_expansions=3)
    with caplog.at_level(logging.WARNING, logger="lorevault.markup.templates"):
        assert await engine.expand("{{A}}", ANON) == "bb"
    assert "stopped after 3" in caplog.text


@pytest.mark.asyncio
async def test_secret_template_is_viewer_scoped(store):
    store.add("Template:Plot", "the twist", is_secret=True)
    engine = TemplateEngine(store)
    assert await engine.expand("{{Plot}}", ANON) == ""
    assert await engine.expand("{{Plot}}", GM) == "the twist"


@pytest.mark.asyncio
async def test_custom_namespace(store):
    store.add("Snippet:Hi", "hello")
    engine = TemplateEngine(store, namespace="Snippet")
    assert await engine.expand("{{Hi}}", ANON) == "hello"


# ── Listings ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_find_pages_that_use(store):
    store.add("Template:Test", "x")
    store.add("Page A", "{{Test|x}}")
    store.add("Page B", "{{Testing}}")
    store.add("Page C", "{{ Test }}")
    engine = TemplateEngine(store)
    pages = await engine.find_pages_that_use("Test", ANON)
    assert [p.title for p in pages] == ["Page A", "Page C"]


@pytest.mark.asyncio
async def test_list_templates_walks_dependencies(store):
    outer = store.add("Template:Outer", "[{{Inner}}] {{Inner}}")
    inner = store.add("Template:Inner", "leaf")
    engine = TemplateEngine(store)
    usages = await engine.list_templates(TemplateInstance("Outer"), ANON)
    assert [(u.page_id, u.name) for u in usages] == [
        (outer.id, "Outer"), (inner.id, "Inner"), (inner.id, "Inner"),
    ]
    assert usages[0].path == "template-outer"


@pytest.mark.asyncio
async def test_list_templates_unknown_name(store):
    engine = TemplateEngine(store)
    assert await engine.list_templates(TemplateInstance("Nope"), ANON) == []
