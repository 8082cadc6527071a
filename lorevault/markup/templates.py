#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Template engine
===============
Expands template invocations against pages in the template namespace.

Syntax
------
  {{Name}}                           invoke ``Template:Name``
  {{Name|a|b}}                       ordered parameters  -> {{{1}}}, {{{2}}}
  {{Name|2=b|1=a}}                   explicitly ordered parameters
  {{Name|key=value}}                 named parameter     -> {{{key}}}
  {{{key|fallback}}}                 parameter reference with a default
  {{Name|...}}inner{{/Name}}         block form; ``inner`` becomes {{{content}}}
  {{#IF|key}}A{{#ELSIF|k=v}}B{{#ELSIF}}C{{#ENDIF}}
                                     conditionals; a bare ELSIF (or ELSE) is
                                     the fallback branch

Inside a template body ``<includeonly>`` is unwrapped and ``<noinclude>`` is
dropped.  Expansion is depth-first, left to right.  A template that
(transitively) includes itself, or nesting deeper than ``max_depth``,
expands to an empty string.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

from .secrets import Viewer
from .spans import extract_blocks, restore_blocks
from .store import PageRecord, PageStore, bounded
from .tags import render_tags

log = logging.getLogger(__name__)


_LINK_RE      = re.compile(r"\[\[.*?\]\]", re.DOTALL)
_PARAM_REF_RE = re.compile(r"\{\{\{\s*([^{}|]*?)\s*(?:\|([^{}]*))?\}\}\}")
_DIRECTIVE_RE = re.compile(r"\{\{#(IF|ELSIF|ELSE|ENDIF)\s*(?:\|([^{}]*?))?\s*\}\}")
_INDEX_RE     = re.compile(r"[0-9]+")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Parameters
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class TemplateParams:
    # unfilled slots between explicit indices are None
    ordered: list[Optional[str]] = field(default_factory=list)
    named:   dict[str, str]      = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        key = key.strip()
        if _INDEX_RE.fullmatch(key):
            idx = int(key)
            if 1 <= idx <= len(self.ordered):
                return self.ordered[idx - 1]
            return None
        return self.named.get(key)


def _protect(text: str) -> tuple[str, list[list[tuple[str, str]]]]:
    """Hide links, parameter references and nested invocations behind sentinels."""
    links  = extract_blocks(text, _LINK_RE, "BRACKET")
    refs   = extract_blocks(links.text, _PARAM_REF_RE, "PARAM")
    nested: list[tuple[str, str]] = []
    out:    list[str] = []
    pos = 0
    for start, end in _brace_spans(refs.text):
        placeholder = f"####TEMPLATE{len(nested) + 1:04d}####"
        nested.append((placeholder, refs.text[start:end]))
        out.append(refs.text[pos:start])
        out.append(placeholder)
        pos = end
    out.append(refs.text[pos:])
    return "".join(out), [links.blocks, refs.blocks, nested]


def _unprotect(text: str, layers: list[list[tuple[str, str]]]) -> str:
    for blocks in reversed(layers):
        text = restore_blocks(text, blocks)
    return text


# -----------------------------------------------------------------------------

def parse_params(text: Optional[str]) -> TemplateParams:
    """Parse the ``a|b|2=c|key=value`` part of an invocation.

    Pipes inside ``[[links]]`` and nested ``{{invocations}}`` do not split.
    Explicit numeric keys win; positional values fill the remaining slots,
    lowest first.  A repeated explicit key keeps its last value.
    """
    params = TemplateParams()
    if not text:
        return params

    protected, layers = _protect(text)
    explicit:   dict[int, str] = {}
    positional: list[str] = []

    for elem in protected.split("|"):
        key, sep, value = elem.partition("=")
        if not sep:
            positional.append(_unprotect(elem.strip(), layers))
            continue
        key   = key.strip()
        value = _unprotect(value.strip(), layers)
        if _INDEX_RE.fullmatch(key) and int(key) > 0:
            explicit[int(key)] = value
        else:
            params.named[_unprotect(key, layers)] = value

    slots = dict(explicit)
    idx = 1
    for value in positional:
        while idx in slots:
            idx += 1
        slots[idx] = value
        idx += 1
    size = max(slots, default=0)
    params.ordered = [slots.get(i) for i in range(1, size + 1)]
    return params


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Instances
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class TemplateInstance:
    name:   str
    params: TemplateParams = field(default_factory=TemplateParams)
    source: str = ""
    start:  int = 0
    end:    int = 0


@dataclass(frozen=True)
class TemplateUsage:
    page_id: str
    name:    str
    path:    str


# -----------------------------------------------------------------------------

def _match_close(text: str, start: int) -> Optional[int]:
    """Index just past the ``}}`` that balances the ``{{`` at *start*."""
    depth = 0
    i = start
    while i < len(text) - 1:
        pair = text[i:i + 2]
        if pair == "{{":
            depth += 1
            i += 2
        elif pair == "}}":
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return None


def _brace_spans(text: str) -> list[tuple[int, int]]:
    """Top-level balanced ``{{...}}`` spans; an unbalanced ``{{`` is skipped."""
    spans: list[tuple[int, int]] = []
    pos = 0
    while True:
        start = text.find("{{", pos)
        if start < 0:
            return spans
        end = _match_close(text, start)
        if end is None:
            pos = start + 2
            continue
        spans.append((start, end))
        pos = end


# -----------------------------------------------------------------------------

def parse_instances(text: str) -> list[TemplateInstance]:
    """Every top-level template invocation in *text*, in order."""
    refs  = extract_blocks(text, _PARAM_REF_RE, "PARAM")
    work  = refs.text
    spans = _brace_spans(work)

    # Map positions in the protected text back onto the original text.
    def _orig(pos: int) -> int:
        return len(restore_blocks(work[:pos], refs.blocks))

    instances: list[TemplateInstance] = []
    k = 0
    while k < len(spans):
        start, end = spans[k]
        inner = work[start + 2:end - 2]
        k += 1
        if inner.startswith(("#", "/")):
            continue
        name, pipe, raw_params = inner.partition("|")
        name = name.strip()
        if not name or "\n" in name:
            continue
        params = parse_params(restore_blocks(raw_params, refs.blocks) if pipe else None)

        for j in range(k, len(spans)):
            cs, ce = spans[j]
            closer = work[cs + 2:ce - 2].strip()
            if closer.startswith("/") and closer[1:].strip() == name:
                params.named["content"] = restore_blocks(work[end:cs], refs.blocks)
                end = ce
                k = j + 1
                break

        o_start, o_end = _orig(start), _orig(end)
        instances.append(TemplateInstance(name, params, text[o_start:o_end], o_start, o_end))
    return instances


def parse_instance(source: str) -> Optional[TemplateInstance]:
    """Parse a single ``{{Name|...}}`` invocation string."""
    found = parse_instances(source)
    return found[0] if found else None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Conditionals: tokenizer and recursive descent
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class _Token:
    kind: str                # TEXT, IF, ELSIF, ELSE, ENDIF
    raw:  str
    arg:  Optional[str] = None


@dataclass
class _Branch:
    condition: Optional[str]
    body:      list["_Node"]


@dataclass
class _If:
    branches: list[_Branch]


_Node = Union[str, _If]


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    for m in _DIRECTIVE_RE.finditer(text):
        if m.start() > pos:
            tokens.append(_Token("TEXT", text[pos:m.start()]))
        arg = m.group(2).strip() if m.group(2) and m.group(2).strip() else None
        tokens.append(_Token(m.group(1), m.group(0), arg))
        pos = m.end()
    if pos < len(text):
        tokens.append(_Token("TEXT", text[pos:]))
    return tokens


class _ConditionalParser:
    """Builds a tree of text and IF nodes.  Unbalanced directives stay literal."""

    _BRANCH_END = {"ELSIF", "ELSE", "ENDIF"}

    def __init__(self, tokens: list[_Token]):
        self.tokens = tokens
        self.pos = 0

    def parse(self) -> list[_Node]:
        return self._nodes(frozenset())

    def _nodes(self, stop: frozenset) -> list[_Node]:
        nodes: list[_Node] = []
        while self.pos < len(self.tokens):
            tok = self.tokens[self.pos]
            if tok.kind in stop:
                return nodes
            if tok.kind == "IF":
                mark = self.pos
                node = self._if()
                if node is None:
                    self.pos = mark + 1
                    nodes.append(tok.raw)
                else:
                    nodes.append(node)
                continue
            nodes.append(tok.raw)
            self.pos += 1
        return nodes

    def _if(self) -> Optional[_If]:
        condition = self.tokens[self.pos].arg
        self.pos += 1
        branches: list[_Branch] = []
        while True:
            body = self._nodes(frozenset(self._BRANCH_END))
            branches.append(_Branch(condition, body))
            if self.pos >= len(self.tokens):
                return None
            tok = self.tokens[self.pos]
            self.pos += 1
            if tok.kind == "ENDIF":
                return _If(branches)
            condition = tok.arg if tok.kind == "ELSIF" else None


def _test(condition: str, params: TemplateParams) -> bool:
    key, sep, expected = condition.partition("=")
    value = params.get(key)
    if sep:
        return (value or "").strip() == expected.strip()
    return bool(value and value.strip())


def _evaluate(nodes: list[_Node], params: TemplateParams) -> str:
    out: list[str] = []
    for node in nodes:
        if isinstance(node, str):
            out.append(node)
            continue
        for branch in node.branches:
            if branch.condition is None or _test(branch.condition, params):
                out.append(_evaluate(branch.body, params))
                break
    return "".join(out)


# -----------------------------------------------------------------------------

def render_conditionals(body: str, params: TemplateParams) -> str:
    """Resolve every ``{{#IF}}`` block in *body* against *params*.

    Parameter references inside the chosen branch are left in place for
    ``substitute``.
    """
    if "{{#" not in body:
        return body
    return _evaluate(_ConditionalParser(_tokenize(body)).parse(), params)


def substitute(body: str, params: TemplateParams) -> str:
    """Replace ``{{{key}}}`` / ``{{{key|default}}}``; unknown keys become the default or ''."""
    def _sub(m: re.Match) -> str:
        value = params.get(m.group(1))
        if value is None:
            return m.group(2) or ""
        return value
    return _PARAM_REF_RE.sub(_sub, body)


def transclusion_body(body: str) -> str:
    body = render_tags(body, "includeonly", unwrap=True)
    return render_tags(body, "noinclude")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Engine
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

# (template body, template page, viewer) -> body with the template's own secrets resolved
SecretFilter = Callable[[str, PageRecord, Viewer], Awaitable[str]]


@dataclass
class _Expansion:
    """State shared by every invocation expanded during one ``expand`` call."""
    pages:  dict[str, Optional[PageRecord]] = field(default_factory=dict)
    bodies: dict[str, str] = field(default_factory=dict)
    count:  int = 0


class TemplateEngine:

    def __init__(
        self,
        store: PageStore,
        namespace: str = "Template",
        max_depth: int = 20,
        timeout: Optional[float] = None,
        max_expansions: int = 500,
        secret_filter: Optional[SecretFilter] = None,
    ):
        self.store     = store
        self.namespace = namespace
        self.max_depth = max_depth
        self.timeout   = timeout
        self.max_expansions = max_expansions
        self.secret_filter  = secret_filter

    def page_title(self, name: str) -> str:
        prefix = f"{self.namespace}:"
        return name if name.startswith(prefix) else prefix + name

    async def load(self, name: str, viewer: Viewer) -> Optional[PageRecord]:
        title = self.page_title(name)
        return await bounded(
            self.store.find_by_title(title, viewer), self.timeout, what=f"template lookup {title!r}",
        )

    async def _cached_load(self, name: str, viewer: Viewer, run: _Expansion) -> Optional[PageRecord]:
        title = self.page_title(name)
        if title not in run.pages:
            run.pages[title] = await self.load(name, viewer)
        return run.pages[title]

    async def _template_body(self, page: PageRecord, viewer: Viewer, run: _Expansion) -> str:
        if page.id not in run.bodies:
            body = transclusion_body(page.body)
            if self.secret_filter is not None:
                body = await self.secret_filter(body, page, viewer)
            run.bodies[page.id] = body
        return run.bodies[page.id]

    # ── expansion ─────────────────────────────────────────────────────────

    async def expand(
        self,
        text: str,
        viewer: Viewer,
        _stack: tuple[str, ...] = (),
        _run: Optional[_Expansion] = None,
    ) -> str:
        """Expand every invocation in *text* for *viewer*.

        Each template page is looked up at most once per call, and no more
        than ``max_expansions`` invocations are expanded in total.
        """
        instances = parse_instances(text)
        if not instances:
            return text
        run = _run if _run is not None else _Expansion()
        out: list[str] = []
        pos = 0
        for inst in instances:
            out.append(text[pos:inst.start])
            out.append(await self.render_instance(inst, viewer, _stack, run))
            pos = inst.end
        out.append(text[pos:])
        return "".join(out)

    async def render_instance(
        self,
        inst: TemplateInstance,
        viewer: Viewer,
        _stack: tuple[str, ...] = (),
        _run: Optional[_Expansion] = None,
    ) -> str:
        run = _run if _run is not None else _Expansion()
        if len(_stack) >= self.max_depth:
            log.warning("Template %r not expanded: depth limit %d reached", inst.name, self.max_depth)
            return ""
        run.count += 1
        if run.count > self.max_expansions:
            if run.count == self.max_expansions + 1:
                log.warning("Template expansion stopped after %d invocations", self.max_expansions)
            return ""
        page = await self._cached_load(inst.name, viewer, run)
        if page is None:
            log.debug("Template %r not found", inst.name)
            return ""
        if page.id in _stack:
            log.warning("Template %r includes itself; expansion truncated", inst.name)
            return ""

        params = await self._expand_params(inst.params, viewer, _stack, run)
        body = await self._template_body(page, viewer, run)
        body = render_conditionals(body, params)
        body = substitute(body, params)
        return await self.expand(body, viewer, _stack + (page.id,), run)

    async def _expand_params(
        self,
        params: TemplateParams,
        viewer: Viewer,
        _stack: tuple[str, ...],
        run: _Expansion,
    ) -> TemplateParams:
        async def _one(value: Optional[str]) -> Optional[str]:
            if value is None or "{{" not in value:
                return value
            return await self.expand(value, viewer, _stack, run)

        return TemplateParams(
            ordered=[await _one(v) for v in params.ordered],
            named={k: await _one(v) for k, v in params.named.items()},
        )

    # ── listings ──────────────────────────────────────────────────────────

    async def list_templates(self, inst: TemplateInstance, viewer: Viewer) -> list[TemplateUsage]:
        """This template and every template it invokes, recursively."""
        usages: list[TemplateUsage] = []
        await self._walk(inst, viewer, usages, ())
        return usages

    async def _walk(self, inst, viewer, usages, stack) -> None:
        if len(stack) >= self.max_depth:
            return
        page = await self.load(inst.name, viewer)
        if page is None or page.id in stack:
            return
        usages.append(TemplateUsage(page.id, inst.name, page.path))
        for child in parse_instances(transclusion_body(page.body)):
            await self._walk(child, viewer, usages, stack + (page.id,))

    async def find_pages_that_use(self, name: str, viewer: Viewer) -> list[PageRecord]:
        """Pages whose body invokes the template *name*."""
        bare = name[len(self.namespace) + 1:] if name.startswith(f"{self.namespace}:") else name
        invoke = re.compile(r"\{\{\s*" + re.escape(bare) + r"\s*(\||\}\})")
        candidates = await bounded(
            self.store.find_pages_containing(bare, viewer), self.timeout, default=[],
            what=f"template usage search {bare!r}",
        )
        return [p for p in candidates if invoke.search(p.body)]


# -----------------------------------------------------------------------------
