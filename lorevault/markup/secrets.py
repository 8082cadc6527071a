#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Secrets
=======
A secret is a span of page markup that only some readers may see.

Two source forms are recognised:

  <secret codename="Wombat" conditions="[Arcana DC 15]">...</secret>
  ||::Wombat:: ...||          (shorthand, codename optional)

Who may read a secret depends on the point of view (``Viewer``):

  - loremaster  : knows every secret
  - anonymous   : knows none
  - character   : knows a secret iff its id is in the secret's ``knowers``
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import html
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from .spans import SpanMatch


LOREMASTER = "loremaster"
ANONYMOUS  = "anonymous"

Codenamer = Callable[[Mapping[str, Any]], str]

SECRET_TAG_RE   = re.compile(r"<secret(\s[^>]*)?>(.*?)</secret>", re.IGNORECASE | re.DOTALL)
SHORTHAND_RE    = re.compile(r"\|\|(.*?)\|\|", re.DOTALL)
CODENAME_RE     = re.compile(r"^\s*::(.*?)::")
_ATTR_RE        = re.compile(r"([A-Za-z]+)=[\"“](.*?)[\"”]")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Point of view
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class POV(str, Enum):
    ANONYMOUS  = ANONYMOUS
    CHARACTER  = "character"
    LOREMASTER = LOREMASTER


@dataclass(frozen=True, eq=False)
class Viewer:
    """The identity a page is rendered for."""

    pov:          POV
    character_id: Optional[str] = None
    name:         str = ""
    # rule system id -> stat sheet, e.g. {"dnd5e": {"int": 2, "arcana": 4}}
    stats:        Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    @classmethod
    def anonymous(cls) -> "Viewer":
        return cls(POV.ANONYMOUS)

    @classmethod
    def loremaster(cls) -> "Viewer":
        return cls(POV.LOREMASTER)

    @classmethod
    def character(cls, character_id: Any, name: str = "",
                  stats: Mapping[str, Mapping[str, Any]] | None = None) -> "Viewer":
        return cls(POV.CHARACTER, str(character_id), name, stats or {})

    @property
    def identity(self) -> str:
        if self.pov == POV.CHARACTER:
            return self.character_id or ""
        return self.pov.value

    @property
    def is_loremaster(self) -> bool:
        return self.pov == POV.LOREMASTER

    @property
    def is_anonymous(self) -> bool:
        return self.pov == POV.ANONYMOUS

    def __repr__(self) -> str:
        return f"Viewer({self.identity!r})"


Identity = Union[Viewer, str, Any]


def normalize_identity(identity: Identity) -> str:
    """Reduce a viewer, character record or id to its canonical string key."""
    if isinstance(identity, Viewer):
        return identity.identity
    if isinstance(identity, str):
        token = identity.strip()
        if token.lower() in (LOREMASTER, ANONYMOUS):
            return token.lower()
        return token
    for attr in ("character_id", "id"):
        value = getattr(identity, attr, None)
        if value is not None:
            return str(value)
    raise TypeError(f"Cannot derive an identity from {identity!r}")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Codenames
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def default_codenamer(existing: Mapping[str, Any]) -> str:
    """Return the first ``SecretNNNN`` name not already a key of *existing*."""
    num = 1
    while True:
        key = f"Secret{num:04d}"
        if key not in existing:
            return key
        num += 1


def random_codenamer(existing: Mapping[str, Any]) -> str:
    """A random ``SecretXXXXXXXX`` name, unlikely to repeat on any other page."""
    while True:
        key = f"Secret{uuid.uuid4().hex[:8].upper()}"
        if key not in existing:
            return key


# -----------------------------------------------------------------------------

def parse_attrs(raw: str) -> dict[str, str]:
    """Read ``name="value"`` pairs; straight or curly double quotes."""
    return {k: html.unescape(v) for k, v in _ATTR_RE.findall(raw or "")}


def explicit_codenames(text: str) -> dict[str, bool]:
    """Every codename already written into *text*, in either secret form."""
    names: dict[str, bool] = {}
    for m in SECRET_TAG_RE.finditer(text):
        name = parse_attrs(m.group(1) or "").get("codename")
        if name:
            names[name] = True
    for m in SHORTHAND_RE.finditer(text):
        marker = CODENAME_RE.match(m.group(1))
        if marker and marker.group(1):
            names[marker.group(1)] = True
    return names


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Secret
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class Secret:
    codename:   str
    content:    str = ""
    conditions: str = ""
    knowers:    set[str] = field(default_factory=set)
    checked:    set[str] = field(default_factory=set)
    # (start, end) of the tag in the text it was parsed from
    span:       Optional[tuple[int, int]] = field(default=None, compare=False, repr=False)

    # ── knowledge ─────────────────────────────────────────────────────────

    def knows(self, identity: Identity) -> bool:
        key = normalize_identity(identity)
        if key == LOREMASTER:
            return True
        if key == ANONYMOUS or not key:
            return False
        return key in self.knowers

    def reveal(self, identity: Identity) -> bool:
        """Add *identity* to the knowers.  Returns True if the set grew."""
        key = normalize_identity(identity)
        if key in (LOREMASTER, ANONYMOUS) or not key or key in self.knowers:
            return False
        self.knowers.add(key)
        return True

    def has_checked(self, identity: Identity) -> bool:
        return normalize_identity(identity) in self.checked

    def mark_checked(self, identity: Identity) -> None:
        key = normalize_identity(identity)
        if key not in (LOREMASTER, ANONYMOUS) and key:
            self.checked.add(key)

    # ── rendering ─────────────────────────────────────────────────────────

    def render(self, mode: str = "full") -> str:
        """Render as ``full`` markup, an empty ``placeholder`` or bare ``reading`` text."""
        if mode == "reading":
            return self.content
        if mode not in ("full", "placeholder"):
            raise ValueError(f"Unknown secret render mode: {mode!r}")
        attrs = f' codename="{html.escape(self.codename)}"'
        if self.conditions.strip():
            attrs += f' conditions="{html.escape(self.conditions)}"'
        inner = self.content if mode == "full" else ""
        return f"<secret{attrs}>{inner}</secret>"

    # ── serialisation ─────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "codename":   self.codename,
            "content":    self.content,
            "conditions": self.conditions,
            "knowers":    sorted(self.knowers),
            "checked":    sorted(self.checked),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Secret":
        return cls(
            codename=data["codename"],
            content=data.get("content", ""),
            conditions=data.get("conditions", ""),
            knowers=set(data.get("knowers") or ()),
            checked=set(data.get("checked") or ()),
        )

    # ── parsing ───────────────────────────────────────────────────────────

    @classmethod
    def parse(cls, text: str, codenamer: Codenamer | None = None) -> list["Secret"]:
        """Parse ``<secret>`` tags from *text*, first to last.

        Tags without a codename get one from *codenamer*, which is handed
        every codename already present in the text plus those minted so far.
        Unterminated tags are simply not matched.
        """
        codenamer = codenamer or default_codenamer
        existing: dict[str, Any] = explicit_codenames(text)
        secrets: list[Secret] = []
        for m in SECRET_TAG_RE.finditer(text):
            attrs = parse_attrs(m.group(1) or "")
            codename = attrs.get("codename") or codenamer(existing)
            existing[codename] = True
            secrets.append(cls(
                codename=codename,
                content=m.group(2),
                conditions=attrs.get("conditions", ""),
                span=(m.start(), m.end()),
            ))
        return secrets


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Span queries and rewrites
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _secret_spans(text: str) -> Iterable[tuple[int, int, Optional[str]]]:
    for m in SECRET_TAG_RE.finditer(text):
        yield m.start(), m.end(), parse_attrs(m.group(1) or "").get("codename")
    for m in SHORTHAND_RE.finditer(text):
        marker = CODENAME_RE.match(m.group(1))
        yield m.start(), m.end(), (marker.group(1) if marker else None)


def is_in_secret(match: SpanMatch, text: str) -> Union[str, bool]:
    """Codename of the secret enclosing *match*, True if it is unnamed, else False."""
    for start, end, codename in _secret_spans(text):
        if start <= match.index and match.end <= end:
            return codename or True
    return False


# -----------------------------------------------------------------------------

def shorthand_to_tags(text: str) -> str:
    """Rewrite ``||::X:: content||`` as ``<secret codename="X">content</secret>``."""
    def _tag(m: re.Match) -> str:
        inside = m.group(1).strip()
        marker = CODENAME_RE.match(inside)
        if not marker:
            return f"<secret>{inside}</secret>"
        content = inside[marker.end():].strip()
        return Secret(codename=marker.group(1), content=content).render("full")
    return SHORTHAND_RE.sub(_tag, text)


# -----------------------------------------------------------------------------

def redact(
    text: str,
    known: Mapping[str, Secret],
    viewer: Identity,
    hidden: str = "omit",
) -> str:
    """Drop every secret *viewer* does not know.

    Secrets the viewer knows stay wrapped in a codename-only ``<secret>`` tag
    so later stages can still tell which secret a span came from;
    ``unwrap_secrets`` turns them into plain reading text.  With
    ``hidden="placeholder"`` unknown secrets leave an empty tag behind.
    """
    out: list[str] = []
    pos = 0
    for secret in Secret.parse(text):
        start, end = secret.span
        out.append(text[pos:start])
        state = known.get(secret.codename, secret)
        if state.knows(viewer):
            out.append(Secret(secret.codename, secret.content).render("full"))
        elif hidden == "placeholder":
            out.append(secret.render("placeholder"))
        pos = end
    out.append(text[pos:])
    return "".join(out)


def unwrap_secrets(text: str) -> str:
    """Replace non-empty ``<secret>`` wrappers with their content."""
    def _unwrap(m: re.Match) -> str:
        return m.group(2) if m.group(2) else m.group(0)
    return SECRET_TAG_RE.sub(_unwrap, text)


# -----------------------------------------------------------------------------
