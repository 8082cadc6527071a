#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Codename assignment
===================
Run at save time.  Every secret in a body gets a stable codename written
into the text itself, so knower lists stored next to the page keep pointing
at the right span after later edits.

  ||This is a new secret.||          ->  ||::Secret0001:: This is a new secret.||
  <secret>Hidden</secret>            ->  <secret codename="Secret0002">Hidden</secret>

The transform is a fixed point: running it on its own output changes nothing.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .secrets import (
    CODENAME_RE, SECRET_TAG_RE, SHORTHAND_RE,
    Codenamer, default_codenamer, explicit_codenames, parse_attrs,
)


# -----------------------------------------------------------------------------

@dataclass
class CodenameResult:
    text:    str
    secrets: dict[str, dict[str, Any]] = field(default_factory=dict)


# -----------------------------------------------------------------------------

def assign_codenames(text: str, codenamer: Codenamer = default_codenamer) -> CodenameResult:
    """Give every secret in *text* a codename and document what each guards.

    Returns the rewritten text and a ``codename -> {"content", "conditions"}``
    map.  A codename that was already used earlier in the same text is
    replaced by a fresh one so each secret keeps its own entry.
    """
    reserved = explicit_codenames(text)
    secrets: dict[str, dict[str, Any]] = {}

    def _mint() -> str:
        name = codenamer({**reserved, **secrets})
        reserved[name] = True
        return name

    def _claim(name: str | None) -> str:
        if not name or name in secrets:
            return _mint()
        return name

    def _shorthand(m: re.Match) -> str:
        inside = m.group(1).strip()
        marker = CODENAME_RE.match(inside)
        if marker:
            codename = _claim(marker.group(1))
            content  = inside[marker.end():].strip()
        else:
            codename = _claim(None)
            content  = inside
        secrets[codename] = {"content": content, "conditions": ""}
        return f"||{f'::{codename}:: {content}'.strip()}||"

    def _tag(m: re.Match) -> str:
        raw   = m.group(1) or ""
        attrs = parse_attrs(raw)
        codename = _claim(attrs.get("codename"))
        secrets[codename] = {"content": m.group(2), "conditions": attrs.get("conditions", "")}
        if attrs.get("codename") == codename:
            return m.group(0)
        # Drop any stale codename attribute before writing the new one.
        raw = re.sub(r"\s*codename=[\"“].*?[\"”]", "", raw)
        return f'<secret codename="{codename}"{raw}>{m.group(2)}</secret>'

    text = SECRET_TAG_RE.sub(_tag, text)
    text = SHORTHAND_RE.sub(_shorthand, text)
    return CodenameResult(text, secrets)


# -----------------------------------------------------------------------------
