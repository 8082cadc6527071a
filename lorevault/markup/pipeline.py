#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Page render pipeline
====================
Turns a stored page body into HTML for one viewer.

Save time (once per version):
  smart quotes  ->  codename assignment

Render time (every view):
  a. shorthand secrets become tags; secrets parsed; persisted knowers merged
  b. optional on-demand reveal (one rule check per character per secret)
  c. template expansion; each template's own secrets are redacted against
     that template page's knowers
  d. transclusion tags: <includeonly> dropped, <noinclude> unwrapped
  e. secret redaction for the viewer
  f. file embeds, categories, links; secret wrappers unwrapped
  g. markdown to HTML

Links are resolved only after redaction so a link hidden in an unknown
secret never reaches the page store.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .. import rules as rule_systems
from .codenames import CodenameResult, assign_codenames
from .files import SvgFetcher, fetch_svg, render_files
from .links import Category, LinkRef, extract_categories, render_links
from .markdown import render_markdown
from .secrets import (
    POV, SECRET_TAG_RE, Codenamer, Secret, Viewer,
    random_codenamer, redact, shorthand_to_tags, unwrap_secrets,
)
from .store import BlobStore, PageRecord, PageStore, bounded
from .tags import render_tags
from .templates import TemplateEngine
from .typography import smarten

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class RenderConfig:
    template_namespace: str = "Template"
    max_template_depth: int = 20
    lookup_timeout:     Optional[float] = 5.0
    fetch_timeout:      Optional[float] = 5.0
    redaction:          str = "omit"
    rules:              tuple[str, ...] = ("dnd5e",)

    @classmethod
    def from_settings(cls, settings: Any) -> "RenderConfig":
        return cls(
            template_namespace=settings.template_namespace,
            max_template_depth=settings.max_template_depth,
            lookup_timeout=settings.lookup_timeout,
            fetch_timeout=settings.fetch_timeout,
            redaction=settings.redaction,
            rules=tuple(settings.rules),
        )


@dataclass
class RenderedPage:
    html:       str
    links:      list[LinkRef] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    # only the secrets the viewer knows
    secrets:    list[Secret] = field(default_factory=list)
    # None when no reveal was requested
    revealed:   Optional[bool] = None


# -----------------------------------------------------------------------------

def prepare_body(body: str, codenamer: Codenamer = random_codenamer) -> CodenameResult:
    """Save-time normalisation of a page body.

    New codenames are random so that secrets on different pages (a page and
    the templates it includes) never share one.
    """
    return assign_codenames(smarten(body), codenamer)


# -----------------------------------------------------------------------------

class PageRenderer:

    def __init__(
        self,
        store: PageStore,
        config: Optional[RenderConfig] = None,
        rules: Optional[Sequence[rule_systems.RuleSystem]] = None,
        blobs: Optional[BlobStore] = None,
        fetch_svg: SvgFetcher = fetch_svg,
    ):
        self.store  = store
        self.config = config or RenderConfig()
        self.rules  = list(rules) if rules is not None else rule_systems.get_rule_systems(self.config.rules)
        self.blobs  = blobs
        self.fetch_svg = fetch_svg
        self.templates = TemplateEngine(
            store,
            namespace=self.config.template_namespace,
            max_depth=self.config.max_template_depth,
            timeout=self.config.lookup_timeout,
            secret_filter=self.redact_template,
        )

    # ── secrets ───────────────────────────────────────────────────────────

    async def load_secrets(self, text: str, page: Optional[PageRecord]) -> list[Secret]:
        secrets = Secret.parse(text)
        if page is None:
            return secrets
        state = await bounded(
            self.store.load_secret_state(page.id), self.config.lookup_timeout,
            default={}, what=f"secret state for page {page.id}",
        )
        for secret in secrets:
            persisted = state.get(secret.codename)
            if persisted is not None:
                secret.knowers |= persisted.knowers
                secret.checked |= persisted.checked
        return secrets

    def conditions_for(self, secret: Secret) -> str:
        """Explicit conditions, else any checks written inline in the content."""
        if secret.conditions.strip():
            return secret.conditions
        if rule_systems.strip(secret.content, self.rules) != secret.content.strip():
            return secret.content
        return ""

    async def attempt_reveal(
        self,
        secrets: Sequence[Secret],
        codename: str,
        viewer: Viewer,
        page: PageRecord,
    ) -> bool:
        """Roll the secret's conditions for *viewer*; at most once per secret."""
        secret = next((s for s in secrets if s.codename == codename), None)
        if secret is None:
            log.debug("Reveal of unknown secret %r on page %s", codename, page.id)
            return False
        if secret.knows(viewer):
            return True
        if viewer.pov != POV.CHARACTER or secret.has_checked(viewer):
            return False

        secret.mark_checked(viewer)
        await self.store.mark_checked(page.id, codename, viewer.identity)
        passed = rule_systems.check(self.conditions_for(secret), viewer.stats, self.rules)
        log.debug("Reveal %r for %r on page %s: %s", codename, viewer, page.id, passed)
        if passed and secret.reveal(viewer):
            await self.store.add_knower(page.id, codename, viewer.identity)
        return passed

    def _strip_checks(self, text: str) -> str:
        def _strip(m) -> str:
            if not m.group(2):
                return m.group(0)
            head = m.group(0)[:m.start(2) - m.start(0)]
            return f"{head}{rule_systems.strip(m.group(2), self.rules)}</secret>"
        return SECRET_TAG_RE.sub(_strip, text)

    async def redact_template(self, body: str, template: PageRecord, viewer: Viewer) -> str:
        """Resolve a template's own secrets against that template page's state.

        Known secrets are unwrapped to plain text here, so nothing a template
        contributes is later judged by the including page's knowers.
        """
        text = shorthand_to_tags(body)
        if not SECRET_TAG_RE.search(text):
            return text
        secrets = await self.load_secrets(text, template)
        text    = redact(text, {s.codename: s for s in secrets}, viewer, self.config.redaction)
        return unwrap_secrets(self._strip_checks(text))

    # ── render ────────────────────────────────────────────────────────────

    async def render(
        self,
        body: str,
        viewer: Viewer,
        page: Optional[PageRecord] = None,
        reveal: Optional[str] = None,
    ) -> RenderedPage:
        cfg = self.config

        text    = shorthand_to_tags(body)
        secrets = await self.load_secrets(text, page)

        revealed = None
        if reveal is not None and page is not None:
            revealed = await self.attempt_reveal(secrets, reveal, viewer, page)

        text = await self.templates.expand(text, viewer)
        text = shorthand_to_tags(text)

        text = render_tags(text, "includeonly")
        text = render_tags(text, "noinclude", unwrap=True)

        known = {s.codename: s for s in secrets}
        text  = redact(text, known, viewer, cfg.redaction)
        text  = self._strip_checks(text)

        text = await render_files(
            text, self.store, viewer, self.blobs, self.fetch_svg,
            lookup_timeout=cfg.lookup_timeout, fetch_timeout=cfg.fetch_timeout,
        )
        text, categories = extract_categories(text)
        linked = await render_links(text, self.store, viewer, cfg.lookup_timeout)
        text   = unwrap_secrets(linked.text)

        return RenderedPage(
            html=render_markdown(text),
            links=linked.links,
            categories=categories,
            secrets=[s for s in secrets if s.knows(viewer)],
            revealed=revealed,
        )


# -----------------------------------------------------------------------------
