#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Page service
============
Versioned saves for wiki pages and the viewer-scoped page store the markup
pipeline reads through.

Every save appends a new PageVersion row; nothing is overwritten.  Bodies
are normalised once, at save time (smart quotes, codenames).

Visibility
----------
  loremaster  : every page
  anonymous   : pages that are not secret
  character   : pages that are not secret, plus secret pages listing the
                character in ``page_knowers``
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_, select, true
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lorevault.core.config import get_settings
from lorevault.markup import (
    CategoryMembers, FileInfo, PageRecord, PageRenderer, RenderConfig, SecretState, Viewer,
    extract_categories, prepare_body,
)
from lorevault.models import (
    Character, Page, PageFile, PageKnower, PageVersion, SecretCheck, SecretKnower,
)
from lorevault.schemas import PageSave

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def slugify(text: str) -> str:
    """Convert a page title to a URL path; ``Template:Foo`` -> ``template-foo``."""
    text = text.strip().lower().replace(":", "-")
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def _visible_to(viewer: Viewer):
    if viewer.is_loremaster:
        return true()
    if viewer.is_anonymous or not viewer.character_id:
        return Page.is_secret.is_(False)
    known = select(PageKnower.page_id).where(PageKnower.character_id == viewer.character_id)
    return or_(Page.is_secret.is_(False), Page.id.in_(known))


def _latest_versions():
    return (
        select(
            PageVersion.page_id,
            func.max(PageVersion.version).label("max_ver"),
        )
        .group_by(PageVersion.page_id)
        .subquery()
    )


def to_record(page: Page) -> PageRecord:
    info = None
    if page.file is not None:
        info = FileInfo(page.file.url, page.file.mimetype, page.file.size)
    return PageRecord(
        id=page.id,
        title=page.title,
        path=page.path,
        body=page.body,
        is_secret=page.is_secret,
        file=info,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Store
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class SqlPageStore:
    """Page and blob store over one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ── lookups ───────────────────────────────────────────────────────────

    async def find_by_title(self, title: str, viewer: Viewer) -> Optional[PageRecord]:
        result = await self.db.execute(
            select(Page).where(func.lower(Page.title) == title.strip().lower(), _visible_to(viewer))
        )
        page = result.scalar_one_or_none()
        return to_record(page) if page else None

    async def find_by_path(self, path: str, viewer: Viewer) -> Optional[PageRecord]:
        result = await self.db.execute(
            select(Page).where(Page.path == path.strip("/"), _visible_to(viewer))
        )
        page = result.scalar_one_or_none()
        return to_record(page) if page else None

    async def find_pages_containing(self, fragment: str, viewer: Viewer) -> list[PageRecord]:
        latest = _latest_versions()
        result = await self.db.execute(
            select(Page)
            .join(latest, Page.id == latest.c.page_id)
            .join(
                PageVersion,
                and_(PageVersion.page_id == Page.id, PageVersion.version == latest.c.max_ver),
            )
            .where(PageVersion.body.contains(fragment), _visible_to(viewer))
            .order_by(Page.title)
        )
        return [to_record(p) for p in result.scalars().all()]

    async def find_category_members(self, title: str, viewer: Viewer) -> CategoryMembers:
        """Pages tagged ``[[Category:title]]``, split into pages and subcategories."""
        name = title.split(":", 1)[1] if title.lower().startswith("category:") else title
        members = CategoryMembers()
        sorted_members: list[tuple[str, PageRecord]] = []
        for record in await self.find_pages_containing("[[Category:", viewer):
            _, categories = extract_categories(record.body)
            for cat in categories:
                if cat.name.lower() == name.strip().lower():
                    sorted_members.append((cat.sort.lower(), record))
                    break
        for _, record in sorted(sorted_members, key=lambda pair: pair[0]):
            if record.title.lower().startswith("category:"):
                members.subcategories.append(record)
            else:
                members.pages.append(record)
        return members

    async def file_for(self, page: PageRecord) -> Optional[FileInfo]:
        return page.file

    # ── secret knowledge ──────────────────────────────────────────────────

    async def load_secret_state(self, page_id: str) -> dict[str, SecretState]:
        state: dict[str, SecretState] = {}
        knowers = await self.db.execute(select(SecretKnower).where(SecretKnower.page_id == page_id))
        for row in knowers.scalars():
            state.setdefault(row.codename, SecretState()).knowers.add(row.character_id)
        checks = await self.db.execute(select(SecretCheck).where(SecretCheck.page_id == page_id))
        for row in checks.scalars():
            state.setdefault(row.codename, SecretState()).checked.add(row.character_id)
        return state

    async def _insert_once(self, row) -> bool:
        try:
            async with self.db.begin_nested():
                self.db.add(row)
                await self.db.flush()
        except IntegrityError:
            log.debug("%s already recorded", type(row).__name__)
            return False
        return True

    async def add_knower(self, page_id: str, codename: str, identity: str) -> None:
        await self._insert_once(SecretKnower(page_id=page_id, codename=codename, character_id=identity))

    async def mark_checked(self, page_id: str, codename: str, identity: str) -> None:
        await self._insert_once(SecretCheck(page_id=page_id, codename=codename, character_id=identity))

    async def add_page_knower(self, page_id: str, character_id: str) -> bool:
        return await self._insert_once(PageKnower(page_id=page_id, character_id=character_id))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Saves
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def _next_version_number(db: AsyncSession, page_id: str) -> int:
    result = await db.execute(
        select(func.max(PageVersion.version)).where(PageVersion.page_id == page_id)
    )
    current = result.scalar_one_or_none()
    return (current or 0) + 1


async def save_page(
    db: AsyncSession,
    data: PageSave,
    editor: Optional[str] = None,
    viewer: Optional[Viewer] = None,
) -> tuple[Page, PageVersion, list[str]]:
    """Create the page titled ``data.title`` or append a version to it.

    Returns the page, the new version and the codenames in the stored body.
    A secret page *viewer* cannot see may not be overwritten.
    """
    path = slugify(data.title)
    if not path:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Title has no usable characters")

    result = await db.execute(select(Page).where(Page.path == path))
    page = result.scalar_one_or_none()
    if page is None:
        page = Page(title=data.title, path=path, is_secret=data.is_secret)
        db.add(page)
        await db.flush()
        next_ver = 1
    else:
        if viewer is not None and await SqlPageStore(db).find_by_path(path, viewer) is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Page is not visible to you")
        page.title = data.title
        page.is_secret = data.is_secret
        next_ver = await _next_version_number(db, page.id)

    prepared = prepare_body(data.body)
    version = PageVersion(
        page_id=page.id,
        version=next_ver,
        body=prepared.text,
        msg=data.msg or ("Initial version" if next_ver == 1 else ""),
        editor=editor,
    )
    db.add(version)

    if data.file is not None:
        existing = await db.execute(select(PageFile).where(PageFile.page_id == page.id))
        row = existing.scalar_one_or_none() or PageFile(page_id=page.id)
        row.url, row.mimetype, row.size = data.file.url, data.file.mimetype, data.file.size
        db.add(row)

    await db.flush()
    await db.refresh(page, attribute_names=["versions", "file"])
    log.debug("Saved %r as version %d", page.title, next_ver)
    return page, version, list(prepared.secrets)


# -----------------------------------------------------------------------------

async def get_character(db: AsyncSession, character_id: str, player: Optional[str]) -> Optional[Character]:
    """The character *character_id*, only if *player* owns it."""
    if not player:
        return None
    result = await db.execute(
        select(Character).where(Character.id == character_id, Character.player == player)
    )
    return result.scalar_one_or_none()


# -----------------------------------------------------------------------------

def make_renderer(store: SqlPageStore) -> PageRenderer:
    return PageRenderer(store, RenderConfig.from_settings(get_settings()), blobs=store)


# -----------------------------------------------------------------------------
