#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pages router
============
GET    /api/v1/pages/{path}            — page rendered for the reader
PUT    /api/v1/pages                   — create page / save new version  [user]
POST   /api/v1/pages/{path}/reveal     — try to discover a secret        [character]
POST   /api/v1/pages/{path}/knowers    — let a character see a secret page [loremaster]
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lorevault.core.database import get_db
from lorevault.core.security import get_viewer, require_character, require_loremaster
from lorevault.markup import CategoryMembers, PageRecord, RenderedPage, Viewer
from lorevault.schemas import (
    CategoryMembersOut, CategoryOut, LinkOut, OKResponse,
    PageKnowerRequest, PageSave, PageSaveResponse, PageSummary,
    RenderedPageResponse, RevealRequest, SecretOut,
)
from lorevault.services import pages as page_svc


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/pages", tags=["pages"])


# -----------------------------------------------------------------------------

def _summary(record: PageRecord) -> PageSummary:
    return PageSummary(id=record.id, title=record.title, path=record.path)


def rendered_response(
    rendered: RenderedPage,
    page: Optional[PageRecord] = None,
    members: Optional[CategoryMembers] = None,
) -> RenderedPageResponse:
    return RenderedPageResponse(
        id=page.id if page else None,
        title=page.title if page else None,
        path=page.path if page else None,
        html=rendered.html,
        links=[
            LinkOut(
                title=link.title,
                text=link.text,
                path=link.page.path if link.page else None,
                secret=link.secret,
            )
            for link in rendered.links
        ],
        categories=[CategoryOut(name=c.name, sort=c.sort) for c in rendered.categories],
        secrets=[SecretOut(codename=s.codename, conditions=s.conditions) for s in rendered.secrets],
        revealed=rendered.revealed,
        members=CategoryMembersOut(
            pages=[_summary(p) for p in members.pages],
            subcategories=[_summary(p) for p in members.subcategories],
        ) if members else None,
    )


async def _load(store: page_svc.SqlPageStore, path: str, viewer: Viewer) -> PageRecord:
    page = await store.find_by_path(path, viewer)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Page '{path}' not found")
    return page


# ── Read ──────────────────────────────────────────────────────────────────────

@router.get("/{path}", response_model=RenderedPageResponse)
async def get_page(
    path: str,
    viewer: Viewer   = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    store = page_svc.SqlPageStore(db)
    page  = await _load(store, path, viewer)
    rendered = await page_svc.make_renderer(store).render(page.body, viewer, page=page)

    members = None
    if page.title.lower().startswith("category:"):
        members = await store.find_category_members(page.title, viewer)
    return rendered_response(rendered, page, members)


# ── Save ──────────────────────────────────────────────────────────────────────

@router.put("", response_model=PageSaveResponse)
async def save_page(
    data: PageSave,
    x_lorevault_user: Optional[str] = Header(default=None),
    viewer: Viewer   = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    if not x_lorevault_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    page, ver, codenames = await page_svc.save_page(db, data, editor=x_lorevault_user, viewer=viewer)
    return PageSaveResponse(
        id=page.id,
        title=page.title,
        path=page.path,
        version=ver.version,
        codenames=codenames,
        created_at=ver.created_at,
    )


# ── Secrets ───────────────────────────────────────────────────────────────────

@router.post("/{path}/reveal", response_model=RenderedPageResponse)
async def reveal_secret(
    path: str,
    data: RevealRequest,
    viewer: Viewer   = Depends(require_character),
    db: AsyncSession = Depends(get_db),
):
    store = page_svc.SqlPageStore(db)
    page  = await _load(store, path, viewer)
    rendered = await page_svc.make_renderer(store).render(
        page.body, viewer, page=page, reveal=data.codename,
    )
    return rendered_response(rendered, page)


@router.post("/{path}/knowers", response_model=OKResponse)
async def add_page_knower(
    path: str,
    data: PageKnowerRequest,
    viewer: Viewer   = Depends(require_loremaster),
    db: AsyncSession = Depends(get_db),
):
    store = page_svc.SqlPageStore(db)
    page  = await _load(store, path, viewer)
    added = await store.add_page_knower(page.id, data.character_id)
    return OKResponse(message="added" if added else "already known")


# -----------------------------------------------------------------------------
