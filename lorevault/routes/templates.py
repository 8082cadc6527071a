#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Templates router
================
GET /api/v1/templates/{name}/usage          — pages that invoke the template
GET /api/v1/templates/{name}/dependencies   — the template and every template
                                              it invokes, depth first
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from lorevault.core.database import get_db
from lorevault.core.security import get_viewer
from lorevault.markup import TemplateInstance, Viewer
from lorevault.schemas import PageSummary, TemplateUsageOut
from lorevault.services import pages as page_svc


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/templates", tags=["templates"])


# -----------------------------------------------------------------------------

@router.get("/{name}/usage", response_model=list[PageSummary])
async def template_usage(
    name: str,
    viewer: Viewer   = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    engine = page_svc.make_renderer(page_svc.SqlPageStore(db)).templates
    pages  = await engine.find_pages_that_use(name, viewer)
    return [PageSummary(id=p.id, title=p.title, path=p.path) for p in pages]


@router.get("/{name}/dependencies", response_model=list[TemplateUsageOut])
async def template_dependencies(
    name: str,
    viewer: Viewer   = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    engine = page_svc.make_renderer(page_svc.SqlPageStore(db)).templates
    usages = await engine.list_templates(TemplateInstance(name), viewer)
    if not usages:
        raise HTTPException(status_code=404, detail=f"Template '{name}' not found")
    return usages


# -----------------------------------------------------------------------------
