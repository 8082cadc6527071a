#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Render endpoint — live preview for the editor.

POST /api/v1/render   {"body": "..."}

The body is rendered exactly as a saved page would be for the same reader,
after the save-time normalisation, but nothing is stored.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lorevault.core.database import get_db
from lorevault.core.security import get_viewer
from lorevault.markup import Viewer, prepare_body
from lorevault.schemas import RenderedPageResponse, RenderRequest
from lorevault.services import pages as page_svc

from .pages import rendered_response


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/render", tags=["render"])


# -----------------------------------------------------------------------------

@router.post("", response_model=RenderedPageResponse)
async def render_preview(
    data: RenderRequest,
    viewer: Viewer   = Depends(get_viewer),
    db: AsyncSession = Depends(get_db),
):
    store = page_svc.SqlPageStore(db)
    body  = prepare_body(data.body).text
    rendered = await page_svc.make_renderer(store).render(body, viewer)
    return rendered_response(rendered)


# -----------------------------------------------------------------------------
