#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pydantic v2 schemas for request validation and response serialisation.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Shared
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class OKResponse(BaseModel):
    ok: bool = True
    message: str = "success"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Pages
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class FileSpec(BaseModel):
    url: str = Field(..., min_length=1, max_length=1024)
    mimetype: str = Field(default="application/octet-stream", max_length=128)
    size: int = Field(default=0, ge=0)

    model_config = {"from_attributes": True}


# -----------------------------------------------------------------------------

class PageSave(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    body: str = ""
    msg: str = Field(default="", max_length=512)
    is_secret: bool = False
    file: Optional[FileSpec] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title must not be blank")
        if "[" in v or "]" in v or "|" in v or "{" in v or "}" in v:
            raise ValueError("Title may not contain [ ] | { }")
        return v


# -----------------------------------------------------------------------------

class PageSaveResponse(BaseModel):
    id: str
    title: str
    path: str
    version: int
    codenames: list[str] = []
    created_at: datetime


# -----------------------------------------------------------------------------

class PageSummary(BaseModel):
    id: str
    title: str
    path: str

    model_config = {"from_attributes": True}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Rendering
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class LinkOut(BaseModel):
    title: str
    text: str
    path: Optional[str] = None       # None for a page that does not exist yet
    secret: Union[str, bool] = False


class CategoryOut(BaseModel):
    name: str
    sort: str


class SecretOut(BaseModel):
    codename: str
    conditions: str = ""


class CategoryMembersOut(BaseModel):
    pages: list[PageSummary] = []
    subcategories: list[PageSummary] = []


# -----------------------------------------------------------------------------

class RenderRequest(BaseModel):
    body: str = ""


class RevealRequest(BaseModel):
    codename: str = Field(..., min_length=1, max_length=128)


class PageKnowerRequest(BaseModel):
    character_id: str = Field(..., min_length=1, max_length=36)


# -----------------------------------------------------------------------------

class RenderedPageResponse(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None
    path: Optional[str] = None
    html: str
    links: list[LinkOut] = []
    categories: list[CategoryOut] = []
    secrets: list[SecretOut] = []
    revealed: Optional[bool] = None
    members: Optional[CategoryMembersOut] = None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Templates
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TemplateUsageOut(BaseModel):
    page_id: str
    name: str
    path: str

    model_config = {"from_attributes": True}
