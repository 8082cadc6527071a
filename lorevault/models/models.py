#!/usr/bin/env python
#
#
# ----------------------------------------------------------------------------
"""
ORM Models for LoreVault
========================

Tables
------
characters      — player characters, each with a stat sheet per rule system
pages           — wiki pages; ``is_secret`` hides the page itself
page_versions   — append-only version history (one row per save)
page_files      — the file carried by a ``File:`` / ``Image:`` page
page_knowers    — characters allowed to see a secret page
secret_knowers  — characters that know a secret, by page and codename
secret_checks   — characters that already rolled for a secret

Knower and check rows are insert-only; uniqueness makes concurrent reveals
merge as a set union.  All primary keys are UUIDs.  Timestamps stored in UTC.
"""
# ----------------------------------------------------------------------------

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON, BigInteger, Boolean, DateTime, ForeignKey, Index, Integer,
    String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lorevault.core.database import Base


# ----------------------------------------------------------------------------

def _uuid_col(primary_key=False, nullable=False, **kw):
    """UUID column stored as String(36) — works for both SQLite and PostgreSQL."""
    return mapped_column(
        String(36),
        primary_key=primary_key,
        nullable=nullable,
        default=lambda: str(uuid.uuid4()),
        **kw,
    )


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# characters
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Character(Base):
    __tablename__ = "characters"

    id:         Mapped[str]            = _uuid_col(primary_key=True)
    name:       Mapped[str]            = mapped_column(String(128), nullable=False)
    # username of the player who owns this character
    player:     Mapped[str]            = mapped_column(String(64), nullable=False, index=True)
    # rule system id -> sheet, e.g. {"dnd5e": {"int": 2, "arcana": 4}}
    stats:      Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime]       = mapped_column(DateTime(timezone=True), default=_utcnow)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# pages
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Page(Base):
    __tablename__ = "pages"

    id:         Mapped[str]      = _uuid_col(primary_key=True)
    title:      Mapped[str]      = mapped_column(String(512), unique=True, nullable=False, index=True)
    path:       Mapped[str]      = mapped_column(String(512), unique=True, nullable=False, index=True)
    is_secret:  Mapped[bool]     = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # Relationships
    versions: Mapped[list["PageVersion"]] = relationship(
        back_populates="page",
        cascade="all, delete-orphan",
        order_by="PageVersion.version",
        lazy="selectin",
    )
    file:     Mapped["PageFile | None"]   = relationship(
        back_populates="page",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )

    @property
    def latest_version(self) -> "PageVersion | None":
        return self.versions[-1] if self.versions else None

    @property
    def body(self) -> str:
        latest = self.latest_version
        return latest.body if latest else ""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# page_versions  (append-only)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class PageVersion(Base):
    __tablename__ = "page_versions"
    __table_args__ = (
        UniqueConstraint("page_id", "version", name="uq_page_versions_page_ver"),
        Index("ix_page_versions_page_latest", "page_id", "version"),
    )

    id:         Mapped[str]        = _uuid_col(primary_key=True)
    page_id:    Mapped[str]        = mapped_column(String(36), ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True)
    version:    Mapped[int]        = mapped_column(Integer, nullable=False)
    # body as stored: smart quotes applied, every secret carries a codename
    body:       Mapped[str]        = mapped_column(Text, nullable=False, default="")
    msg:        Mapped[str]        = mapped_column(String(512), default="", nullable=False)
    editor:     Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime]   = mapped_column(DateTime(timezone=True), default=_utcnow)

    page: Mapped["Page"] = relationship(back_populates="versions")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# page_files
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class PageFile(Base):
    __tablename__ = "page_files"

    id:       Mapped[str] = _uuid_col(primary_key=True)
    page_id:  Mapped[str] = mapped_column(String(36), ForeignKey("pages.id", ondelete="CASCADE"), unique=True, nullable=False)
    url:      Mapped[str] = mapped_column(String(1024), nullable=False)
    mimetype: Mapped[str] = mapped_column(String(128), default="application/octet-stream", nullable=False)
    size:     Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    page: Mapped["Page"] = relationship(back_populates="file")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# knowledge  (insert-only)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class PageKnower(Base):
    __tablename__ = "page_knowers"
    __table_args__ = (
        UniqueConstraint("page_id", "character_id", name="uq_page_knowers"),
    )

    id:           Mapped[str] = _uuid_col(primary_key=True)
    page_id:      Mapped[str] = mapped_column(String(36), ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True)
    character_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)


class SecretKnower(Base):
    __tablename__ = "secret_knowers"
    __table_args__ = (
        UniqueConstraint("page_id", "codename", "character_id", name="uq_secret_knowers"),
    )

    id:           Mapped[str]      = _uuid_col(primary_key=True)
    page_id:      Mapped[str]      = mapped_column(String(36), ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True)
    codename:     Mapped[str]      = mapped_column(String(128), nullable=False)
    character_id: Mapped[str]      = mapped_column(String(36), nullable=False)
    created_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class SecretCheck(Base):
    __tablename__ = "secret_checks"
    __table_args__ = (
        UniqueConstraint("page_id", "codename", "character_id", name="uq_secret_checks"),
    )

    id:           Mapped[str]      = _uuid_col(primary_key=True)
    page_id:      Mapped[str]      = mapped_column(String(36), ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True)
    codename:     Mapped[str]      = mapped_column(String(128), nullable=False)
    character_id: Mapped[str]      = mapped_column(String(36), nullable=False)
    created_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
