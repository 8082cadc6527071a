#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Collaborator contracts
======================
The markup pipeline never touches the database directly.  It talks to a
page store and a blob store through the protocols below; pages are looked up
by title or path every time, never held by reference.

``lorevault.services.pages.SqlPageStore`` is the production implementation.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Optional, Protocol, TypeVar

from .secrets import Viewer

log = logging.getLogger(__name__)

T = TypeVar("T")


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class FileInfo:
    url:      str
    mimetype: str = "application/octet-stream"
    size:     int = 0


@dataclass
class PageRecord:
    id:        str
    title:     str
    path:      str
    body:      str = ""
    is_secret: bool = False
    file:      Optional[FileInfo] = None


@dataclass
class CategoryMembers:
    pages:         list[PageRecord] = field(default_factory=list)
    subcategories: list[PageRecord] = field(default_factory=list)


@dataclass
class SecretState:
    knowers: set[str] = field(default_factory=set)
    checked: set[str] = field(default_factory=set)


# -----------------------------------------------------------------------------

class PageStore(Protocol):
    """Viewer-scoped page lookups: pages *viewer* may not see are never returned."""

    async def find_by_title(self, title: str, viewer: Viewer) -> Optional[PageRecord]: ...

    async def find_by_path(self, path: str, viewer: Viewer) -> Optional[PageRecord]: ...

    async def find_category_members(self, title: str, viewer: Viewer) -> CategoryMembers: ...

    async def find_pages_containing(self, fragment: str, viewer: Viewer) -> list[PageRecord]: ...

    async def load_secret_state(self, page_id: str) -> dict[str, SecretState]: ...

    async def add_knower(self, page_id: str, codename: str, identity: str) -> None: ...

    async def mark_checked(self, page_id: str, codename: str, identity: str) -> None: ...


class BlobStore(Protocol):

    async def file_for(self, page: PageRecord) -> Optional[FileInfo]: ...


# -----------------------------------------------------------------------------

async def bounded(
    awaitable: Awaitable[T],
    timeout: Optional[float],
    default: T = None,
    what: str = "lookup",
) -> T:
    """Await *awaitable* for at most *timeout* seconds, else return *default*.

    Only the timeout is absorbed; any other failure from the collaborator
    propagates to the caller.
    """
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        log.warning("%s timed out after %.1fs", what, timeout)
        return default


# -----------------------------------------------------------------------------
