#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pytest fixtures for LoreVault tests.
Uses an in-memory SQLite database so no external services are needed, and an
in-memory page store for the markup pipeline tests.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOREMASTERS", '["gm"]')

from typing import Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from lorevault.core.database import Base, get_db, make_engine  # noqa: E402
from lorevault.main import create_app  # noqa: E402
from lorevault.markup import (  # noqa: E402
    CategoryMembers, FileInfo, PageRecord, SecretState, Viewer, extract_categories,
)
from lorevault.models import models  # noqa: E402,F401
from lorevault.services.pages import slugify  # noqa: E402


# -----------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

LOREMASTER_HEADERS = {"X-LoreVault-User": "gm"}


# -----------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = make_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session_factory(db_engine):
    """Shared sessionmaker; both client and db_session use this."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(db_session_factory):
    """Direct DB session for test setup (characters, etc).  Commit before using the client."""
    async with db_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine, db_session_factory):
    """HTTP test client wired to an isolated in-memory DB."""
    async def override_get_db():
        async with db_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# -----------------------------------------------------------------------------
# In-memory page store
# -----------------------------------------------------------------------------

class MemoryPageStore:
    """Dict-backed page and blob store with the same visibility rules as SQL."""

    def __init__(self):
        self.pages: dict[str, PageRecord] = {}
        self.page_knowers: dict[str, set[str]] = {}
        self.state: dict[str, dict[str, SecretState]] = {}
        self.lookups: list[str] = []

    def add(self, title: str, body: str = "", is_secret: bool = False,
            file: Optional[FileInfo] = None) -> PageRecord:
        record = PageRecord(
            id=f"page-{len(self.pages) + 1}",
            title=title,
            path=slugify(title),
            body=body,
            is_secret=is_secret,
            file=file,
        )
        self.pages[title.lower()] = record
        return record

    def _visible(self, page: PageRecord, viewer: Viewer) -> bool:
        if viewer.is_loremaster or not page.is_secret:
            return True
        return viewer.identity in self.page_knowers.get(page.id, set())

    async def find_by_title(self, title: str, viewer: Viewer) -> Optional[PageRecord]:
        self.lookups.append(title)
        page = self.pages.get(title.strip().lower())
        return page if page is not None and self._visible(page, viewer) else None

    async def find_by_path(self, path: str, viewer: Viewer) -> Optional[PageRecord]:
        for page in self.pages.values():
            if page.path == path.strip("/") and self._visible(page, viewer):
                return page
        return None

    async def find_pages_containing(self, fragment: str, viewer: Viewer) -> list[PageRecord]:
        found = [p for p in self.pages.values() if fragment in p.body and self._visible(p, viewer)]
        return sorted(found, key=lambda p: p.title)

    async def find_category_members(self, title: str, viewer: Viewer) -> CategoryMembers:
        name = title.split(":", 1)[-1].strip().lower()
        members = CategoryMembers()
        for page in await self.find_pages_containing("[[Category:", viewer):
            _, categories = extract_categories(page.body)
            if any(c.name.lower() == name for c in categories):
                members.pages.append(page)
        return members

    async def file_for(self, page: PageRecord) -> Optional[FileInfo]:
        return page.file

    def _secret(self, page_id: str, codename: str) -> SecretState:
        return self.state.setdefault(page_id, {}).setdefault(codename, SecretState())

    async def load_secret_state(self, page_id: str) -> dict[str, SecretState]:
        return {
            codename: SecretState(set(s.knowers), set(s.checked))
            for codename, s in self.state.get(page_id, {}).items()
        }

    async def add_knower(self, page_id: str, codename: str, identity: str) -> None:
        self._secret(page_id, codename).knowers.add(identity)

    async def mark_checked(self, page_id: str, codename: str, identity: str) -> None:
        self._secret(page_id, codename).checked.add(identity)


@pytest.fixture
def store() -> MemoryPageStore:
    return MemoryPageStore()


# -----------------------------------------------------------------------------

class FixedDie:
    """Stands in for ``random.Random``; every d20 comes up *value*."""

    def __init__(self, value: int):
        self.value = value

    def randint(self, a: int, b: int) -> int:
        return self.value


# -----------------------------------------------------------------------------
# Helper functions for tests
# -----------------------------------------------------------------------------

async def save_page(client: AsyncClient, title: str, body: str = "",
                    user: str = "gm", **extra) -> dict:
    resp = await client.put(
        "/api/v1/pages",
        json={"title": title, "body": body, **extra},
        headers={"X-LoreVault-User": user},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def character_headers(user: str, character_id: str) -> dict:
    return {"X-LoreVault-User": user, "X-LoreVault-Character": character_id}


# -----------------------------------------------------------------------------
