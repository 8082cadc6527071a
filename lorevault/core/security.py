#!/usr/bin/env python
#
#
# ----------------------------------------------------------------------------
"""
Point of view
=============
Authentication happens upstream; the proxy in front of LoreVault forwards
who the reader is in two headers:

  X-LoreVault-User       username of the signed-in player
  X-LoreVault-Character  id of the character the player is reading as

Resolution:
  - a username listed in ``settings.loremasters``  -> loremaster
  - a character header naming a character the user owns -> that character
  - anything else -> anonymous
"""
# ----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lorevault.markup import POV, Viewer
from lorevault.services.pages import get_character

from .config import get_settings
from .database import get_db

log = logging.getLogger(__name__)


# ----------------------------------------------------------------------------

async def get_viewer(
    x_lorevault_user:      Optional[str] = Header(default=None),
    x_lorevault_character: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> Viewer:
    settings = get_settings()
    user = (x_lorevault_user or "").strip()
    if user and user.lower() in {name.lower() for name in settings.loremasters}:
        return Viewer.loremaster()

    if user and x_lorevault_character:
        char = await get_character(db, x_lorevault_character.strip(), user)
        if char is not None:
            return Viewer.character(char.id, char.name, char.stats or {})
        log.debug("User %r has no character %r; reading anonymously", user, x_lorevault_character)

    return Viewer.anonymous()


# ----------------------------------------------------------------------------

async def require_character(viewer: Viewer = Depends(get_viewer)) -> Viewer:
    if viewer.pov != POV.CHARACTER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Reading as a character is required",
        )
    return viewer


async def require_loremaster(viewer: Viewer = Depends(get_viewer)) -> Viewer:
    if not viewer.is_loremaster:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Loremaster only",
        )
    return viewer


# ----------------------------------------------------------------------------
