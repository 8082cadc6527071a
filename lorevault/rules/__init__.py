#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Rule systems
============
A rule system decides whether a character discovers a secret on their own.
Each secret may carry a ``conditions`` string (``[Arcana DC 15]``); every
configured system reads the checks it understands from that string and
rolls them against the character's stat sheet for that system.

Systems register themselves under a short id (``dnd5e``) in ``RULE_SYSTEMS``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Protocol

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class RuleSystem(Protocol):
    id:   str
    name: str

    def check(self, conditions: str, stats: Mapping[str, Any]) -> bool: ...

    def strip(self, text: str) -> str: ...


RULE_SYSTEMS: dict[str, RuleSystem] = {}


def register(system: RuleSystem) -> RuleSystem:
    RULE_SYSTEMS[system.id] = system
    return system


def get_rule_systems(ids: Iterable[str]) -> list[RuleSystem]:
    """Resolve configured system ids; an unknown id is a configuration error."""
    systems: list[RuleSystem] = []
    for system_id in ids:
        if system_id not in RULE_SYSTEMS:
            raise KeyError(f"Unknown rule system: {system_id!r}")
        systems.append(RULE_SYSTEMS[system_id])
    return systems


# -----------------------------------------------------------------------------

def check(
    conditions: Optional[str],
    stats: Mapping[str, Mapping[str, Any]],
    systems: Iterable[RuleSystem],
) -> bool:
    """True if any system passes any check in *conditions*.

    *stats* maps a system id to the character's sheet for it; a character
    without a sheet for a system rolls with all modifiers at 0.
    """
    if not conditions or not conditions.strip():
        return False
    for system in systems:
        if system.check(conditions, stats.get(system.id) or {}):
            log.debug("Conditions %r passed under %s", conditions, system.id)
            return True
    return False


def strip(text: str, systems: Iterable[RuleSystem]) -> str:
    """Remove every check any of *systems* understands from *text*."""
    for system in systems:
        text = system.strip(text)
    return text


# -----------------------------------------------------------------------------

from . import dnd5e  # noqa: E402,F401  (registers itself)
