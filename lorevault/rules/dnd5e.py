#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Dungeons & Dragons, 5th edition
===============================
Intelligence checks for secrets:

  [Intelligence DC 12]
  [Intelligence (Arcana) DC 15]      or   [Arcana DC 15]
  [Intelligence (History) DC 15]     or   [History DC 15]
  [Intelligence (Nature) DC 15]      or   [Nature DC 15]
  [Intelligence (Religion) DC 15]    or   [Religion DC 15]

A check rolls d20 plus the matching modifier from the character sheet and
passes when the total meets the DC.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Pattern

from . import register


@dataclass(frozen=True)
class Check:
    stat:  str
    label: str
    regex: Pattern[str]


def _skill(stat: str, label: str) -> Check:
    return Check(stat, label, re.compile(
        rf"\[\s*(?:Intelligence\s*\(\s*{label}\s*\)|{label})\s+DC\s+(\d+)\s*\]", re.IGNORECASE,
    ))


CHECKS: list[Check] = [
    Check("int", "Intelligence", re.compile(r"\[\s*Intelligence\s+DC\s+(\d+)\s*\]", re.IGNORECASE)),
    _skill("arcana",   "Arcana"),
    _skill("history",  "History"),
    _skill("nature",   "Nature"),
    _skill("religion", "Religion"),
]


# -----------------------------------------------------------------------------

class DnD5e:
    id   = "dnd5e"
    name = "Dungeons & Dragons, 5th edition"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def roll(self, modifier: int = 0) -> int:
        return self.rng.randint(1, 20) + modifier

    def check(self, conditions: str, stats: Mapping[str, Any]) -> bool:
        for chk in CHECKS:
            m = chk.regex.search(conditions)
            if not m:
                continue
            dc = int(m.group(1))
            if self.roll(int(stats.get(chk.stat) or 0)) >= dc:
                return True
        return False

    def strip(self, text: str) -> str:
        for chk in CHECKS:
            text = chk.regex.sub("", text)
        return text.strip()


dnd5e = register(DnD5e())


# -----------------------------------------------------------------------------
