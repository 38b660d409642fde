"""XP curve and level-ups for characters."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from tactics.models.character import Character
from tactics.services.rng import round_half_up
from tactics.services.store import CombatStore

logger = logging.getLogger(__name__)

MAX_LEVEL = 99
POINTS_PER_LEVEL = 2


def xp_to_next_level(level: int) -> int:
    """XP needed to go from level to level + 1; 0 at the level cap."""
    lvl = max(1, min(MAX_LEVEL, int(level or 1)))
    if lvl >= MAX_LEVEL:
        return 0
    return round_half_up(100 * 1.12 ** (lvl - 1))


@dataclass
class XpApplication:
    character_id: int
    xp_gain: int
    level_before: int
    level_after: int
    xp_after: int
    xp_to_next_after: int
    levels_gained: int
    points_gained: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


async def apply_xp(
    store: CombatStore,
    character: Character,
    amount: int,
    reason: str = "combat",
    metadata: dict[str, Any] | None = None,
) -> XpApplication:
    """Add amount XP to character, rolling over as many levels as it pays for.

    Records an ``xp_applied`` progression event (metadata included verbatim)
    and a ``level_up`` event when at least one level was gained.
    """
    gained = max(0, int(amount or 0))
    level_before = character.level
    level = character.level
    xp = character.xp + gained
    cap = character.xp_to_next or xp_to_next_level(level)
    levels_gained = 0

    while level < MAX_LEVEL and cap > 0 and xp >= cap:
        xp -= cap
        level += 1
        levels_gained += 1
        cap = xp_to_next_level(level)
        if cap == 0:
            xp = 0

    points = levels_gained * POINTS_PER_LEVEL
    character.level = level
    character.xp = xp
    character.xp_to_next = xp_to_next_level(level)
    character.unspent_points += points
    await store.save_character(character)

    result = XpApplication(
        character_id=character.id,
        xp_gain=gained,
        level_before=level_before,
        level_after=level,
        xp_after=xp,
        xp_to_next_after=character.xp_to_next,
        levels_gained=levels_gained,
        points_gained=points,
    )

    await store.record_progression_event(character.id, "xp_applied", {
        "reason": reason,
        "xp_gain": gained,
        "levels_gained": levels_gained,
        "points_gained": points,
        "level_after": level,
        "xp_after": xp,
        "xp_to_next_after": character.xp_to_next,
        "metadata": dict(metadata or {}),
    })
    if levels_gained:
        await store.record_progression_event(character.id, "level_up", {
            "levels_gained": levels_gained,
            "points_gained": points,
            "level_before": level_before,
            "level_after": level,
        })
        logger.info(
            "Character %s levelled %d -> %d (+%d points)",
            character.id, level_before, level, points,
        )
    return result
