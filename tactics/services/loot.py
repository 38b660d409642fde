"""Seeded loot generation for combat settlement.

Rolls are labelled ``loot:{character_id}:{purpose}`` so the same session seed
always produces the same item for the same character.
"""

from __future__ import annotations

import math

from tactics.models.item import Item, Rarity
from tactics.services.rng import DeterministicRng

SLOTS = ("weapon", "armor", "ring", "trinket")
NAMES_A = ("Ash", "Iron", "Dread", "Storm", "Velvet", "Blood", "Wyrm", "Night")
NAMES_B = ("Edge", "Ward", "Pulse", "Maw", "Spur", "Bite", "Halo", "Crown")

POWER_MULTIPLIER = {
    Rarity.magical: 1.8,
    Rarity.unique: 2.2,
    Rarity.legendary: 2.6,
}

BUDGET_POINTS = {
    Rarity.magical: 24,
    Rarity.unique: 32,
    Rarity.legendary: 40,
}

LEGENDARY_DRAWBACK = {
    "id": "volatile_reverb",
    "description": "Draws danger toward its bearer.",
    "world_reaction": True,
}


def roll_rarity(xp_awarded: int) -> Rarity:
    if xp_awarded > 420:
        return Rarity.legendary
    if xp_awarded > 280:
        return Rarity.unique
    return Rarity.magical


def budget_points(rarity: Rarity) -> int:
    return BUDGET_POINTS[rarity]


def build_loot_item(
    rng: DeterministicRng,
    *,
    campaign_id: int,
    character_id: int,
    level: int,
    rarity: Rarity,
) -> Item:
    """Generate (but do not persist) one piece of gear for character_id."""
    prefix = f"loot:{character_id}"
    slot = rng.pick(f"{prefix}:slot", SLOTS)
    name = f"{rng.pick(f'{prefix}:a', NAMES_A)} {rng.pick(f'{prefix}:b', NAMES_B)}"

    stat_mods = {
        "offense": rng.next_int(f"{prefix}:off", 1, 8),
        "defense": rng.next_int(f"{prefix}:def", 1, 8),
    }
    if slot == "weapon":
        stat_mods["weapon_power"] = rng.next_int(f"{prefix}:wp", 2, 12)
    elif slot == "armor":
        stat_mods["armor_power"] = rng.next_int(f"{prefix}:ap", 2, 10)
    else:
        stat_mods["utility"] = rng.next_int(f"{prefix}:ut", 2, 10)

    lvl = max(1, int(level or 1))
    return Item(
        campaign_id=campaign_id,
        owner_character_id=character_id,
        rarity=rarity,
        name=name,
        item_type="gear",
        slot=slot,
        stat_mods=stat_mods,
        drawback=dict(LEGENDARY_DRAWBACK) if rarity == Rarity.legendary else {},
        narrative_hook=f"{name} was torn from the fight while metal was still screaming.",
        required_level=max(1, lvl - 1),
        item_power=max(1, math.floor(lvl * POWER_MULTIPLIER[rarity])),
        bind_policy="unbound" if rarity == Rarity.magical else "bind_on_equip",
    )
