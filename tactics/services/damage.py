"""Damage resolver.

Roll pipeline (all randomness from DeterministicRng under the caller's label):
  1. attack_rating from attacker level, offense and weapon power.
  2. Scale by the skill multiplier.
  3. Apply a bounded spread of +/- spread_pct            (label + ":spread").
  4. Critical hit check from mobility/utility            (label + ":crit").
  5. Mitigate by target resist: dmg * 100 / (100 + resist).
  6. final_damage = 0 when nothing was dealt, otherwise at least 1.

Armor is handled by the caller after the roll: armor absorbs first and is
consumed, the remainder comes off hit points (see absorb_with_armor).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from tactics.services.rng import DeterministicRng, clamp, round_half_up

DEFAULT_SPREAD_PCT = 0.10
MAX_SPREAD_PCT = 0.50


@dataclass(frozen=True)
class DamageRoll:
    attack_rating: float
    base_before_spread: float
    spread: float
    pre_mitigation: float
    resist: float
    is_crit: bool
    crit_chance: float
    crit_mult: float
    final_damage: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ArmorAbsorption:
    raw_damage: int
    absorbed: int
    hp_loss: int
    armor_after: int


def attack_rating(level: int, offense: int, weapon_power: float) -> float:
    lvl = clamp(level or 1, 1, 99)
    off = clamp(offense or 0, 0, 100)
    wp = max(float(weapon_power or 0), 0.0)
    return float(round_half_up(14.0 + lvl * 1.55 + off * 0.32 + wp * 0.40))


def crit_chance(mobility: int, utility: int) -> float:
    m = clamp(mobility or 0, 0, 100)
    u = clamp(utility or 0, 0, 100)
    return clamp(0.02 + (m + u) / 400.0, 0.02, 0.60)


def crit_mult(offense: int, utility: int) -> float:
    o = clamp(offense or 0, 0, 100)
    u = clamp(utility or 0, 0, 100)
    return clamp(1.5 + (o + u) / 200.0, 1.5, 3.0)


def mitigate(raw_damage: float, resist: float) -> float:
    dmg = max(raw_damage, 0.0)
    r = max(resist, 0.0)
    return dmg * 100.0 / (100.0 + r)


def compute_damage(
    rng: DeterministicRng,
    label: str,
    *,
    level: int,
    offense: int,
    mobility: int,
    utility: int,
    weapon_power: float,
    skill_mult: float,
    resist: float,
    spread_pct: float = DEFAULT_SPREAD_PCT,
) -> DamageRoll:
    """Roll one hit.  Pure function of its arguments and (rng.seed, label)."""
    ar = attack_rating(level, offense, weapon_power)
    base = ar * max(skill_mult if skill_mult is not None else 1.0, 0.0)

    spread = (rng.unit(f"{label}:spread") - 0.5) * 2.0 * clamp(spread_pct, 0.0, MAX_SPREAD_PCT)
    pre = base * (1.0 + spread)

    cc = crit_chance(mobility, utility)
    cm = crit_mult(offense, utility)
    is_crit = rng.unit(f"{label}:crit") < cc
    if is_crit:
        pre *= cm

    r = max(float(resist or 0), 0.0)
    mitigated = mitigate(pre, r)
    final_damage = 0 if pre <= 0 else max(1, round_half_up(mitigated))

    return DamageRoll(
        attack_rating=ar,
        base_before_spread=base,
        spread=spread,
        pre_mitigation=pre,
        resist=r,
        is_crit=is_crit,
        crit_chance=cc,
        crit_mult=cm,
        final_damage=final_damage,
    )


def absorb_with_armor(raw_damage: int, armor: int) -> ArmorAbsorption:
    """Armor soaks damage first, up to its current value; the rest hits HP."""
    raw = max(0, int(raw_damage))
    shield = max(0, int(armor))
    absorbed = min(shield, raw)
    return ArmorAbsorption(
        raw_damage=raw,
        absorbed=absorbed,
        hp_loss=raw - absorbed,
        armor_after=shield - absorbed,
    )
