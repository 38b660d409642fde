"""Boss phase controller.

A boss template lists phase rows {phase, hp_below_pct, skill_pool}.  The boss
is in the highest phase whose hp_below_pct is at or above its current HP
fraction, and never drops back to an earlier phase.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from tactics.services.rng import DeterministicRng

DEFAULT_BOSS_SKILL = "boss_strike"
MULTI_TARGET_SKILL = "boss_cleave"
VULNERABILITY_SKILLS = frozenset({"boss_mark", "boss_vuln"})


@dataclass(frozen=True)
class PhaseRow:
    phase: int
    hp_below_pct: float
    skill_pool: tuple[str, ...] = field(default_factory=tuple)


def parse_phases(raw: Any) -> list[PhaseRow]:
    """Read template phase rows, skipping rows with non-numeric phase/threshold."""
    if not isinstance(raw, list):
        return []
    rows: list[PhaseRow] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            phase = int(entry.get("phase", 1))
            threshold = float(entry.get("hp_below_pct", 1))
        except (TypeError, ValueError):
            continue
        pool = entry.get("skill_pool")
        skills = tuple(str(s) for s in pool) if isinstance(pool, list) else ()
        rows.append(PhaseRow(phase=phase, hp_below_pct=threshold, skill_pool=skills))
    return rows


def hp_fraction(hp: float, hp_max: float) -> float:
    if hp_max <= 0:
        return 1.0
    return hp / hp_max


def next_phase(current_hp_fraction: float, current_phase: int, phases: Sequence[PhaseRow]) -> int:
    phase = current_phase
    for row in phases:
        if row.hp_below_pct >= current_hp_fraction:
            phase = max(phase, row.phase)
    return phase


def phase_pool(phases: Sequence[PhaseRow], phase: int) -> tuple[str, ...]:
    for row in phases:
        if row.phase == phase:
            return row.skill_pool
    return phases[0].skill_pool if phases else ()


def select_skill(rng: DeterministicRng, label: str, pool: Sequence[str]) -> str:
    if not pool:
        return DEFAULT_BOSS_SKILL
    return rng.pick(f"{label}:boss_skill", list(pool))


def skill_display_name(skill_id: str) -> str:
    return skill_id.replace("_", " ")
