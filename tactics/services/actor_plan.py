"""What a non-player actor does on its turn.

Three kinds of automated actor:
  - companions (allied summons): defend when low on HP, recover power when
    low on power, otherwise a basic attack on the primary target
  - bosses: skill from the active phase pool (see boss_phase)
  - every other hostile: the baseline swipe
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from tactics.models.combatant import Combatant, EntityType
from tactics.services.boss_phase import MULTI_TARGET_SKILL, skill_display_name
from tactics.services.rng import DeterministicRng

NPC_BASELINE_SKILL = "npc_swipe"
NPC_BASELINE_NAME = "Savage Swipe"

DEFEND_SKILL = "basic_defend"
RECOVER_SKILL = "basic_recover_mp"
ATTACK_SKILL = "basic_attack"

DEFEND_HP_THRESHOLD = 0.35
RECOVER_POWER_THRESHOLD = 0.30
EXECUTE_HP_THRESHOLD = 0.40

_COMPANION_NAMES = {
    DEFEND_SKILL: "Defend",
    RECOVER_SKILL: "Recover MP",
    ATTACK_SKILL: "Attack",
}


@dataclass
class ActorPlan:
    skill_id: str
    skill_name: str
    targets: list[Combatant] = field(default_factory=list)

    @property
    def deals_damage(self) -> bool:
        return self.skill_id not in (DEFEND_SKILL, RECOVER_SKILL)


# ---------------------------------------------------------------------------
# Teams & targeting
# ---------------------------------------------------------------------------

def is_companion(actor: Combatant) -> bool:
    return actor.entity_type == EntityType.summon and actor.is_allied


def opponents_of(actor: Combatant, combatants: Sequence[Combatant]) -> list[Combatant]:
    """Living members of the other team, ordered by id."""
    return sorted(
        (c for c in combatants if c.is_alive and c.is_allied != actor.is_allied),
        key=lambda c: c.id,
    )


def pick_primary_target(
    rng: DeterministicRng, label: str, opponents: Sequence[Combatant]
) -> Combatant:
    return rng.pick(label, list(opponents))


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

def companion_plan(actor: Combatant, primary_target: Combatant) -> ActorPlan:
    if actor.hp_fraction <= DEFEND_HP_THRESHOLD:
        skill, targets = DEFEND_SKILL, [actor]
    elif actor.power_max > 0 and actor.power_fraction <= RECOVER_POWER_THRESHOLD:
        skill, targets = RECOVER_SKILL, [actor]
    else:
        skill, targets = ATTACK_SKILL, [primary_target]
    return ActorPlan(skill_id=skill, skill_name=_COMPANION_NAMES[skill], targets=targets)


def npc_plan(primary_target: Combatant) -> ActorPlan:
    return ActorPlan(
        skill_id=NPC_BASELINE_SKILL, skill_name=NPC_BASELINE_NAME, targets=[primary_target]
    )


def boss_plan(
    skill_id: str, primary_target: Combatant, opponents: Sequence[Combatant]
) -> ActorPlan:
    # cleave hits every opponent at full single-target damage
    targets = list(opponents) if skill_id == MULTI_TARGET_SKILL else [primary_target]
    return ActorPlan(skill_id=skill_id, skill_name=skill_display_name(skill_id), targets=targets)


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

def skill_multiplier(skill_id: str, target_hp_fraction: float) -> float:
    if skill_id == "boss_execute":
        return 2.0 if target_hp_fraction <= EXECUTE_HP_THRESHOLD else 1.3
    if skill_id == "boss_cleave":
        return 1.35
    if skill_id == "boss_mark":
        return 0.85
    if skill_id == "boss_vuln":
        return 0.95
    if skill_id == ATTACK_SKILL:
        return 1.0
    return 1.1


def defend_armor_gain(actor: Combatant) -> int:
    return max(4, math.floor(actor.defense * 0.22) + math.floor(actor.support * 0.12))


def recover_power_amount(actor: Combatant) -> int:
    return max(6, math.floor(actor.utility * 0.18) + math.floor(actor.support * 0.12))
