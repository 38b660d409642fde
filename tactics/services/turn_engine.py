"""Turn resolution engine — advances an active combat by up to N turns.

Each step re-reads everything it needs from the CombatStore:
  1. load the session; stop if it is gone, not active, or its pointer moved
     under us since our last write
  2. resolve the current actor from the turn order (integrity error if the
     pointer is not in the order or the actor row is missing)
  3. a living player actor stops the call: requires_player_action
  4. start-of-turn status tick; a dead actor is skipped
  5. no living opponents -> settle
  6-8. pick a target, choose a plan (companion / boss / baseline), resolve it
  9. end-of-turn status tick
  10. recompute alive sets; one side wiped -> settle
  11. move the pointer (compare-and-set), append turn_end / turn_start

All writes for a turn are flushed before the pointer moves.  Nothing is cached
between steps.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from tactics.config import settings
from tactics.models.action_event import EventType
from tactics.models.combat_session import CombatSession, CombatStatus, TurnOrderSlot
from tactics.models.combatant import Combatant, EntityType
from tactics.services import actor_plan
from tactics.services.boss_phase import (
    VULNERABILITY_SKILLS,
    hp_fraction,
    next_phase,
    parse_phases,
    phase_pool,
    select_skill,
)
from tactics.services.damage import absorb_with_armor, compute_damage
from tactics.services.errors import (
    CombatIntegrityError,
    CombatSessionNotFound,
    CombatValidationError,
)
from tactics.services.rng import DeterministicRng, damage_label, turn_label
from tactics.services.settlement import SettlementResult, count_alive, settle_combat
from tactics.services.status_effects import StatusEffect, TickPhase, apply_status, resolve_status_tick
from tactics.services.store import CombatStore
from tactics.services.turn_order import combatant_at, next_alive_turn_index, slot_for_index

logger = logging.getLogger(__name__)

VULNERABLE_DURATION = 2
DEFEND_DURATION = 1


class ResolutionState(str, enum.Enum):
    idle = "idle"
    resolving = "resolving"
    awaiting_player = "awaiting_player"
    ended = "ended"
    budget_exhausted = "budget_exhausted"
    interrupted = "interrupted"


@dataclass
class AdvanceResult:
    ticks: int
    ended: bool
    requires_player_action: bool
    current_turn_index: int
    next_actor_combatant_id: int | None
    state: ResolutionState
    settlement: SettlementResult | None = None


@dataclass
class _PointerMove:
    turn_index: int
    combatant_id: int | None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def combat_is_over(combatants: list[Combatant]) -> bool:
    alive_players, alive_npcs = count_alive(combatants)
    return alive_players == 0 or alive_npcs == 0


def _is_waiting_player(combatant: Combatant | None) -> bool:
    return (
        combatant is not None
        and combatant.entity_type == EntityType.player
        and combatant.is_alive
    )


async def _append_tick_events(
    store: CombatStore, session_id: int, turn_index: int, actor: Combatant, events
) -> None:
    for event_type, payload in events:
        await store.append_event(session_id, turn_index, actor.id, event_type, payload)


async def _move_pointer(
    store: CombatStore,
    session: CombatSession,
    order: list[TurnOrderSlot],
    combatants: list[Combatant],
    actor: Combatant,
) -> _PointerMove | None:
    """Advance to the next living actor.  None if another writer moved the pointer first."""
    turn_index = session.current_turn_index
    alive_ids = {c.id for c in combatants if c.is_alive}
    next_index = next_alive_turn_index(order, alive_ids, turn_index)

    if not await store.advance_turn_pointer(session.id, turn_index, next_index):
        logger.warning(
            "Turn pointer for combat %s moved concurrently (expected %s)", session.id, turn_index
        )
        return None

    next_actor_id = combatant_at(order, next_index)
    await store.append_event(session.id, turn_index, actor.id, EventType.turn_end.value, {
        "combatant_id": actor.id,
        "turn_number": session.turn_number,
    })
    await store.append_event(session.id, next_index, next_actor_id, EventType.turn_start.value, {
        "combatant_id": next_actor_id,
        "turn_number": session.turn_number + 1,
    })
    return _PointerMove(turn_index=next_index, combatant_id=next_actor_id)


# ---------------------------------------------------------------------------
# Action resolution
# ---------------------------------------------------------------------------

async def _choose_plan(
    store: CombatStore,
    session: CombatSession,
    rng: DeterministicRng,
    actor: Combatant,
    opponents: list[Combatant],
) -> actor_plan.ActorPlan:
    turn_index, turn_number = session.current_turn_index, session.turn_number
    primary = actor_plan.pick_primary_target(
        rng, turn_label(turn_index, turn_number, "target"), opponents
    )

    if actor_plan.is_companion(actor):
        return actor_plan.companion_plan(actor, primary)
    if actor.is_allied:
        return actor_plan.npc_plan(primary)

    boss = await store.get_boss_instance(session.id, actor.id)
    if boss is None:
        return actor_plan.npc_plan(primary)

    phases = parse_phases(boss.template.phases if boss.template else [])
    fraction = hp_fraction(actor.hp, actor.hp_max)
    phase = next_phase(fraction, boss.current_phase, phases)
    if phase != boss.current_phase:
        await store.update_boss_phase(boss, phase)
        await store.append_event(session.id, turn_index, actor.id, EventType.phase_shift.value, {
            "combatant_id": actor.id,
            "phase": phase,
            "hp_pct": fraction,
        })
        logger.info("Boss %s entered phase %s at %.2f HP", actor.id, phase, fraction)

    skill = select_skill(rng, turn_label(turn_index, turn_number, "boss"), phase_pool(phases, phase))
    return actor_plan.boss_plan(skill, primary, opponents)


async def _resolve_defend(
    store: CombatStore, session: CombatSession, actor: Combatant, plan: actor_plan.ActorPlan
) -> None:
    gain = actor_plan.defend_armor_gain(actor)
    actor.armor = max(0, actor.armor + gain)
    for status_id in ("barrier", "guard"):
        apply_status(actor, StatusEffect(
            id=status_id,
            expires_turn=session.turn_number + DEFEND_DURATION,
            data={"amount": gain, "source": plan.skill_id},
        ))
    await store.save_combatant(actor)
    for status_id in ("barrier", "guard"):
        await store.append_event(
            session.id, session.current_turn_index, actor.id, EventType.status_applied.value, {
                "target_combatant_id": actor.id,
                "status": {"id": status_id, "amount": gain, "duration_turns": DEFEND_DURATION},
            },
        )


async def _resolve_recover(store: CombatStore, session: CombatSession, actor: Combatant) -> None:
    before = max(0, actor.power)
    after = min(max(0, actor.power_max), before + actor_plan.recover_power_amount(actor))
    actor.power = after
    await store.save_combatant(actor)
    await store.append_event(
        session.id, session.current_turn_index, actor.id, EventType.power_gain.value, {
            "target_combatant_id": actor.id,
            "amount": max(0, after - before),
            "power_after": after,
        },
    )


async def _resolve_attack(
    store: CombatStore,
    session: CombatSession,
    rng: DeterministicRng,
    actor: Combatant,
    plan: actor_plan.ActorPlan,
) -> None:
    turn_index, turn_number = session.current_turn_index, session.turn_number

    for target in plan.targets:
        roll = compute_damage(
            rng,
            damage_label(session.id, turn_index, turn_number, actor.id, target.id),
            level=actor.lvl,
            offense=actor.offense,
            mobility=actor.mobility,
            utility=actor.utility,
            weapon_power=actor.weapon_power,
            skill_mult=actor_plan.skill_multiplier(plan.skill_id, target.hp_fraction),
            resist=target.resist + target.armor,
            spread_pct=settings.damage_spread_pct,
        )
        absorption = absorb_with_armor(roll.final_damage, target.armor)
        was_alive = target.is_alive
        target.armor = absorption.armor_after
        target.hp = max(0, target.hp - absorption.hp_loss)
        target.is_alive = target.hp > 0
        await store.save_combatant(target)

        await store.append_event(session.id, turn_index, actor.id, EventType.damage.value, {
            "source_combatant_id": actor.id,
            "target_combatant_id": target.id,
            "skill_id": plan.skill_id,
            "roll": roll.as_dict(),
            "shield_absorbed": absorption.absorbed,
            "damage_to_hp": absorption.hp_loss,
            "hp_after": target.hp,
            "armor_after": target.armor,
        })

        if plan.skill_id in VULNERABILITY_SKILLS:
            apply_status(target, StatusEffect(
                id="vulnerable",
                expires_turn=turn_number + VULNERABLE_DURATION,
                data={"source": plan.skill_id},
            ))
            await store.save_combatant(target)
            await store.append_event(
                session.id, turn_index, actor.id, EventType.status_applied.value, {
                    "target_combatant_id": target.id,
                    "status": {
                        "id": "vulnerable",
                        "duration_turns": VULNERABLE_DURATION,
                        "source": plan.skill_id,
                    },
                },
            )

        if was_alive and not target.is_alive:
            await store.append_event(session.id, turn_index, actor.id, EventType.death.value, {
                "target_combatant_id": target.id,
                "by": {"combatant_id": actor.id, "skill_id": plan.skill_id},
            })


async def _resolve_action(
    store: CombatStore,
    session: CombatSession,
    rng: DeterministicRng,
    actor: Combatant,
    plan: actor_plan.ActorPlan,
) -> None:
    await store.append_event(
        session.id, session.current_turn_index, actor.id, EventType.skill_used.value, {
            "skill_id": plan.skill_id,
            "skill_name": plan.skill_name,
            "target_count": len(plan.targets),
            "target_ids": [t.id for t in plan.targets],
        },
    )
    if plan.deals_damage:
        await _resolve_attack(store, session, rng, actor, plan)
    elif plan.skill_id == actor_plan.DEFEND_SKILL:
        await _resolve_defend(store, session, actor, plan)
    else:
        await _resolve_recover(store, session, actor)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def advance_combat(
    store: CombatStore,
    campaign_id: int,
    combat_session_id: int,
    max_steps: int = 1,
) -> AdvanceResult:
    """Resolve up to max_steps turns of an active combat.

    Stops early when a living player must act, when the fight ends (settlement
    runs inside this call), or when another writer moves the turn pointer.
    """
    if not isinstance(max_steps, int) or not 1 <= max_steps <= settings.max_steps_cap:
        raise CombatValidationError(
            f"max_steps must be between 1 and {settings.max_steps_cap}"
        )

    ticks = 0
    expected_index: int | None = None
    last_index = 0

    def finish(state: ResolutionState, **kwargs) -> AdvanceResult:
        result = AdvanceResult(
            ticks=ticks,
            ended=kwargs.pop("ended", state == ResolutionState.ended),
            requires_player_action=state == ResolutionState.awaiting_player,
            current_turn_index=kwargs.pop("current_turn_index", last_index),
            next_actor_combatant_id=kwargs.pop("next_actor_combatant_id", None),
            state=state,
            settlement=kwargs.pop("settlement", None),
        )
        logger.info(
            "Advanced combat %s: ticks=%d state=%s turn_index=%s next_actor=%s",
            combat_session_id, result.ticks, state.value,
            result.current_turn_index, result.next_actor_combatant_id,
        )
        return result

    def settled(settlement: SettlementResult) -> AdvanceResult:
        if settlement.already_settled:
            return finish(ResolutionState.interrupted, ended=True)
        return finish(ResolutionState.ended, settlement=settlement)

    for step in range(max_steps):
        session = await store.get_session(campaign_id, combat_session_id)
        if session is None:
            if step == 0:
                raise CombatSessionNotFound(combat_session_id)
            return finish(ResolutionState.interrupted)
        last_index = session.current_turn_index
        if session.status != CombatStatus.active:
            return finish(
                ResolutionState.ended if session.status == CombatStatus.ended else ResolutionState.idle
            )
        if expected_index is not None and session.current_turn_index != expected_index:
            logger.warning(
                "Combat %s pointer is %s, expected %s; stopping",
                session.id, session.current_turn_index, expected_index,
            )
            return finish(ResolutionState.interrupted)

        turn_index = session.current_turn_index
        order = await store.list_turn_order(session.id)
        slot = slot_for_index(order, turn_index)
        actor = await store.get_combatant(session.id, slot.combatant_id)
        if actor is None:
            raise CombatIntegrityError(
                f"Turn actor {slot.combatant_id} missing from combat {session.id}"
            )

        if _is_waiting_player(actor):
            return finish(ResolutionState.awaiting_player, next_actor_combatant_id=actor.id)

        if actor.is_alive:
            tick = resolve_status_tick(actor, session.turn_number, TickPhase.start)
            await store.save_combatant(actor)
            await _append_tick_events(store, session.id, turn_index, actor, tick.events)

        combatants = await store.list_combatants(session.id)
        ticks += 1

        if actor.is_alive:
            opponents = actor_plan.opponents_of(actor, combatants)
            if opponents:
                rng = DeterministicRng(session.seed)
                plan = await _choose_plan(store, session, rng, actor, opponents)
                await _resolve_action(store, session, rng, actor, plan)

                end_tick = resolve_status_tick(actor, session.turn_number, TickPhase.end)
                await store.save_combatant(actor)
                await _append_tick_events(store, session.id, turn_index, actor, end_tick.events)

                combatants = await store.list_combatants(session.id)
            else:
                logger.info("Actor %s has no living opponents; ending combat", actor.id)
                return settled(await settle_combat(store, session, turn_index, combatants))
        else:
            logger.debug("Skipping defeated actor %s at turn %s", actor.id, turn_index)

        if combat_is_over(combatants):
            return settled(await settle_combat(store, session, turn_index, combatants))

        move = await _move_pointer(store, session, order, combatants, actor)
        if move is None:
            return finish(ResolutionState.interrupted)
        expected_index = last_index = move.turn_index

        next_actor = next((c for c in combatants if c.id == move.combatant_id), None)
        if _is_waiting_player(next_actor):
            return finish(ResolutionState.awaiting_player, next_actor_combatant_id=next_actor.id)

    return finish(
        ResolutionState.budget_exhausted,
        next_actor_combatant_id=combatant_at(order, last_index),
    )

