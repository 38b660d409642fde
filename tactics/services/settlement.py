"""Settlement engine — the end-of-combat reward and consequence pass.

Order of work:
  1. end the session (compare-and-set; losing the race means someone else settled)
  2. on a win, per surviving player character: XP, then loot, each at most once
     per (character, session); then reputation and narrative memory
  3. on a loss, per player: setback memory and a reputation penalty
  4. hand the campaign back to its most recent non-combat board
  5. append combat_end

Reputation and memory writes are best-effort.  Each runs in its own savepoint,
and a failure is logged and recorded as a SideEffectOutcome without touching
the XP/loot/combat_end results.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from tactics.models.action_event import EventType
from tactics.models.board import BoardStatus, BoardTransition, BoardType
from tactics.models.combat_session import CombatSession
from tactics.models.combatant import Combatant, EntityType
from tactics.models.reputation import Faction
from tactics.services.loot import budget_points, build_loot_item, roll_rarity
from tactics.services.progression import apply_xp
from tactics.services.rng import DeterministicRng
from tactics.services.store import CombatStore

logger = logging.getLogger(__name__)

XP_BASE = 180
XP_PER_COMBATANT = 35
XP_NO_HOSTILES_BONUS = 220

VICTORY_REP_DELTA = 6
SETBACK_REP_DELTA = -4
MEMORY_CATEGORY = "quest_thread"
LOOT_SOURCE = "combat_tick"
MAX_LOOT_NAMES = 8


@dataclass
class SideEffectOutcome:
    effect: str             # "reputation" or "memory"
    player_id: int
    ok: bool
    reason: str | None = None


@dataclass
class SettlementResult:
    won: bool
    alive_players: int
    alive_npcs: int
    xp_per: int
    xp_awarded_total: int = 0
    loot: list[str] = field(default_factory=list)
    side_effects: list[SideEffectOutcome] = field(default_factory=list)
    board_transition_id: int | None = None
    # True when another resolver had already ended the session; nothing was written
    already_settled: bool = False


def count_alive(combatants: Sequence[Combatant]) -> tuple[int, int]:
    """(living player combatants, living npc combatants)."""
    players = sum(1 for c in combatants if c.is_alive and c.entity_type == EntityType.player)
    npcs = sum(1 for c in combatants if c.is_alive and c.entity_type == EntityType.npc)
    return players, npcs


def xp_per_survivor(won: bool, total_combatants: int, npcs_alive: int) -> int:
    if not won:
        return 0
    bonus = XP_NO_HOSTILES_BONUS if npcs_alive == 0 else 0
    return XP_BASE + XP_PER_COMBATANT * total_combatants + bonus


async def _best_effort(
    effect: str,
    player_id: int,
    combat_session_id: int,
    store: CombatStore,
    write: Callable[[], Awaitable[Any]],
) -> SideEffectOutcome:
    try:
        async with store.savepoint():
            await write()
    except Exception as exc:
        logger.warning(
            "Settlement %s write failed (combat_session_id=%s, player_id=%s): %s",
            effect, combat_session_id, player_id, exc,
        )
        return SideEffectOutcome(effect=effect, player_id=player_id, ok=False, reason=str(exc))
    return SideEffectOutcome(effect=effect, player_id=player_id, ok=True)


async def _transition_board(
    store: CombatStore,
    session: CombatSession,
    won: bool,
    xp_gained: int,
    loot: list[str],
) -> BoardTransition | None:
    """Reactivate the latest non-combat board and archive this session's combat board."""
    target = await store.latest_non_combat_board(session.campaign_id)
    if target is None:
        logger.info("No board to return to after combat %s", session.id)
        return None

    await store.archive_combat_boards(session.id)
    await store.set_board_status(target, BoardStatus.active)
    return await store.record_board_transition(
        campaign_id=session.campaign_id,
        from_board_type=BoardType.combat,
        to_board_type=target.board_type,
        reason="combat_end",
        payload={
            "combat_session_id": session.id,
            "outcome": {
                "won": won,
                "xp_gained": max(0, xp_gained),
                "loot": loot[:MAX_LOOT_NAMES],
            },
        },
    )


async def _settle_victory(
    store: CombatStore,
    session: CombatSession,
    turn_index: int,
    survivors: list[Combatant],
    faction: Faction | None,
    xp_per: int,
    result: SettlementResult,
) -> None:
    rng = DeterministicRng(session.seed)

    for player in survivors:
        if player.character_id is None:
            continue
        character = await store.get_character(player.character_id)
        if character is None:
            logger.warning(
                "Combatant %s links missing character %s; no rewards granted",
                player.id, player.character_id,
            )
            continue

        awarded_xp = False
        loot_item_id = None

        if not await store.has_xp_award(character.id, session.id):
            xp = await apply_xp(
                store, character, xp_per,
                reason="combat_settlement",
                metadata={"combat_session_id": session.id},
            )
            awarded_xp = True
            result.xp_awarded_total += xp_per
            await store.append_event(session.id, turn_index, None, EventType.xp_gain.value, {
                "character_id": character.id,
                "amount": xp_per,
                "result": xp.as_dict(),
            })
            if xp.levels_gained:
                await store.append_event(session.id, turn_index, None, EventType.level_up.value, {
                    "character_id": character.id,
                    "level_before": xp.level_before,
                    "level_after": xp.level_after,
                    "points_gained": xp.points_gained,
                })

        if not await store.has_loot_award(character.id, session.id):
            rarity = roll_rarity(xp_per)
            item = build_loot_item(
                rng,
                campaign_id=session.campaign_id,
                character_id=character.id,
                level=character.level,
                rarity=rarity,
            )
            item = await store.grant_loot(
                item,
                combat_session_id=session.id,
                source=LOOT_SOURCE,
                budget_points=budget_points(rarity),
            )
            loot_item_id = item.id
            result.loot.append(item.name)
            await store.append_event(session.id, turn_index, None, EventType.loot_drop.value, {
                "character_id": character.id,
                "item_id": item.id,
                "rarity": item.rarity.value,
                "name": item.name,
            })

        if faction is None or player.player_id is None or not (awarded_xp or loot_item_id):
            continue

        player_id = player.player_id
        result.side_effects.append(await _best_effort(
            "reputation", player_id, session.id, store,
            lambda: store.apply_reputation_delta(
                campaign_id=session.campaign_id,
                player_id=player_id,
                faction_id=faction.id,
                delta=VICTORY_REP_DELTA,
                severity=2,
                evidence={
                    "reason": "combat_victory",
                    "combat_session_id": session.id,
                    "xp_awarded": xp_per,
                    "loot_item_id": loot_item_id,
                },
            ),
        ))
        result.side_effects.append(await _best_effort(
            "memory", player_id, session.id, store,
            lambda: store.append_memory_event(
                campaign_id=session.campaign_id,
                player_id=player_id,
                category=MEMORY_CATEGORY,
                severity=2,
                payload={
                    "type": "combat_victory",
                    "combat_session_id": session.id,
                    "xp_awarded": xp_per,
                    "loot_item_id": loot_item_id,
                    "faction_id": faction.id,
                    "faction_name": faction.name,
                },
            ),
        ))


async def _settle_defeat(
    store: CombatStore,
    session: CombatSession,
    players: list[Combatant],
    faction: Faction | None,
    result: SettlementResult,
) -> None:
    for player in players:
        if player.player_id is None:
            continue
        player_id = player.player_id
        survived = bool(player.is_alive)

        result.side_effects.append(await _best_effort(
            "memory", player_id, session.id, store,
            lambda: store.append_memory_event(
                campaign_id=session.campaign_id,
                player_id=player_id,
                category=MEMORY_CATEGORY,
                severity=3,
                payload={
                    "type": "combat_setback",
                    "combat_session_id": session.id,
                    "survived": survived,
                },
            ),
        ))
        if faction is not None:
            result.side_effects.append(await _best_effort(
                "reputation", player_id, session.id, store,
                lambda: store.apply_reputation_delta(
                    campaign_id=session.campaign_id,
                    player_id=player_id,
                    faction_id=faction.id,
                    delta=SETBACK_REP_DELTA,
                    severity=2,
                    evidence={"reason": "combat_loss", "combat_session_id": session.id},
                ),
            ))


async def settle_combat(
    store: CombatStore,
    session: CombatSession,
    turn_index: int,
    combatants: Sequence[Combatant],
) -> SettlementResult:
    """Run the settlement pass for a session whose alive sets show a finished fight.

    combatants must be the full roster of the session (living and dead), read
    after the last mutation of the turn that ended the fight.
    """
    alive_players, alive_npcs = count_alive(combatants)
    won = alive_players > 0 and alive_npcs == 0
    xp_per = xp_per_survivor(won, len(combatants), alive_npcs)
    result = SettlementResult(
        won=won, alive_players=alive_players, alive_npcs=alive_npcs, xp_per=xp_per
    )

    if not await store.end_session(session.id):
        logger.warning("Combat session %s was already ended; skipping settlement", session.id)
        result.xp_per = 0
        result.already_settled = True
        return result

    factions = await store.list_factions(session.campaign_id)
    faction = factions[0] if factions else None

    if won:
        survivors = [
            c for c in combatants if c.is_alive and c.entity_type == EntityType.player
        ]
        await _settle_victory(store, session, turn_index, survivors, faction, xp_per, result)
    else:
        players = [c for c in combatants if c.entity_type == EntityType.player]
        await _settle_defeat(store, session, players, faction, result)

    transition = await _transition_board(
        store, session, won, result.xp_awarded_total, result.loot
    )
    if transition is not None:
        result.board_transition_id = transition.id

    await store.append_event(session.id, turn_index, None, EventType.combat_end.value, {
        "alive_players": alive_players,
        "alive_npcs": alive_npcs,
        "won": won,
    })

    failed = [o for o in result.side_effects if not o.ok]
    logger.info(
        "Combat %s settled: won=%s players=%d npcs=%d xp_per=%d loot=%d failed_side_effects=%d",
        session.id, won, alive_players, alive_npcs, xp_per, len(result.loot), len(failed),
    )
    return result
