"""Tests for the turn resolution engine.

Covers:
- a baseline NPC turn handing over to the player
- a player killed mid-turn, ending the fight with a loss
- boss phase shifts, cleave and vulnerability marks
- companion defend / recover plans
- start-of-turn ticks (dead actors skipped, DoT deaths ending the fight)
- armor absorption, step budget, concurrency interruption
- integrity and validation errors
- determinism against the same stored snapshot
- settlement happening exactly once
"""

import pytest
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from combat_factories import (
    add_boss,
    add_character,
    add_combatant,
    add_companion,
    add_faction,
    add_player,
    create_session,
    event_types,
    events_of,
    set_turn_order,
)
from tactics.models.combat_session import CombatSession, CombatStatus
from tactics.models.reputation import FactionReputation, NarrativeMemoryEvent
from tactics.services.errors import (
    CombatIntegrityError,
    CombatSessionNotFound,
    CombatValidationError,
)
from tactics.services.rng import DeterministicRng
from tactics.services.store import SqlAlchemyCombatStore
from tactics.services.turn_engine import ResolutionState, advance_combat

CAMPAIGN = 7

BOSS_PHASES = [
    {"phase": 1, "hp_below_pct": 1.0, "skill_pool": ["boss_strike"]},
    {"phase": 2, "hp_below_pct": 0.4, "skill_pool": ["boss_cleave"]},
]


class FailingPointerStore(SqlAlchemyCombatStore):
    """Another writer always wins the pointer race."""

    async def advance_turn_pointer(self, combat_session_id, expected_index, next_index):
        return False


class RacingStore(SqlAlchemyCombatStore):
    """Moves the pointer one slot further right after every successful advance."""

    async def advance_turn_pointer(self, combat_session_id, expected_index, next_index):
        moved = await super().advance_turn_pointer(combat_session_id, expected_index, next_index)
        await self.db.execute(
            update(CombatSession)
            .where(CombatSession.id == combat_session_id)
            .values(current_turn_index=next_index + 1)
        )
        return moved


class AlreadyEndedStore(SqlAlchemyCombatStore):
    async def end_session(self, combat_session_id):
        return False


# ---------------------------------------------------------------------------
# Baseline turns
# ---------------------------------------------------------------------------

class TestBaselineTurn:
    async def test_npc_attacks_then_player_is_up(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        npc = await add_combatant(db_session, session, "Gloam Hound")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [npc, player])

        result = await advance_combat(store, CAMPAIGN, session.id, max_steps=1)

        assert result.state == ResolutionState.awaiting_player
        assert result.ended is False
        assert result.requires_player_action is True
        assert result.ticks == 1
        assert result.current_turn_index == 1
        assert result.next_actor_combatant_id == player.id
        assert await event_types(store, session.id) == [
            "skill_used", "damage", "turn_end", "turn_start",
        ]

        events = await events_of(store, session.id)
        assert events[0].payload["skill_id"] == "npc_swipe"
        assert events[0].payload["target_ids"] == [player.id]
        damage = events[1].payload
        assert damage["source_combatant_id"] == npc.id
        assert damage["target_combatant_id"] == player.id
        assert damage["damage_to_hp"] >= 1
        assert damage["hp_after"] == 100 - damage["damage_to_hp"]
        assert events[3].payload == {"combatant_id": player.id, "turn_number": 1}

        refreshed = await store.get_session(CAMPAIGN, session.id)
        assert refreshed.current_turn_index == 1
        assert refreshed.turn_number == 1

    async def test_player_turn_resolves_nothing(self, db_session: AsyncSession, store):
        session = await create_session(db_session, turn_index=1)
        npc = await add_combatant(db_session, session, "Gloam Hound")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [npc, player])

        result = await advance_combat(store, CAMPAIGN, session.id, max_steps=5)

        assert result.state == ResolutionState.awaiting_player
        assert result.ticks == 0
        assert result.next_actor_combatant_id == player.id
        assert await event_types(store, session.id) == []

    async def test_armor_absorbs_before_hp(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        npc = await add_combatant(db_session, session, "Gloam Hound")
        player = await add_player(db_session, session, armor=1000)
        await set_turn_order(db_session, session, [npc, player])

        await advance_combat(store, CAMPAIGN, session.id)

        damage = (await events_of(store, session.id))[1].payload
        assert damage["damage_to_hp"] == 0
        assert damage["shield_absorbed"] == damage["roll"]["final_damage"]
        assert damage["armor_after"] == 1000 - damage["shield_absorbed"]
        target = await store.get_combatant(session.id, player.id)
        assert target.hp == 100
        assert target.armor == damage["armor_after"]

    async def test_budget_exhausted(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        first = await add_combatant(db_session, session, "Gloam Hound")
        second = await add_combatant(db_session, session, "Ash Wight")
        pet = await add_companion(db_session, session)
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [first, second, pet, player])

        result = await advance_combat(store, CAMPAIGN, session.id, max_steps=2)

        assert result.state == ResolutionState.budget_exhausted
        assert result.ticks == 2
        assert result.current_turn_index == 2
        assert result.next_actor_combatant_id == pet.id
        assert result.requires_player_action is False

    async def test_hp_and_alive_stay_consistent(self, db_session: AsyncSession, store):
        session = await create_session(db_session, seed=77)
        first = await add_combatant(db_session, session, "Gloam Hound", hp=40, hp_max=40)
        second = await add_combatant(db_session, session, "Ash Wight", hp=40, hp_max=40)
        pet = await add_companion(db_session, session, hp=60, hp_max=60)
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [first, second, pet, player])

        result = await advance_combat(store, CAMPAIGN, session.id, max_steps=10)

        assert result.state in (ResolutionState.awaiting_player, ResolutionState.ended)
        for c in await store.list_combatants(session.id):
            assert 0 <= c.hp <= c.hp_max
            assert c.is_alive == (c.hp > 0)


# ---------------------------------------------------------------------------
# Deaths & settlement
# ---------------------------------------------------------------------------

class TestDeaths:
    async def test_player_killed_ends_with_loss(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        faction = await add_faction(db_session)
        npc = await add_combatant(db_session, session, "Gloam Hound")
        player = await add_player(db_session, session, hp=1)
        await set_turn_order(db_session, session, [npc, player])

        result = await advance_combat(store, CAMPAIGN, session.id)

        assert result.state == ResolutionState.ended
        assert result.ended is True
        assert result.requires_player_action is False
        assert result.settlement.won is False
        assert await event_types(store, session.id) == [
            "skill_used", "damage", "death", "combat_end",
        ]
        events = await events_of(store, session.id)
        assert events[2].payload["by"] == {"combatant_id": npc.id, "skill_id": "npc_swipe"}
        assert events[-1].payload == {"alive_players": 0, "alive_npcs": 1, "won": False}

        standing = (await db_session.execute(
            select(FactionReputation).where(FactionReputation.faction_id == faction.id)
        )).scalar_one()
        assert standing.rep == -4
        memory = (await db_session.execute(select(NarrativeMemoryEvent))).scalar_one()
        assert memory.payload["type"] == "combat_setback"
        assert memory.payload["survived"] is False
        assert memory.severity == 3

        refreshed = await store.get_session(CAMPAIGN, session.id)
        assert refreshed.status == CombatStatus.ended

    async def test_dead_actor_is_skipped(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        corpse = await add_combatant(db_session, session, "Gloam Hound", hp=0, statuses=[
            {"id": "bleed", "expires_turn": 9, "data": {"damage_per_turn": 5}},
        ])
        npc = await add_combatant(db_session, session, "Ash Wight")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [corpse, npc, player])

        result = await advance_combat(store, CAMPAIGN, session.id, max_steps=1)

        assert result.ticks == 1
        assert result.state == ResolutionState.budget_exhausted
        assert result.next_actor_combatant_id == npc.id
        assert await event_types(store, session.id) == ["turn_end", "turn_start"]

    async def test_bleed_kills_actor_at_turn_start(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        bleeding = await add_combatant(db_session, session, "Gloam Hound", hp=3, statuses=[
            {"id": "bleed", "expires_turn": 9, "data": {"damage_per_turn": 10}},
        ])
        npc = await add_combatant(db_session, session, "Ash Wight")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [bleeding, npc, player])

        result = await advance_combat(store, CAMPAIGN, session.id, max_steps=1)

        assert result.ticks == 1
        assert result.ended is False
        assert await event_types(store, session.id) == [
            "status_tick", "death", "turn_end", "turn_start",
        ]
        death = (await events_of(store, session.id))[1].payload
        assert death["reason"] == "status_tick"
        assert (await store.get_combatant(session.id, bleeding.id)).is_alive is False

    async def test_bleed_on_last_npc_wins(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        npc = await add_combatant(db_session, session, "Gloam Hound", hp=3, statuses=[
            {"id": "poison", "expires_turn": 9, "data": {"damage_per_turn": 10}},
        ])
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [npc, player])

        result = await advance_combat(store, CAMPAIGN, session.id)

        assert result.state == ResolutionState.ended
        assert result.settlement.won is True
        assert await event_types(store, session.id) == ["status_tick", "death", "combat_end"]

    async def test_settles_exactly_once(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        character = await add_character(db_session)
        pet = await add_companion(db_session, session)
        npc = await add_combatant(db_session, session, "Gloam Hound", hp=1)
        player = await add_player(db_session, session, character=character)
        await set_turn_order(db_session, session, [pet, npc, player])

        first = await advance_combat(store, CAMPAIGN, session.id)
        assert first.state == ResolutionState.ended
        assert first.settlement.won is True
        assert first.settlement.xp_per == 505
        types = await event_types(store, session.id)
        assert types.count("combat_end") == 1
        assert types.count("xp_gain") == 1
        assert types.count("loot_drop") == 1

        second = await advance_combat(store, CAMPAIGN, session.id)
        assert second.state == ResolutionState.ended
        assert second.ended is True
        assert second.ticks == 0
        assert await event_types(store, session.id) == types

    async def test_lost_settlement_race_is_interrupted(self, db_session: AsyncSession):
        store = AlreadyEndedStore(db_session)
        session = await create_session(db_session)
        npc = await add_combatant(db_session, session, "Gloam Hound", hp=2, statuses=[
            {"id": "burn", "expires_turn": 9, "data": {"damage_per_turn": 5}},
        ])
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [npc, player])

        result = await advance_combat(store, CAMPAIGN, session.id)

        assert result.state == ResolutionState.interrupted
        assert "combat_end" not in await event_types(store, session.id)


# ---------------------------------------------------------------------------
# Bosses
# ---------------------------------------------------------------------------

class TestBossTurns:
    async def test_phase_shift_and_cleave(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        boss_row = await add_combatant(db_session, session, "Lantern Eater", hp=35, hp_max=100)
        pet = await add_companion(db_session, session)
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [boss_row, pet, player])
        boss = await add_boss(db_session, session, boss_row, BOSS_PHASES)

        await advance_combat(store, CAMPAIGN, session.id)

        assert await event_types(store, session.id) == [
            "phase_shift", "skill_used", "damage", "damage", "turn_end", "turn_start",
        ]
        events = await events_of(store, session.id)
        assert events[0].payload == {"combatant_id": boss_row.id, "phase": 2, "hp_pct": 0.35}
        assert events[1].payload["skill_id"] == "boss_cleave"
        assert sorted(events[1].payload["target_ids"]) == sorted([pet.id, player.id])
        assert {e.payload["target_combatant_id"] for e in events[2:4]} == {pet.id, player.id}

        refreshed = await store.get_boss_instance(session.id, boss_row.id)
        assert refreshed.id == boss.id
        assert refreshed.current_phase == 2

    @pytest.mark.parametrize("seed", [1, 7, 19, 300, 4242])
    async def test_skill_roll_uses_turn_label(self, db_session: AsyncSession, store, seed):
        pool = ["boss_strike", "boss_mark", "boss_vuln", "boss_execute", "boss_cleave"]
        session = await create_session(db_session, seed=seed)
        boss_row = await add_combatant(db_session, session, "Lantern Eater")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [boss_row, player])
        await add_boss(db_session, session, boss_row, [
            {"phase": 1, "hp_below_pct": 1.0, "skill_pool": pool},
        ])

        await advance_combat(store, CAMPAIGN, session.id)

        skill = (await events_of(store, session.id))[0].payload["skill_id"]
        assert skill == DeterministicRng(seed).pick("tick:0:n:0:boss:boss_skill", pool)

    async def test_phase_never_regresses(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        boss_row = await add_combatant(db_session, session, "Lantern Eater", hp=90, hp_max=100)
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [boss_row, player])
        await add_boss(db_session, session, boss_row, BOSS_PHASES, current_phase=2)

        await advance_combat(store, CAMPAIGN, session.id)

        types = await event_types(store, session.id)
        assert "phase_shift" not in types
        skill = (await events_of(store, session.id))[0].payload
        assert skill["skill_id"] == "boss_cleave"
        assert (await store.get_boss_instance(session.id, boss_row.id)).current_phase == 2

    async def test_mark_applies_vulnerable(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        boss_row = await add_combatant(db_session, session, "Lantern Eater")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [boss_row, player])
        await add_boss(db_session, session, boss_row, [
            {"phase": 1, "hp_below_pct": 1.0, "skill_pool": ["boss_mark"]},
        ])

        await advance_combat(store, CAMPAIGN, session.id)

        assert await event_types(store, session.id) == [
            "skill_used", "damage", "status_applied", "turn_end", "turn_start",
        ]
        target = await store.get_combatant(session.id, player.id)
        vulnerable = [s for s in target.statuses if s["id"] == "vulnerable"]
        assert vulnerable == [{
            "id": "vulnerable", "expires_turn": 2, "stacks": 1, "data": {"source": "boss_mark"},
        }]


# ---------------------------------------------------------------------------
# Companions
# ---------------------------------------------------------------------------

class TestCompanionTurns:
    async def test_low_hp_companion_defends(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        pet = await add_companion(db_session, session, hp=30)
        npc = await add_combatant(db_session, session, "Gloam Hound")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [pet, npc, player])

        result = await advance_combat(store, CAMPAIGN, session.id)

        assert result.state == ResolutionState.budget_exhausted
        assert await event_types(store, session.id) == [
            "skill_used", "status_applied", "status_applied", "turn_end", "turn_start",
        ]
        refreshed = await store.get_combatant(session.id, pet.id)
        assert refreshed.armor == 4
        assert {s["id"] for s in refreshed.statuses} == {"barrier", "guard"}

    async def test_drained_companion_recovers(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        pet = await add_companion(db_session, session, power=2, power_max=10)
        npc = await add_combatant(db_session, session, "Gloam Hound")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [pet, npc, player])

        await advance_combat(store, CAMPAIGN, session.id)

        events = await events_of(store, session.id)
        assert events[0].payload["skill_name"] == "Recover MP"
        assert events[1].event_type == "power_gain"
        assert events[1].payload == {"target_combatant_id": pet.id, "amount": 6, "power_after": 8}


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

class TestInterruption:
    async def test_lost_pointer_race(self, db_session: AsyncSession):
        store = FailingPointerStore(db_session)
        session = await create_session(db_session)
        npc = await add_combatant(db_session, session, "Gloam Hound")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [npc, player])

        result = await advance_combat(store, CAMPAIGN, session.id)

        assert result.state == ResolutionState.interrupted
        assert "turn_end" not in await event_types(store, session.id)

    async def test_pointer_moved_between_steps(self, db_session: AsyncSession):
        store = RacingStore(db_session)
        session = await create_session(db_session)
        first = await add_combatant(db_session, session, "Gloam Hound")
        second = await add_combatant(db_session, session, "Ash Wight")
        pet = await add_companion(db_session, session)
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [first, second, pet, player])

        result = await advance_combat(store, CAMPAIGN, session.id, max_steps=3)

        assert result.state == ResolutionState.interrupted
        assert result.ticks == 1


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestErrors:
    @pytest.mark.parametrize("max_steps", [0, 11, -1])
    async def test_max_steps_out_of_range(self, db_session: AsyncSession, store, max_steps):
        session = await create_session(db_session)
        with pytest.raises(CombatValidationError):
            await advance_combat(store, CAMPAIGN, session.id, max_steps=max_steps)

    async def test_missing_session(self, store):
        with pytest.raises(CombatSessionNotFound):
            await advance_combat(store, CAMPAIGN, 999)

    async def test_session_of_other_campaign(self, db_session: AsyncSession, store):
        session = await create_session(db_session, campaign_id=8)
        with pytest.raises(CombatSessionNotFound):
            await advance_combat(store, CAMPAIGN, session.id)

    async def test_empty_turn_order(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        await add_combatant(db_session, session, "Gloam Hound")
        with pytest.raises(CombatIntegrityError):
            await advance_combat(store, CAMPAIGN, session.id)

    async def test_pointer_outside_turn_order(self, db_session: AsyncSession, store):
        session = await create_session(db_session, turn_index=5)
        npc = await add_combatant(db_session, session, "Gloam Hound")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [npc, player])
        with pytest.raises(CombatIntegrityError):
            await advance_combat(store, CAMPAIGN, session.id)

    async def test_ended_session_is_a_no_op(self, db_session: AsyncSession, store):
        session = await create_session(db_session)
        npc = await add_combatant(db_session, session, "Gloam Hound")
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [npc, player])
        assert await store.end_session(session.id)

        result = await advance_combat(store, CAMPAIGN, session.id, max_steps=3)

        assert result.state == ResolutionState.ended
        assert result.ticks == 0
        assert await event_types(store, session.id) == []


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------

class TestDeterminism:
    async def test_same_snapshot_same_events(self, db_session: AsyncSession, store):
        session = await create_session(db_session, seed=4242)
        boss_row = await add_combatant(db_session, session, "Lantern Eater", hp=60, hp_max=100)
        npc = await add_combatant(db_session, session, "Gloam Hound", mobility=40, utility=40)
        pet = await add_companion(db_session, session)
        player = await add_player(db_session, session)
        await set_turn_order(db_session, session, [boss_row, npc, pet, player])
        await add_boss(db_session, session, boss_row, BOSS_PHASES)
        session_id = session.id
        await db_session.commit()

        async def run():
            result = await advance_combat(store, CAMPAIGN, session_id, max_steps=5)
            events = [
                (e.event_type, e.actor_combatant_id, e.payload)
                for e in await store.list_events(session_id)
            ]
            hp = [(c.id, c.hp, c.armor) for c in await store.list_combatants(session_id)]
            return result.state, result.ticks, events, hp

        first = await run()
        await db_session.rollback()
        second = await run()

        assert first == second
        assert first[2]
