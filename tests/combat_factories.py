"""Row builders shared by the engine, settlement and API tests."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tactics.models.action_event import ActionEvent
from tactics.models.board import Board, BoardStatus, BoardType
from tactics.models.boss import BossInstance, BossTemplate
from tactics.models.campaign import CampaignMember
from tactics.models.character import Character
from tactics.models.combat_session import CombatSession, CombatStatus, TurnOrderSlot
from tactics.models.combatant import Combatant, EntityType
from tactics.models.reputation import Faction
from tactics.services.store import CombatStore

CAMPAIGN_ID = 7
PLAYER_ID = 501


async def create_session(
    db: AsyncSession,
    campaign_id: int = CAMPAIGN_ID,
    seed: int = 1234,
    turn_index: int = 0,
) -> CombatSession:
    session = CombatSession(
        campaign_id=campaign_id,
        seed=seed,
        status=CombatStatus.active,
        current_turn_index=turn_index,
        turn_number=0,
    )
    db.add(session)
    await db.flush()
    return session


async def add_character(
    db: AsyncSession,
    player_id: int = PLAYER_ID,
    campaign_id: int = CAMPAIGN_ID,
    level: int = 1,
    name: str = "Ysolde",
) -> Character:
    character = Character(
        campaign_id=campaign_id,
        player_id=player_id,
        name=name,
        level=level,
        xp=0,
        xp_to_next=0,
        unspent_points=0,
    )
    db.add(character)
    await db.flush()
    return character


async def add_combatant(
    db: AsyncSession,
    session: CombatSession,
    name: str,
    entity_type: EntityType = EntityType.npc,
    player_id: int | None = None,
    character_id: int | None = None,
    hp: int = 100,
    hp_max: int = 100,
    armor: int = 0,
    resist: int = 0,
    lvl: int = 1,
    offense: int = 10,
    defense: int = 10,
    support: int = 10,
    mobility: int = 0,
    utility: int = 0,
    weapon_power: int = 0,
    power: int = 0,
    power_max: int = 0,
    statuses: list[dict[str, Any]] | None = None,
) -> Combatant:
    combatant = Combatant(
        combat_session_id=session.id,
        entity_type=entity_type,
        player_id=player_id,
        character_id=character_id,
        name=name,
        lvl=lvl,
        offense=offense,
        defense=defense,
        control=0,
        support=support,
        mobility=mobility,
        utility=utility,
        weapon_power=weapon_power,
        armor=armor,
        resist=resist,
        hp=hp,
        hp_max=hp_max,
        power=power,
        power_max=power_max,
        x=0,
        y=0,
        is_alive=hp > 0,
        statuses=list(statuses or []),
    )
    db.add(combatant)
    await db.flush()
    return combatant


async def add_player(
    db: AsyncSession, session: CombatSession, character: Character | None = None, **kwargs
) -> Combatant:
    return await add_combatant(
        db,
        session,
        kwargs.pop("name", "Ysolde"),
        entity_type=EntityType.player,
        player_id=kwargs.pop("player_id", PLAYER_ID),
        character_id=character.id if character else None,
        **kwargs,
    )


async def add_companion(db: AsyncSession, session: CombatSession, **kwargs) -> Combatant:
    return await add_combatant(
        db,
        session,
        kwargs.pop("name", "Bramble"),
        entity_type=EntityType.summon,
        player_id=kwargs.pop("player_id", PLAYER_ID),
        **kwargs,
    )


async def set_turn_order(
    db: AsyncSession, session: CombatSession, combatants: list[Combatant]
) -> list[TurnOrderSlot]:
    slots = [
        TurnOrderSlot(combat_session_id=session.id, turn_index=i, combatant_id=c.id)
        for i, c in enumerate(combatants)
    ]
    db.add_all(slots)
    await db.flush()
    return slots


async def add_boss(
    db: AsyncSession,
    session: CombatSession,
    combatant: Combatant,
    phases: list[dict[str, Any]],
    current_phase: int = 1,
) -> BossInstance:
    template = BossTemplate(name=f"{combatant.name} template", phases=phases)
    db.add(template)
    await db.flush()
    boss = BossInstance(
        combat_session_id=session.id,
        combatant_id=combatant.id,
        template_id=template.id,
        current_phase=current_phase,
    )
    db.add(boss)
    await db.flush()
    return boss


async def add_faction(
    db: AsyncSession, name: str = "Lantern Wardens", campaign_id: int = CAMPAIGN_ID
) -> Faction:
    faction = Faction(campaign_id=campaign_id, name=name, tags=["order"])
    db.add(faction)
    await db.flush()
    return faction


async def add_board(
    db: AsyncSession,
    board_type: BoardType,
    status: BoardStatus = BoardStatus.paused,
    combat_session_id: int | None = None,
    campaign_id: int = CAMPAIGN_ID,
) -> Board:
    board = Board(
        campaign_id=campaign_id,
        board_type=board_type,
        status=status,
        state={},
        combat_session_id=combat_session_id,
    )
    db.add(board)
    await db.flush()
    return board


async def add_member(db: AsyncSession, user_id: int = PLAYER_ID, campaign_id: int = CAMPAIGN_ID):
    member = CampaignMember(campaign_id=campaign_id, user_id=user_id)
    db.add(member)
    await db.flush()
    return member


async def events_of(store: CombatStore, combat_session_id: int) -> list[ActionEvent]:
    return await store.list_events(combat_session_id)


async def event_types(store: CombatStore, combat_session_id: int) -> list[str]:
    return [e.event_type for e in await store.list_events(combat_session_id)]
