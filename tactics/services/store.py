"""CombatStore: the only path from combat resolution to persistence.

The engine and settlement receive a CombatStore and never open queries of
their own.  SqlAlchemyCombatStore is the production implementation over an
AsyncSession; every write flushes immediately so a turn's mutations are in the
transaction before the turn pointer moves.  Committing is the caller's job.
"""

from __future__ import annotations

import abc
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tactics.models.action_event import ActionEvent
from tactics.models.board import Board, BoardStatus, BoardTransition, BoardType
from tactics.models.boss import BossInstance
from tactics.models.character import Character, ProgressionEvent
from tactics.models.combat_session import CombatSession, CombatStatus, TurnOrderSlot
from tactics.models.combatant import Combatant
from tactics.models.item import InventoryEntry, Item, LootDrop
from tactics.models.reputation import (
    REP_MAX,
    REP_MIN,
    Faction,
    FactionReputation,
    NarrativeMemoryEvent,
    ReputationEvent,
)
from tactics.services.rng import clamp_int


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CombatStore(abc.ABC):
    """Narrow read/write capability over combat state."""

    # --- sessions & turn order -------------------------------------------

    @abc.abstractmethod
    async def get_session(self, campaign_id: int, combat_session_id: int) -> CombatSession | None:
        """Fresh read of the session row (never served from a cache)."""

    @abc.abstractmethod
    async def advance_turn_pointer(
        self, combat_session_id: int, expected_index: int, next_index: int
    ) -> bool:
        """Move the pointer only if the session is active and still at expected_index.

        Also bumps turn_number.  Returns False when another writer got there first.
        """

    @abc.abstractmethod
    async def end_session(self, combat_session_id: int) -> bool:
        """Transition active -> ended.  Returns False if the session was not active."""

    @abc.abstractmethod
    async def list_turn_order(self, combat_session_id: int) -> list[TurnOrderSlot]:
        """Slots ordered by turn_index."""

    # --- combatants & events ---------------------------------------------

    @abc.abstractmethod
    async def get_combatant(self, combat_session_id: int, combatant_id: int) -> Combatant | None:
        ...

    @abc.abstractmethod
    async def list_combatants(self, combat_session_id: int) -> list[Combatant]:
        """Full roster, living and dead, ordered by id."""

    @abc.abstractmethod
    async def save_combatant(self, combatant: Combatant) -> None:
        ...

    @abc.abstractmethod
    async def append_event(
        self,
        combat_session_id: int,
        turn_index: int,
        actor_combatant_id: int | None,
        event_type: str,
        payload: dict[str, Any],
    ) -> ActionEvent:
        ...

    @abc.abstractmethod
    async def list_events(
        self, combat_session_id: int, after_id: int | None = None
    ) -> list[ActionEvent]:
        ...

    # --- bosses ----------------------------------------------------------

    @abc.abstractmethod
    async def get_boss_instance(
        self, combat_session_id: int, combatant_id: int
    ) -> BossInstance | None:
        """Boss link for the combatant, with its template (and phase list) loaded."""

    @abc.abstractmethod
    async def update_boss_phase(self, boss: BossInstance, phase: int) -> None:
        ...

    # --- settlement collaborators ----------------------------------------

    @abc.abstractmethod
    async def list_factions(self, campaign_id: int) -> list[Faction]:
        """Factions of the campaign, oldest first."""

    @abc.abstractmethod
    async def apply_reputation_delta(
        self,
        campaign_id: int,
        player_id: int,
        faction_id: int,
        delta: int,
        severity: int,
        evidence: dict[str, Any],
    ) -> int:
        """Append a ReputationEvent, then upsert the clamped aggregate.  Returns the new rep."""

    @abc.abstractmethod
    async def append_memory_event(
        self,
        campaign_id: int,
        player_id: int,
        category: str,
        severity: int,
        payload: dict[str, Any],
    ) -> None:
        ...

    @abc.abstractmethod
    async def get_character(self, character_id: int) -> Character | None:
        ...

    @abc.abstractmethod
    async def save_character(self, character: Character) -> None:
        ...

    @abc.abstractmethod
    async def record_progression_event(
        self, character_id: int, event_type: str, payload: dict[str, Any]
    ) -> None:
        ...

    @abc.abstractmethod
    async def has_xp_award(self, character_id: int, combat_session_id: int) -> bool:
        ...

    @abc.abstractmethod
    async def has_loot_award(self, character_id: int, combat_session_id: int) -> bool:
        ...

    @abc.abstractmethod
    async def grant_loot(
        self,
        item: Item,
        *,
        combat_session_id: int,
        source: str,
        budget_points: int,
    ) -> Item:
        """Persist item, put it in its owner's backpack and record the LootDrop."""

    @abc.abstractmethod
    async def latest_non_combat_board(self, campaign_id: int) -> Board | None:
        ...

    @abc.abstractmethod
    async def set_board_status(self, board: Board, status: BoardStatus) -> None:
        ...

    @abc.abstractmethod
    async def archive_combat_boards(self, combat_session_id: int) -> None:
        ...

    @abc.abstractmethod
    async def record_board_transition(
        self,
        campaign_id: int,
        from_board_type: BoardType | None,
        to_board_type: BoardType,
        reason: str,
        payload: dict[str, Any],
        animation: str = "page_turn",
    ) -> BoardTransition:
        ...

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Scope for a best-effort write; a failure inside must not poison later writes."""
        yield


class SqlAlchemyCombatStore(CombatStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_session(self, campaign_id: int, combat_session_id: int) -> CombatSession | None:
        result = await self.db.execute(
            select(CombatSession)
            .where(
                CombatSession.id == combat_session_id,
                CombatSession.campaign_id == campaign_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def advance_turn_pointer(
        self, combat_session_id: int, expected_index: int, next_index: int
    ) -> bool:
        result = await self.db.execute(
            update(CombatSession)
            .where(
                CombatSession.id == combat_session_id,
                CombatSession.status == CombatStatus.active,
                CombatSession.current_turn_index == expected_index,
            )
            .values(
                current_turn_index=next_index,
                turn_number=CombatSession.turn_number + 1,
                updated_at=_now(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return result.rowcount == 1

    async def end_session(self, combat_session_id: int) -> bool:
        result = await self.db.execute(
            update(CombatSession)
            .where(
                CombatSession.id == combat_session_id,
                CombatSession.status == CombatStatus.active,
            )
            .values(status=CombatStatus.ended, updated_at=_now())
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return result.rowcount == 1

    async def list_turn_order(self, combat_session_id: int) -> list[TurnOrderSlot]:
        result = await self.db.execute(
            select(TurnOrderSlot)
            .where(TurnOrderSlot.combat_session_id == combat_session_id)
            .order_by(TurnOrderSlot.turn_index)
        )
        return list(result.scalars().all())

    async def get_combatant(self, combat_session_id: int, combatant_id: int) -> Combatant | None:
        result = await self.db.execute(
            select(Combatant)
            .where(
                Combatant.id == combatant_id,
                Combatant.combat_session_id == combat_session_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_combatants(self, combat_session_id: int) -> list[Combatant]:
        query = select(Combatant).where(Combatant.combat_session_id == combat_session_id)
        query = query.order_by(Combatant.id).execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def save_combatant(self, combatant: Combatant) -> None:
        combatant.updated_at = _now()
        self.db.add(combatant)
        await self.db.flush()

    async def append_event(
        self,
        combat_session_id: int,
        turn_index: int,
        actor_combatant_id: int | None,
        event_type: str,
        payload: dict[str, Any],
    ) -> ActionEvent:
        event = ActionEvent(
            combat_session_id=combat_session_id,
            turn_index=max(0, turn_index),
            actor_combatant_id=actor_combatant_id,
            event_type=event_type,
            payload=payload,
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def list_events(
        self, combat_session_id: int, after_id: int | None = None
    ) -> list[ActionEvent]:
        query = select(ActionEvent).where(ActionEvent.combat_session_id == combat_session_id)
        if after_id is not None:
            query = query.where(ActionEvent.id > after_id)
        result = await self.db.execute(query.order_by(ActionEvent.id))
        return list(result.scalars().all())

    async def get_boss_instance(
        self, combat_session_id: int, combatant_id: int
    ) -> BossInstance | None:
        result = await self.db.execute(
            select(BossInstance)
            .where(
                BossInstance.combat_session_id == combat_session_id,
                BossInstance.combatant_id == combatant_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_boss_phase(self, boss: BossInstance, phase: int) -> None:
        boss.current_phase = phase
        await self.db.flush()

    async def list_factions(self, campaign_id: int) -> list[Faction]:
        result = await self.db.execute(
            select(Faction)
            .where(Faction.campaign_id == campaign_id)
            .order_by(Faction.created_at, Faction.id)
        )
        return list(result.scalars().all())

    async def apply_reputation_delta(
        self,
        campaign_id: int,
        player_id: int,
        faction_id: int,
        delta: int,
        severity: int,
        evidence: dict[str, Any],
    ) -> int:
        self.db.add(ReputationEvent(
            campaign_id=campaign_id,
            faction_id=faction_id,
            player_id=player_id,
            severity=clamp_int(severity, 1, 5),
            delta=clamp_int(delta, REP_MIN, REP_MAX),
            evidence=evidence,
        ))
        await self.db.flush()

        result = await self.db.execute(
            select(FactionReputation).where(
                FactionReputation.campaign_id == campaign_id,
                FactionReputation.faction_id == faction_id,
                FactionReputation.player_id == player_id,
            )
        )
        standing = result.scalar_one_or_none()
        if standing is None:
            standing = FactionReputation(
                campaign_id=campaign_id, faction_id=faction_id, player_id=player_id, rep=0
            )
            self.db.add(standing)
        standing.rep = clamp_int(standing.rep + delta, REP_MIN, REP_MAX)
        standing.updated_at = _now()
        await self.db.flush()
        return standing.rep

    async def append_memory_event(
        self,
        campaign_id: int,
        player_id: int,
        category: str,
        severity: int,
        payload: dict[str, Any],
    ) -> None:
        self.db.add(NarrativeMemoryEvent(
            campaign_id=campaign_id,
            player_id=player_id,
            category=category,
            severity=clamp_int(severity, 1, 5),
            payload=payload,
        ))
        await self.db.flush()

    async def get_character(self, character_id: int) -> Character | None:
        result = await self.db.execute(select(Character).where(Character.id == character_id))
        return result.scalar_one_or_none()

    async def save_character(self, character: Character) -> None:
        self.db.add(character)
        await self.db.flush()

    async def record_progression_event(
        self, character_id: int, event_type: str, payload: dict[str, Any]
    ) -> None:
        self.db.add(ProgressionEvent(
            character_id=character_id, event_type=event_type, payload=payload
        ))
        await self.db.flush()

    async def has_xp_award(self, character_id: int, combat_session_id: int) -> bool:
        result = await self.db.execute(
            select(ProgressionEvent).where(
                ProgressionEvent.character_id == character_id,
                ProgressionEvent.event_type == "xp_applied",
            )
        )
        for event in result.scalars().all():
            metadata = (event.payload or {}).get("metadata")
            if isinstance(metadata, dict) and metadata.get("combat_session_id") == combat_session_id:
                return True
        return False

    async def has_loot_award(self, character_id: int, combat_session_id: int) -> bool:
        result = await self.db.execute(
            select(LootDrop).where(LootDrop.combat_session_id == combat_session_id)
        )
        return any(
            (drop.payload or {}).get("character_id") == character_id
            for drop in result.scalars().all()
        )

    async def grant_loot(
        self,
        item: Item,
        *,
        combat_session_id: int,
        source: str,
        budget_points: int,
    ) -> Item:
        self.db.add(item)
        await self.db.flush()  # get item.id before linking inventory and drop rows

        self.db.add(InventoryEntry(
            character_id=item.owner_character_id, item_id=item.id, container="backpack", quantity=1
        ))
        self.db.add(LootDrop(
            campaign_id=item.campaign_id,
            combat_session_id=combat_session_id,
            source=source,
            rarity=item.rarity,
            budget_points=budget_points,
            item_ids=[item.id],
            payload={"character_id": item.owner_character_id, "generated_by": source},
        ))
        await self.db.flush()
        return item

    async def latest_non_combat_board(self, campaign_id: int) -> Board | None:
        result = await self.db.execute(
            select(Board)
            .where(Board.campaign_id == campaign_id, Board.board_type != BoardType.combat)
            .order_by(Board.updated_at.desc(), Board.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def set_board_status(self, board: Board, status: BoardStatus) -> None:
        board.status = status
        board.updated_at = _now()
        await self.db.flush()

    async def archive_combat_boards(self, combat_session_id: int) -> None:
        await self.db.execute(
            update(Board)
            .where(Board.combat_session_id == combat_session_id)
            .values(status=BoardStatus.archived, updated_at=_now())
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()

    async def record_board_transition(
        self,
        campaign_id: int,
        from_board_type: BoardType | None,
        to_board_type: BoardType,
        reason: str,
        payload: dict[str, Any],
        animation: str = "page_turn",
    ) -> BoardTransition:
        transition = BoardTransition(
            campaign_id=campaign_id,
            from_board_type=from_board_type,
            to_board_type=to_board_type,
            reason=reason,
            animation=animation,
            payload=payload,
        )
        self.db.add(transition)
        await self.db.flush()
        return transition

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self.db.begin_nested():
            yield
