from tactics.models.base import Base  # noqa: F401
from tactics.models.action_event import ActionEvent, EventType  # noqa: F401
from tactics.models.board import Board, BoardStatus, BoardTransition, BoardType  # noqa: F401
from tactics.models.boss import BossInstance, BossTemplate  # noqa: F401
from tactics.models.campaign import CampaignMember  # noqa: F401
from tactics.models.character import Character, ProgressionEvent  # noqa: F401
from tactics.models.combat_session import CombatSession, CombatStatus, TurnOrderSlot  # noqa: F401
from tactics.models.combatant import Combatant, EntityType  # noqa: F401
from tactics.models.item import InventoryEntry, Item, LootDrop, Rarity  # noqa: F401
from tactics.models.reputation import (  # noqa: F401
    Faction,
    FactionReputation,
    NarrativeMemoryEvent,
    ReputationEvent,
)
