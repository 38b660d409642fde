import enum
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, JSON, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tactics.models.base import Base


class Rarity(str, enum.Enum):
    magical = "magical"
    unique = "unique"
    legendary = "legendary"


class Item(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    owner_character_id: Mapped[int | None] = mapped_column(
        ForeignKey("characters.id"), nullable=True
    )
    rarity: Mapped[Rarity] = mapped_column(Enum(Rarity), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_type: Mapped[str] = mapped_column(String(32), nullable=False, default="gear")
    slot: Mapped[str] = mapped_column(String(32), nullable=False)
    stat_mods: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    drawback: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    narrative_hook: Mapped[str | None] = mapped_column(String(512), nullable=True)
    required_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    item_power: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    bind_policy: Mapped[str] = mapped_column(String(32), nullable=False, default="unbound")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class InventoryEntry(Base):
    __tablename__ = "inventory"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False)
    container: Mapped[str] = mapped_column(String(32), nullable=False, default="backpack")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class LootDrop(Base):
    """One loot grant from a combat session; payload.character_id names the recipient."""

    __tablename__ = "loot_drops"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, nullable=False)
    combat_session_id: Mapped[int] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    rarity: Mapped[Rarity] = mapped_column(Enum(Rarity), nullable=False)
    budget_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    item_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
