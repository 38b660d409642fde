import enum
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, JSON, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tactics.models.base import Base


class EntityType(str, enum.Enum):
    player = "player"
    npc = "npc"
    summon = "summon"


class Combatant(Base):
    __tablename__ = "combatants"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    combat_session_id: Mapped[int] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=False, index=True
    )
    entity_type: Mapped[EntityType] = mapped_column(Enum(EntityType), nullable=False)
    # Set for player characters and their companions; None for hostiles
    player_id: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)
    character_id: Mapped[int | None] = mapped_column(
        ForeignKey("characters.id"), nullable=True, default=None
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    lvl: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    offense: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    defense: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    control: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    support: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mobility: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    utility: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    weapon_power: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    armor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resist: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hp: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    hp_max: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    power: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    power_max: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    x: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_alive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # List of {id, expires_turn, stacks, data}; see services.status_effects
    statuses: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def is_allied(self) -> bool:
        """Player characters and their companions form one team; everything else is hostile."""
        return self.player_id is not None

    @property
    def hp_fraction(self) -> float:
        if self.hp_max <= 0:
            return 1.0
        return max(0.0, min(1.0, self.hp / self.hp_max))

    @property
    def power_fraction(self) -> float:
        if self.power_max <= 0:
            return 1.0
        return max(0.0, min(1.0, self.power / self.power_max))
