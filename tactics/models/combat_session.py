import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from tactics.models.base import Base


class CombatStatus(str, enum.Enum):
    active = "active"
    ended = "ended"


class CombatSession(Base):
    """One encounter.  ``ended`` is terminal.

    current_turn_index points into the turn_order cycle; turn_number counts
    every resolved turn since the encounter started and never wraps.
    """

    __tablename__ = "combat_sessions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    seed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[CombatStatus] = mapped_column(
        Enum(CombatStatus), nullable=False, default=CombatStatus.active
    )
    current_turn_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    turn_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class TurnOrderSlot(Base):
    """Fixed cyclic turn order.  Dead combatants keep their slot and are skipped."""

    __tablename__ = "turn_order"
    __table_args__ = (
        UniqueConstraint("combat_session_id", "turn_index"),
        UniqueConstraint("combat_session_id", "combatant_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    combat_session_id: Mapped[int] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=False, index=True
    )
    turn_index: Mapped[int] = mapped_column(Integer, nullable=False)
    combatant_id: Mapped[int] = mapped_column(ForeignKey("combatants.id"), nullable=False)
