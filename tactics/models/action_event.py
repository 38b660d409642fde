"""ActionEvent model — the append-only combat history consumed by narration and replay."""

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tactics.models.base import Base


class EventType(str, enum.Enum):
    turn_start = "turn_start"
    turn_end = "turn_end"
    skill_used = "skill_used"
    damage = "damage"
    status_applied = "status_applied"
    status_tick = "status_tick"
    status_expired = "status_expired"
    power_gain = "power_gain"
    death = "death"
    phase_shift = "phase_shift"
    xp_gain = "xp_gain"
    level_up = "level_up"
    loot_drop = "loot_drop"
    combat_end = "combat_end"


class ActionEvent(Base):
    """One immutable record.  Rows are only ever inserted; ordering is by id."""

    __tablename__ = "action_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    combat_session_id: Mapped[int] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=False, index=True
    )
    turn_index: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_combatant_id: Mapped[int | None] = mapped_column(
        ForeignKey("combatants.id"), nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
