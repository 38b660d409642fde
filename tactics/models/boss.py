from typing import Any

from sqlalchemy import ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tactics.models.base import Base


class BossTemplate(Base):
    __tablename__ = "boss_templates"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # List of {"phase": int, "hp_below_pct": float, "skill_pool": [str, ...]}
    phases: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)


class BossInstance(Base):
    """Links an npc combatant to its phase template.  current_phase never decreases."""

    __tablename__ = "boss_instances"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    combat_session_id: Mapped[int] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=False, index=True
    )
    combatant_id: Mapped[int] = mapped_column(ForeignKey("combatants.id"), nullable=False)
    template_id: Mapped[int] = mapped_column(ForeignKey("boss_templates.id"), nullable=False)
    current_phase: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    enrage_turn: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)

    template: Mapped[BossTemplate] = relationship(lazy="selectin")
