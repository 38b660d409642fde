"""Boards: the game-state containers a combat session is embedded in."""

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, JSON, String, func
from sqlalchemy.orm import Mapped, mapped_column

from tactics.models.base import Base


class BoardType(str, enum.Enum):
    town = "town"
    travel = "travel"
    dungeon = "dungeon"
    combat = "combat"


class BoardStatus(str, enum.Enum):
    active = "active"
    archived = "archived"
    paused = "paused"


class Board(Base):
    __tablename__ = "boards"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    board_type: Mapped[BoardType] = mapped_column(Enum(BoardType), nullable=False)
    status: Mapped[BoardStatus] = mapped_column(
        Enum(BoardStatus), nullable=False, default=BoardStatus.active
    )
    state: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    combat_session_id: Mapped[int | None] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=True, default=None
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class BoardTransition(Base):
    __tablename__ = "board_transitions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    from_board_type: Mapped[BoardType | None] = mapped_column(Enum(BoardType), nullable=True)
    to_board_type: Mapped[BoardType] = mapped_column(Enum(BoardType), nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=False)
    animation: Mapped[str] = mapped_column(String(32), nullable=False, default="page_turn")
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
