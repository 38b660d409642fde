from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from tactics.models.combatant import EntityType


class AdvanceRequest(BaseModel):
    # 1..settings.max_steps_cap, checked by advance_combat
    max_steps: int = Field(default=1)


class AdvanceResponse(BaseModel):
    ticks: int
    ended: bool
    requires_player_action: bool
    current_turn_index: int
    next_actor_combatant_id: Optional[int]
    state: str


class ActionEventResponse(BaseModel):
    id: int
    combat_session_id: int
    turn_index: int
    actor_combatant_id: Optional[int]
    event_type: str
    payload: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}


class CombatantResponse(BaseModel):
    id: int
    combat_session_id: int
    entity_type: EntityType
    player_id: Optional[int]
    character_id: Optional[int]
    name: str
    lvl: int
    offense: int
    defense: int
    control: int
    support: int
    mobility: int
    utility: int
    weapon_power: int
    armor: int
    resist: int
    hp: int
    hp_max: int
    power: int
    power_max: int
    x: int
    y: int
    is_alive: bool
    statuses: list[dict[str, Any]]

    model_config = {"from_attributes": True}
