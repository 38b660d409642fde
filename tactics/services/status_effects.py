"""Start/end-of-turn status ticks for a single combatant.

Combatant.statuses is an opaque JSON list.  Each entry is read as a tagged
variant {id, expires_turn, stacks, data}; nothing beyond those fields is
assumed.  Known ids map to a StatusKind.  Unknown ids are carried along and
expire on schedule but never tick.

Tick rules:
  - start phase: damage/heal over time fire (data.damage_per_turn / data.heal_per_turn, times stacks)
  - both phases: entries with expires_turn <= turn_number are removed
  - hp is clamped to [0, hp_max] and rounded; is_alive follows hp > 0
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from tactics.models.action_event import EventType
from tactics.models.combatant import Combatant
from tactics.services.rng import round_half_up

logger = logging.getLogger(__name__)


class StatusKind(str, enum.Enum):
    damage_over_time = "damage_over_time"
    heal_over_time = "heal_over_time"
    marker = "marker"
    unknown = "unknown"


class TickPhase(str, enum.Enum):
    start = "start"
    end = "end"


STATUS_KINDS: dict[str, StatusKind] = {
    "bleed": StatusKind.damage_over_time,
    "burn": StatusKind.damage_over_time,
    "poison": StatusKind.damage_over_time,
    "regen": StatusKind.heal_over_time,
    "renew": StatusKind.heal_over_time,
    "vulnerable": StatusKind.marker,
    "marked": StatusKind.marker,
    "barrier": StatusKind.marker,
    "guard": StatusKind.marker,
    "exposed": StatusKind.marker,
    "stunned": StatusKind.marker,
    "rooted": StatusKind.marker,
}


@dataclass
class StatusEffect:
    id: str
    expires_turn: int | None = None
    stacks: int = 1
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> StatusKind:
        return STATUS_KINDS.get(self.id, StatusKind.unknown)

    def expired_at(self, turn_number: int) -> bool:
        return self.expires_turn is not None and self.expires_turn <= turn_number

    def per_turn(self, key: str) -> float:
        try:
            amount = float(self.data.get(key, 0) or 0)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, amount) * self.stacks

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "expires_turn": self.expires_turn,
            "stacks": self.stacks,
            "data": dict(self.data),
        }

    @classmethod
    def from_json(cls, raw: Any) -> StatusEffect | None:
        if not isinstance(raw, dict):
            return None
        status_id = str(raw.get("id") or "").strip().lower()
        if not status_id:
            return None
        expires = raw.get("expires_turn")
        try:
            expires_turn = int(expires) if expires not in (None, "") else None
        except (TypeError, ValueError):
            expires_turn = None
        try:
            stacks = max(1, int(raw.get("stacks") or 1))
        except (TypeError, ValueError):
            stacks = 1
        data = raw.get("data")
        return cls(
            id=status_id,
            expires_turn=expires_turn,
            stacks=stacks,
            data=dict(data) if isinstance(data, dict) else {},
        )


def parse_statuses(raw: Any) -> list[StatusEffect]:
    if not isinstance(raw, list):
        return []
    parsed = [StatusEffect.from_json(entry) for entry in raw]
    return [s for s in parsed if s is not None]


def apply_status(combatant: Combatant, status: StatusEffect) -> None:
    """Add status to the combatant, replacing any existing entry with the same id."""
    kept = [s for s in parse_statuses(combatant.statuses) if s.id != status.id]
    kept.append(status)
    combatant.statuses = [s.to_json() for s in kept]


@dataclass
class StatusTickResult:
    combatant_id: int
    phase: TickPhase
    hp_after: int
    is_alive: bool
    dot_damage: int = 0
    hot_heal: int = 0
    expired: list[dict[str, Any]] = field(default_factory=list)
    died: bool = False
    # (event_type, payload) pairs, in the order they should be appended
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)


def resolve_status_tick(
    combatant: Combatant, turn_number: int, phase: TickPhase | str
) -> StatusTickResult:
    """Apply one tick to combatant in place and describe what happened."""
    phase = TickPhase(phase)
    dot = 0.0
    hot = 0.0
    kept: list[StatusEffect] = []
    expired: list[StatusEffect] = []

    for status in parse_statuses(combatant.statuses):
        kind = status.kind
        if phase == TickPhase.start:
            if kind == StatusKind.damage_over_time:
                dot += status.per_turn("damage_per_turn")
            elif kind == StatusKind.heal_over_time:
                hot += status.per_turn("heal_per_turn")
            elif kind == StatusKind.unknown:
                logger.debug("Ignoring unknown status %r on combatant %s", status.id, combatant.id)
        if status.expired_at(turn_number):
            expired.append(status)
        else:
            kept.append(status)

    was_alive = bool(combatant.is_alive) and combatant.hp > 0
    next_hp = max(0.0, min(float(combatant.hp_max), combatant.hp - dot + hot))
    hp_after = max(0, round_half_up(next_hp))
    alive_after = hp_after > 0

    combatant.hp = hp_after
    combatant.is_alive = alive_after
    combatant.statuses = [s.to_json() for s in kept]

    result = StatusTickResult(
        combatant_id=combatant.id,
        phase=phase,
        hp_after=hp_after,
        is_alive=alive_after,
        dot_damage=int(dot),
        hot_heal=int(hot),
        expired=[s.to_json() for s in expired],
        died=was_alive and not alive_after,
    )

    if dot > 0 or hot > 0:
        result.events.append((EventType.status_tick.value, {
            "target_combatant_id": combatant.id,
            "phase": phase.value,
            "dot_damage": result.dot_damage,
            "hot_heal": result.hot_heal,
            "hp_after": hp_after,
            "is_alive": alive_after,
        }))
    if expired:
        result.events.append((EventType.status_expired.value, {
            "target_combatant_id": combatant.id,
            "phase": phase.value,
            "expired": result.expired,
        }))
    if result.died:
        result.events.append((EventType.death.value, {
            "target_combatant_id": combatant.id,
            "reason": "status_tick",
            "hp_after": hp_after,
        }))
    return result
