from __future__ import annotations

from collections.abc import Collection, Sequence

from tactics.models.combat_session import TurnOrderSlot
from tactics.services.errors import CombatIntegrityError


def slot_for_index(order: Sequence[TurnOrderSlot], turn_index: int) -> TurnOrderSlot:
    """Return the slot at turn_index, raising on an empty or inconsistent order."""
    if not order:
        raise CombatIntegrityError("Turn order missing")
    for slot in order:
        if slot.turn_index == turn_index:
            return slot
    raise CombatIntegrityError(f"Current turn index {turn_index} is not in the turn order")


def next_alive_turn_index(
    order: Sequence[TurnOrderSlot],
    alive_ids: Collection[int],
    current_index: int,
) -> int:
    """Scan forward from current_index (wrapping) for the next living combatant.

    order must be sorted by turn_index.  Returns current_index unchanged when
    no other slot in the cycle holds a living combatant.
    """
    total = len(order)
    if total == 0:
        return current_index
    position = next(
        (i for i, slot in enumerate(order) if slot.turn_index == current_index), None
    )
    if position is None:
        raise CombatIntegrityError(f"Current turn index {current_index} is not in the turn order")
    for offset in range(1, total + 1):
        slot = order[(position + offset) % total]
        if slot.combatant_id in alive_ids:
            return slot.turn_index
    return current_index


def combatant_at(order: Sequence[TurnOrderSlot], turn_index: int) -> int | None:
    for slot in order:
        if slot.turn_index == turn_index:
            return slot.combatant_id
    return None
