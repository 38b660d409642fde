"""Deterministic RNG keyed by (seed, label).

Every random decision in a combat is a pure function of the session seed and a
textual label built from stable components (session id, turn index, actor id,
target id, purpose).  Re-running a turn against the same snapshot therefore
reproduces the same rolls, and two different labels give unrelated streams.

  unit(label)  = (int(md5(f"{seed}:{label}")[:16], 16) % 10**9) / 10**9
  next_int     = lo + floor(unit * (hi - lo + 1))
"""

from __future__ import annotations

import hashlib
import math
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

_UNIT_MODULUS = 1_000_000_000


class DeterministicRng:
    """Stateless roll source bound to one session seed."""

    def __init__(self, seed: int):
        self.seed = int(seed)

    def unit(self, label: str) -> float:
        """Return a float in [0, 1) derived from (seed, label)."""
        digest = hashlib.md5(f"{self.seed}:{label or ''}".encode("utf-8")).hexdigest()
        n = int(digest[:16], 16)
        return (n % _UNIT_MODULUS) / _UNIT_MODULUS

    def next_int(self, label: str, lo: int, hi: int) -> int:
        """Uniform integer in [lo, hi] (bounds may be given in either order)."""
        a, b = min(lo, hi), max(lo, hi)
        span = (b - a) + 1
        if span <= 1:
            return a
        return a + int(self.unit(label) * span)

    def pick(self, label: str, candidates: Sequence[T]) -> T:
        if not candidates:
            raise ValueError(f"pick: no candidates for label {label!r}")
        return candidates[self.next_int(label, 0, len(candidates) - 1)]


def rng_int(seed: int, label: str, lo: int, hi: int) -> int:
    return DeterministicRng(seed).next_int(label, lo, hi)


def rng_pick(seed: int, label: str, candidates: Sequence[T]) -> T:
    return DeterministicRng(seed).pick(label, candidates)


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def clamp_int(value: float, lo: int, hi: int) -> int:
    return int(max(lo, min(hi, int(value))))


def round_half_up(value: float) -> int:
    """Nearest integer, halves away from zero for the non-negative values combat produces."""
    return math.floor(value + 0.5)


def damage_label(
    combat_session_id: int,
    turn_index: int,
    turn_number: int,
    actor_id: int,
    target_id: int,
) -> str:
    return (
        f"tick:{combat_session_id}:turn:{turn_index}:n:{turn_number}"
        f":actor:{actor_id}:target:{target_id}"
    )


def turn_label(turn_index: int, turn_number: int, purpose: str) -> str:
    return f"tick:{turn_index}:n:{turn_number}:{purpose}"
