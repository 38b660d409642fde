"""In-process cache of recent responses keyed by caller-supplied idempotency keys."""

from __future__ import annotations

import time
from typing import Any

from tactics.config import settings


class IdempotencyCache:
    def __init__(self, ttl_seconds: float | None = None):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[float, Any]] = {}

    @staticmethod
    def make_key(user_id: int, idempotency_key: str | None) -> str | None:
        """Scope a client key to its user; blank keys mean no caching."""
        if idempotency_key is None or not idempotency_key.strip():
            return None
        return f"{user_id}:{idempotency_key.strip()}"

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() > expires_at:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: Any) -> None:
        ttl = self.ttl_seconds if self.ttl_seconds is not None else settings.idempotency_ttl_seconds
        self._prune()
        self._entries[key] = (time.monotonic() + ttl, value)

    def clear(self) -> None:
        self._entries.clear()

    def _prune(self) -> None:
        now = time.monotonic()
        for key in [k for k, (expires_at, _) in self._entries.items() if now > expires_at]:
            del self._entries[key]


advance_responses = IdempotencyCache()
