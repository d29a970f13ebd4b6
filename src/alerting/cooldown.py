"""Cooldown table — bounds how often a dedup key can raise an alert."""

from __future__ import annotations

import asyncio
import time


class CooldownTable:
    """Async-safe map from dedup keys to expiry timestamps.

    Checks and writes go through one ``asyncio.Lock`` so a check from one
    scheduler tick never interleaves with a write from another.
    """

    def __init__(self, default_minutes: float = 15.0) -> None:
        self._default_secs = default_minutes * 60
        self._expiry: dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def is_active(self, key: str, now: float | None = None) -> bool:
        """Return True while *key* is inside its cooldown window."""
        now = now if now is not None else time.time()
        async with self._lock:
            expiry = self._expiry.get(key)
            if expiry is None:
                return False
            if now >= expiry:
                del self._expiry[key]
                return False
            return True

    async def set(
        self,
        key: str,
        minutes: float | None = None,
        now: float | None = None,
    ) -> float:
        """Start (or restart) the cooldown for *key*; returns the expiry."""
        now = now if now is not None else time.time()
        window = self._default_secs if minutes is None else minutes * 60
        expiry = now + window
        async with self._lock:
            self._expiry[key] = expiry
        return expiry

    def expires_at(self, key: str) -> float | None:
        return self._expiry.get(key)

    async def clear(self, key: str | None = None) -> None:
        """Drop one key, or every key when *key* is None."""
        async with self._lock:
            if key is None:
                self._expiry.clear()
            else:
                self._expiry.pop(key, None)

    def __len__(self) -> int:
        return len(self._expiry)
