"""Utility for generating the numeric PINs players use to find a session."""

from __future__ import annotations

from collections.abc import Collection
import random
from threading import Lock

from quiz_live.constants.quiz_constants import SESSION_ID_LENGTH


class SessionIdGenerator:
    """Produces fixed-width numeric ids that are not in use in this process."""

    def __init__(self, length: int = SESSION_ID_LENGTH, rng: random.Random | None = None) -> None:
        if length < 1:
            raise ValueError("Session id length must be positive.")
        self._length = length
        self._lowest = 10 ** (length - 1)
        self._highest = 10**length - 1
        self._rng = rng or random.Random()
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._highest - self._lowest + 1

    def next_id(self, in_use: Collection[str] = ()) -> str:
        """Return a fresh id; never one contained in ``in_use``."""
        if len(in_use) >= self.capacity:
            raise RuntimeError("No free session ids left.")
        with self._lock:
            while True:
                candidate = str(self._rng.randint(self._lowest, self._highest))
                if candidate not in in_use:
                    return candidate
