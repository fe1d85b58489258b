"""Cancellable timers used for countdowns, grace closes and start delays.

The engine never sleeps itself. Every delayed action goes through a
``TimerFactory`` so the server can run real background timers while tests
drive a manual clock.
"""

from __future__ import annotations

from collections.abc import Callable
from threading import Timer
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerFactory(Protocol):
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingTimerFactory:
    """Runs each callback on a daemon ``threading.Timer`` thread."""

    def __init__(self, name_prefix: str = "QuizTimer") -> None:
        self._name_prefix = name_prefix
        self._counter = 0

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        self._counter += 1
        timer = Timer(delay_seconds, callback)
        timer.name = f"{self._name_prefix}-{self._counter}"
        timer.daemon = True
        timer.start()
        return timer
