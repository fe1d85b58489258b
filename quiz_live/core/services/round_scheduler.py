"""Service driving the timed lifecycle of a single question round."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
import logging
from threading import RLock

from quiz_live.constants.quiz_constants import GRACE_CLOSE_SECONDS, TICK_INTERVAL_SECONDS
from quiz_live.core.models import AnswerRecord
from quiz_live.core.timers import TimerFactory, TimerHandle

logger = logging.getLogger(__name__)


class RoundState(str, Enum):
    PENDING = "pending"
    OPEN = "open"
    CLOSED = "closed"


class SubmissionStatus(str, Enum):
    ACCEPTED = "accepted"
    ALREADY_ANSWERED = "already_answered"
    ROUND_NOT_OPEN = "round_not_open"
    NOT_PARTICIPANT = "not_participant"


@dataclass(frozen=True, slots=True)
class RoundClosure:
    """Frozen answer ledger and the time left when the round closed."""

    answers: tuple[AnswerRecord, ...]
    remaining_seconds: int


class RoundScheduler:
    """Pending -> Open -> Closed state machine for one question.

    All public methods must be called while holding ``lock``; timer callbacks
    acquire it themselves. Each callback remembers the generation it was
    scheduled under and does nothing once the generation has moved on, so a
    stale tick or grace close can never act on a closed round.
    """

    def __init__(
        self,
        time_limit_seconds: int,
        timers: TimerFactory,
        lock: RLock,
        participants: Iterable[str],
        on_close: Callable[[RoundClosure], None],
        on_tick: Callable[[int], None] | None = None,
        grace_seconds: float = GRACE_CLOSE_SECONDS,
        tick_seconds: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        if time_limit_seconds <= 0:
            raise ValueError("Time limit must be a positive integer.")
        self._time_limit = time_limit_seconds
        self._timers = timers
        self._lock = lock
        self._participants: set[str] = set(participants)
        self._on_close = on_close
        self._on_tick = on_tick
        self._grace_seconds = grace_seconds
        self._tick_seconds = tick_seconds

        self._state = RoundState.PENDING
        self._remaining = time_limit_seconds
        self._answers: dict[str, AnswerRecord] = {}
        self._generation = 0
        self._tick_timer: TimerHandle | None = None
        self._grace_timer: TimerHandle | None = None

    @property
    def state(self) -> RoundState:
        return self._state

    @property
    def time_limit_seconds(self) -> int:
        return self._time_limit

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def answers(self) -> tuple[AnswerRecord, ...]:
        return tuple(self._answers.values())

    def answered_count(self) -> int:
        return sum(1 for name in self._participants if name in self._answers)

    def participant_count(self) -> int:
        return len(self._participants)

    def is_grace_pending(self) -> bool:
        return self._grace_timer is not None

    def open(self) -> bool:
        if self._state is not RoundState.PENDING:
            logger.error("Cannot open round in state %s", self._state.value)
            return False
        self._state = RoundState.OPEN
        self._remaining = self._time_limit
        self._schedule_tick()
        logger.debug("Round opened for %d participant(s), %ds", len(self._participants), self._time_limit)
        self._check_all_answered()
        return True

    def submit(self, player_name: str, choice_index: int, submitted_at_ms: int) -> SubmissionStatus:
        """Accept the first submission of a participant while the round is open."""
        if self._state is not RoundState.OPEN:
            return SubmissionStatus.ROUND_NOT_OPEN
        if player_name not in self._participants:
            return SubmissionStatus.NOT_PARTICIPANT
        if player_name in self._answers:
            return SubmissionStatus.ALREADY_ANSWERED

        self._answers[player_name] = AnswerRecord(
            player_name=player_name,
            chosen_index=choice_index,
            submitted_at_ms=submitted_at_ms,
        )
        self._check_all_answered()
        return SubmissionStatus.ACCEPTED

    def remove_participant(self, player_name: str) -> None:
        """Drop a departed player from the all-answered denominator."""
        self._participants.discard(player_name)
        if self._state is RoundState.OPEN:
            self._check_all_answered()

    def close(self) -> RoundClosure | None:
        """Close the round once; later calls return ``None``."""
        if self._state is RoundState.CLOSED:
            return None
        if self._state is RoundState.PENDING:
            logger.warning("Ignoring close of a round that never opened")
            return None

        self._state = RoundState.CLOSED
        self._cancel_timers()
        closure = RoundClosure(answers=tuple(self._answers.values()), remaining_seconds=self._remaining)
        logger.debug("Round closed with %d answer(s), %ds remaining", len(closure.answers), closure.remaining_seconds)
        self._on_close(closure)
        return closure

    def cancel(self) -> None:
        """Tear the round down without scoring it."""
        self._state = RoundState.CLOSED
        self._cancel_timers()

    # --- internals ---

    def _check_all_answered(self) -> None:
        if self._grace_timer is not None:
            return
        if self.answered_count() < len(self._participants):
            return
        # Freeze the countdown; the remaining time is what scoring sees.
        self._cancel_timers()
        self._grace_timer = self._timers.call_later(self._grace_seconds, self._guarded(self.close))
        logger.debug("All %d participant(s) answered; closing in %.1fs", len(self._participants), self._grace_seconds)

    def _schedule_tick(self) -> None:
        self._tick_timer = self._timers.call_later(self._tick_seconds, self._guarded(self._tick))

    def _tick(self) -> None:
        self._remaining = max(0, self._remaining - 1)
        if self._on_tick is not None:
            self._on_tick(self._remaining)
        if self._remaining <= 0:
            self.close()
        else:
            self._schedule_tick()

    def _cancel_timers(self) -> None:
        self._generation += 1
        for timer in (self._tick_timer, self._grace_timer):
            if timer is not None:
                timer.cancel()
        self._tick_timer = None
        self._grace_timer = None

    def _guarded(self, callback: Callable[[], object]) -> Callable[[], None]:
        generation = self._generation

        def fire() -> None:
            with self._lock:
                if generation != self._generation or self._state is not RoundState.OPEN:
                    logger.debug("Skipping stale round timer (generation %d)", generation)
                    return
                callback()

        return fire
