"""Host-side event hooks consumed by a rendering layer."""

from __future__ import annotations

from quiz_live.core.models import LeaderboardEntry, Question, RoundResult


class SessionListener:
    """Receives state changes of one session.

    Callbacks run on the session's serialization point with the session lock
    held; implementations must return quickly and must not call back into the
    controller from another thread while waiting.
    """

    def on_roster_changed(self, names: list[str]) -> None:
        pass

    def on_round_opened(self, index: int, question: Question, time_limit_seconds: int) -> None:
        pass

    def on_tick(self, remaining_seconds: int) -> None:
        pass

    def on_submission(self, answered: int, expected: int) -> None:
        pass

    def on_round_result(self, result: RoundResult) -> None:
        pass

    def on_game_over(self, leaderboard: list[LeaderboardEntry]) -> None:
        pass
