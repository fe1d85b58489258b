"""Scoring rules: time-weighted points and leaderboard ordering."""

from __future__ import annotations

from collections.abc import Iterable

from quiz_live.constants.quiz_constants import TIME_BONUS_POINTS
from quiz_live.core.models import AnswerRecord, LeaderboardEntry, Question


def compute_score(
    base_points: int,
    remaining_seconds: int,
    time_limit_seconds: int,
    bonus_points: int = TIME_BONUS_POINTS,
) -> int:
    """Return the points for a correct answer given the time left at close.

    The bonus is ``floor(remaining / limit * bonus_points)`` with remaining
    time clamped to ``[0, limit]``.
    """
    if time_limit_seconds <= 0:
        raise ValueError("Time limit must be a positive number of seconds.")
    remaining = max(0, min(remaining_seconds, time_limit_seconds))
    return base_points + int(remaining * bonus_points // time_limit_seconds)


def score_answers(
    question: Question,
    answers: Iterable[AnswerRecord],
    remaining_seconds: int,
    time_limit_seconds: int,
) -> dict[str, int]:
    """Map each answering player to the points earned this round."""
    awarded: dict[str, int] = {}
    for record in answers:
        if record.chosen_index == question.correct_answer_index:
            awarded[record.player_name] = compute_score(
                question.base_points, remaining_seconds, time_limit_seconds
            )
        else:
            awarded[record.player_name] = 0
    return awarded


def build_leaderboard(standings: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Sort by descending score; ties keep the incoming (join) order."""
    indexed = list(enumerate(standings))
    indexed.sort(key=lambda item: (-item[1].score, item[0]))
    return [entry for _, entry in indexed]
